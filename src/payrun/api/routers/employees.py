"""Employees router."""
from fastapi import APIRouter, Depends, Query

from payrun.api.deps import PAYROLL_ROLES, get_requester, get_uow, require_roles
from payrun.api.schemas.employees import (
    DepartmentStats, EmployeeCreate, EmployeeList, EmployeeRead, EmployeeStatusDTO, EmployeeUpdate,
)
from payrun.domain.payloads import Requester
from payrun.infra.db.uow import UnitOfWork
from payrun.services.employees_service import EmployeesService

router = APIRouter(prefix="/employees", tags=["employees"])


@router.get("", response_model=EmployeeList)
def list_employees(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    department: str | None = None,
    status: EmployeeStatusDTO | None = None,
    search: str | None = None,
    _: Requester = Depends(get_requester),
    uow: UnitOfWork = Depends(get_uow),
) -> EmployeeList:
    return EmployeesService(uow).list_employees(
        page=page, limit=limit, department=department, status=status, search=search,
    )


@router.get("/stats/departments", response_model=DepartmentStats)
def department_stats(
    _: Requester = Depends(get_requester),
    uow: UnitOfWork = Depends(get_uow),
) -> DepartmentStats:
    return EmployeesService(uow).department_stats()


@router.get("/{employee_id}", response_model=EmployeeRead)
def get_employee(
    employee_id: int,
    _: Requester = Depends(get_requester),
    uow: UnitOfWork = Depends(get_uow),
) -> EmployeeRead:
    return EmployeesService(uow).get_employee(employee_id)


@router.post("", response_model=EmployeeRead, status_code=201)
def create_employee(
    payload: EmployeeCreate,
    _: Requester = Depends(require_roles(*PAYROLL_ROLES)),
    uow: UnitOfWork = Depends(get_uow),
) -> EmployeeRead:
    return EmployeesService(uow).create_employee(payload)


@router.put("/{employee_id}", response_model=EmployeeRead)
def update_employee(
    employee_id: int,
    payload: EmployeeUpdate,
    _: Requester = Depends(require_roles(*PAYROLL_ROLES)),
    uow: UnitOfWork = Depends(get_uow),
) -> EmployeeRead:
    return EmployeesService(uow).update_employee(employee_id, payload)


@router.delete("/{employee_id}", response_model=EmployeeRead)
def terminate_employee(
    employee_id: int,
    _: Requester = Depends(require_roles("admin")),
    uow: UnitOfWork = Depends(get_uow),
) -> EmployeeRead:
    return EmployeesService(uow).terminate_employee(employee_id)
