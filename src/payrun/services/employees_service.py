"""Employees use-case service. Owns ORM→DTO mapping; routers never see ORM objects."""
from __future__ import annotations

import math

from payrun.domain.clock import utcnow
from payrun.domain.exceptions import ConflictError, NotFoundError
from payrun.infra.db.uow import UnitOfWork
from payrun.infra.db.repositories.employee_repository import EmployeeRepository
from payrun.models.core import EmployeeStatus
from payrun.api.schemas.employees import (
    DepartmentStat, DepartmentStats, EmployeeCreate, EmployeeList, EmployeeRead,
    EmployeeStatusDTO, EmployeeUpdate,
)


# columns that cannot be cleared by an explicit null in a partial update
_REQUIRED_FIELDS = (
    "first_name", "last_name", "email", "department", "job_title",
    "base_salary", "date_of_joining", "status",
)


class EmployeesService:
    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def _get(self, repo: EmployeeRepository, employee_id: int):
        employee = repo.get_by_id(employee_id)
        if employee is None:
            raise NotFoundError(f"Employee {employee_id} not found")
        return employee

    def list_employees(
        self,
        page: int = 1,
        limit: int = 10,
        department: str | None = None,
        status: EmployeeStatusDTO | None = None,
        search: str | None = None,
    ) -> EmployeeList:
        repo = EmployeeRepository(self._uow.session)
        status_filter = EmployeeStatus(status.value) if status is not None else None
        rows = repo.list_page(
            limit=limit,
            offset=(page - 1) * limit,
            department=department,
            status=status_filter,
            search=search,
        )
        total = repo.count(department=department, status=status_filter, search=search)
        total_pages = math.ceil(total / limit) if total else 0
        return EmployeeList(
            items=[EmployeeRead.model_validate(e) for e in rows],
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )

    def get_employee(self, employee_id: int) -> EmployeeRead:
        repo = EmployeeRepository(self._uow.session)
        return EmployeeRead.model_validate(self._get(repo, employee_id))

    def create_employee(self, payload: EmployeeCreate) -> EmployeeRead:
        repo = EmployeeRepository(self._uow.session)
        if repo.get_by_email(payload.email) is not None:
            raise ConflictError(f"Employee with email {payload.email} already exists")
        fields = payload.model_dump()
        fields["status"] = EmployeeStatus(payload.status.value)
        employee = repo.create(**fields)
        self._uow.commit()
        return EmployeeRead.model_validate(employee)

    def update_employee(self, employee_id: int, payload: EmployeeUpdate) -> EmployeeRead:
        repo = EmployeeRepository(self._uow.session)
        employee = self._get(repo, employee_id)
        changes = {
            key: value for key, value in payload.model_dump(exclude_unset=True).items()
            if value is not None or key not in _REQUIRED_FIELDS
        }
        if "email" in changes and changes["email"] != employee.email:
            other = repo.get_by_email(changes["email"])
            if other is not None and other.id != employee_id:
                raise ConflictError(f"Employee with email {changes['email']} already exists")
        if "status" in changes:
            changes["status"] = EmployeeStatus(changes["status"].value)
        changes["updated_at"] = utcnow()
        repo.update(employee, **changes)
        self._uow.commit()
        return EmployeeRead.model_validate(employee)

    def terminate_employee(self, employee_id: int) -> EmployeeRead:
        """Soft delete: the row stays for payroll history."""
        repo = EmployeeRepository(self._uow.session)
        employee = self._get(repo, employee_id)
        repo.update(
            employee,
            status=EmployeeStatus.TERMINATED,
            updated_at=utcnow(),
        )
        self._uow.commit()
        return EmployeeRead.model_validate(employee)

    def department_stats(self) -> DepartmentStats:
        rows = EmployeeRepository(self._uow.session).department_stats()
        return DepartmentStats(items=[
            DepartmentStat(department=d, employee_count=n, total_salary=total)
            for d, n, total in rows
        ])
