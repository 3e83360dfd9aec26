"""Repository for Employee records. No business logic; caller owns the transaction."""
from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import func, or_
from sqlmodel import Session, col, select

from payrun.models.core import Employee, EmployeeStatus


class EmployeeRepository:
    def __init__(self, session: Session) -> None:
        self._s = session

    def get_by_id(self, employee_id: int) -> Employee | None:
        return self._s.get(Employee, employee_id)

    def get_by_email(self, email: str) -> Employee | None:
        return self._s.exec(select(Employee).where(Employee.email == email)).first()

    def _filtered(self, stmt, department: str | None, status: EmployeeStatus | None, search: str | None):
        if department:
            stmt = stmt.where(Employee.department == department)
        if status is not None:
            stmt = stmt.where(Employee.status == status)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(or_(
                col(Employee.first_name).ilike(pattern),
                col(Employee.last_name).ilike(pattern),
                col(Employee.email).ilike(pattern),
            ))
        return stmt

    def list_page(
        self,
        *,
        limit: int = 10,
        offset: int = 0,
        department: str | None = None,
        status: EmployeeStatus | None = None,
        search: str | None = None,
    ) -> list[Employee]:
        stmt = self._filtered(select(Employee), department, status, search)
        stmt = stmt.order_by(Employee.last_name, Employee.first_name).offset(offset).limit(limit)
        return list(self._s.exec(stmt).all())

    def count(
        self,
        *,
        department: str | None = None,
        status: EmployeeStatus | None = None,
        search: str | None = None,
    ) -> int:
        stmt = self._filtered(select(func.count()).select_from(Employee), department, status, search)
        return self._s.exec(stmt).one()

    def list_eligible(
        self, department: str | None = None, employee_ids: Iterable[int] | None = None,
    ) -> list[Employee]:
        """Active employees matching the run filters, surname then given name."""
        stmt = select(Employee).where(Employee.status == EmployeeStatus.ACTIVE)
        if department:
            stmt = stmt.where(Employee.department == department)
        ids = list(employee_ids or [])
        if ids:
            stmt = stmt.where(col(Employee.id).in_(ids))
        stmt = stmt.order_by(Employee.last_name, Employee.first_name, Employee.id)
        return list(self._s.exec(stmt).all())

    def department_stats(self) -> list[tuple[str, int, int]]:
        """(department, headcount, total base salary) over active employees."""
        stmt = (
            select(Employee.department, func.count(), func.coalesce(func.sum(Employee.base_salary), 0))
            .where(Employee.status == EmployeeStatus.ACTIVE)
            .group_by(Employee.department)
            .order_by(Employee.department)
        )
        return [(d, int(n), int(total)) for d, n, total in self._s.exec(stmt).all()]

    def create(self, **fields) -> Employee:
        employee = Employee(**fields)
        self._s.add(employee)
        self._s.flush()  # get generated PK without committing
        return employee

    def update(self, employee: Employee, **fields) -> Employee:
        for key, value in fields.items():
            setattr(employee, key, value)
        self._s.add(employee)
        self._s.flush()
        return employee
