"""Employee and user tables."""
from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from sqlmodel import Field, SQLModel

from payrun.domain.clock import utcnow


class EmployeeStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    TERMINATED = "terminated"
    ON_LEAVE = "on_leave"


class UserRole(str, Enum):
    ADMIN = "admin"
    HR = "hr"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class Employee(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    first_name: str = Field(max_length=50)
    last_name: str = Field(max_length=50, index=True)
    email: str = Field(unique=True, index=True)
    phone: str | None = Field(default=None, max_length=20)
    department: str = Field(max_length=100, index=True)
    job_title: str = Field(max_length=100)
    base_salary: int = Field(description="Salary per pay period in minor currency units")
    date_of_joining: date
    status: EmployeeStatus = Field(default=EmployeeStatus.ACTIVE, index=True)
    manager_id: int | None = Field(default=None, index=True)
    address: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    # bcrypt hash; never leaves the service layer
    password_hash: str
    role: UserRole = Field(default=UserRole.EMPLOYEE, index=True)
    employee_id: int | None = Field(default=None, foreign_key="employee.id")
    is_active: bool = True
    last_login: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
