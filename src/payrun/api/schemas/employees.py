"""Employee DTOs: pure Pydantic, zero ORM imports."""
from __future__ import annotations

import re
from datetime import date, datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE = re.compile(r"^\+?[\d\s\-()]+$")


class EmployeeStatusDTO(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    TERMINATED = "terminated"
    ON_LEAVE = "on_leave"


def _name(v: str) -> str:
    if not v.strip():
        raise ValueError("must not be empty")
    return v.strip()


def normalize_email(v: str) -> str:
    v = v.strip().lower()
    if not _EMAIL.match(v):
        raise ValueError("must be a valid email address")
    return v


def _phone(v: str | None) -> str | None:
    if v is not None and not _PHONE.match(v):
        raise ValueError("must contain only digits, spaces, +, -, ( and )")
    return v


def _joined(v: date) -> date:
    if v > datetime.now(timezone.utc).date():
        raise ValueError("cannot be in the future")
    return v


class EmployeeCreate(BaseModel):
    first_name: str = Field(max_length=50)
    last_name: str = Field(max_length=50)
    email: str
    phone: str | None = Field(default=None, max_length=20)
    department: str = Field(max_length=100)
    job_title: str = Field(max_length=100)
    base_salary: int = Field(ge=0, description="Minor currency units per pay period")
    date_of_joining: date
    status: EmployeeStatusDTO = EmployeeStatusDTO.ACTIVE
    manager_id: int | None = None
    address: str | None = None

    @field_validator("first_name", "last_name", "department", "job_title")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _name(v)

    @field_validator("email")
    @classmethod
    def valid_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v: str | None) -> str | None:
        return _phone(v)

    @field_validator("date_of_joining")
    @classmethod
    def not_future(cls, v: date) -> date:
        return _joined(v)


class EmployeeUpdate(BaseModel):
    first_name: str | None = Field(default=None, max_length=50)
    last_name: str | None = Field(default=None, max_length=50)
    email: str | None = None
    phone: str | None = Field(default=None, max_length=20)
    department: str | None = Field(default=None, max_length=100)
    job_title: str | None = Field(default=None, max_length=100)
    base_salary: int | None = Field(default=None, ge=0)
    date_of_joining: date | None = None
    status: EmployeeStatusDTO | None = None
    manager_id: int | None = None
    address: str | None = None

    @field_validator("first_name", "last_name", "department", "job_title")
    @classmethod
    def not_blank(cls, v: str | None) -> str | None:
        return None if v is None else _name(v)

    @field_validator("email")
    @classmethod
    def valid_email(cls, v: str | None) -> str | None:
        return None if v is None else normalize_email(v)

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v: str | None) -> str | None:
        return _phone(v)

    @field_validator("date_of_joining")
    @classmethod
    def not_future(cls, v: date | None) -> date | None:
        return None if v is None else _joined(v)


class EmployeeRead(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    first_name: str
    last_name: str
    email: str
    phone: str | None = None
    department: str
    job_title: str
    base_salary: int
    date_of_joining: date
    status: EmployeeStatusDTO
    manager_id: int | None = None
    address: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class EmployeeList(BaseModel):
    items: list[EmployeeRead]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool


class DepartmentStat(BaseModel):
    department: str
    employee_count: int
    total_salary: int


class DepartmentStats(BaseModel):
    items: list[DepartmentStat]
