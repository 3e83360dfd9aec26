"""Auth DTOs: pure Pydantic, zero ORM imports. Password hashes never appear here."""
from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from payrun.api.schemas.employees import normalize_email


class UserRoleDTO(str, Enum):
    ADMIN = "admin"
    HR = "hr"
    MANAGER = "manager"
    EMPLOYEE = "employee"


class UserRegister(BaseModel):
    email: str
    password: str = Field(min_length=6, max_length=72)
    role: UserRoleDTO = UserRoleDTO.EMPLOYEE
    employee_id: int | None = None

    @field_validator("email")
    @classmethod
    def valid_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("password")
    @classmethod
    def fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > 72:
            raise ValueError("must be at most 72 bytes")
        return v


class LoginRequest(BaseModel):
    email: str
    password: str = Field(min_length=1, max_length=72)

    @field_validator("email")
    @classmethod
    def valid_email(cls, v: str) -> str:
        return normalize_email(v)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class UserRead(BaseModel):
    model_config = {"from_attributes": True}

    id: int
    email: str
    role: UserRoleDTO
    employee_id: int | None = None
    is_active: bool
    last_login: datetime | None = None
    created_at: datetime | None = None


class AuthResponse(BaseModel):
    message: str
    user: UserRead
    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class AccessTokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class MessageResponse(BaseModel):
    message: str
