"""User accounts: register, login, token refresh, current user.

Tokens are stateless; a refresh re-reads the account so a deactivated user or
a changed role takes effect on the next refresh.
"""
from __future__ import annotations

import logging

from payrun.api.schemas.auth import (
    AccessTokenResponse, AuthResponse, LoginRequest, UserRead, UserRegister,
)
from payrun.domain.clock import utcnow
from payrun.domain.exceptions import AuthError, ConflictError, ForbiddenError
from payrun.domain.payloads import Requester
from payrun.infra.db.repositories.user_repository import UserRepository
from payrun.infra.db.uow import UnitOfWork
from payrun.infra.security import decode_token, hash_password, issue_token, verify_password
from payrun.models.core import User, UserRole

logger = logging.getLogger(__name__)


def _tokens(user: User) -> dict[str, str]:
    role = UserRole(user.role).value
    return {
        "access_token": issue_token(user.id, user.email, role, "access"),
        "refresh_token": issue_token(user.id, user.email, role, "refresh"),
    }


class AuthService:
    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def register(self, data: UserRegister, requester: Requester | None = None) -> AuthResponse:
        """Create an account.

        Anyone may register an ``employee`` account. Other roles need an admin
        requester, except for the very first account, which bootstraps the
        system.

        Raises:
            ConflictError: the email is already registered.
            ForbiddenError: a privileged role was requested without admin rights.
        """
        repo = UserRepository(self._uow.session)
        if repo.get_by_email(data.email) is not None:
            raise ConflictError("User already exists with this email")

        role = UserRole(data.role.value)
        if role is not UserRole.EMPLOYEE and repo.count() > 0:
            if requester is None or requester.role != UserRole.ADMIN.value:
                raise ForbiddenError(f"Only an admin may register '{role.value}' accounts")

        user = repo.create(
            email=data.email,
            password_hash=hash_password(data.password),
            role=role,
            employee_id=data.employee_id,
        )
        self._uow.commit()
        logger.info("Registered user %s with role %s", user.id, role.value)
        return AuthResponse(
            message="User registered successfully",
            user=UserRead.model_validate(user),
            **_tokens(user),
        )

    def login(self, data: LoginRequest) -> AuthResponse:
        repo = UserRepository(self._uow.session)
        user = repo.get_by_email(data.email)
        if user is None or not verify_password(data.password, user.password_hash):
            logger.info("Failed login for %s", data.email)
            raise AuthError("Invalid credentials")
        if not user.is_active:
            raise AuthError("Account is disabled")

        now = utcnow()
        repo.update(user, last_login=now, updated_at=now)
        self._uow.commit()
        return AuthResponse(
            message="Login successful",
            user=UserRead.model_validate(user),
            **_tokens(user),
        )

    def refresh(self, refresh_token: str) -> AccessTokenResponse:
        claims = decode_token(refresh_token, "refresh")
        user = self._active_user(claims["sub"])
        role = UserRole(user.role).value
        return AccessTokenResponse(access_token=issue_token(user.id, user.email, role, "access"))

    def me(self, requester: Requester) -> UserRead:
        return UserRead.model_validate(self._active_user(requester.user_id))

    def _active_user(self, user_id: str) -> User:
        user = None
        if user_id.isdigit():
            user = UserRepository(self._uow.session).get_by_id(int(user_id))
        if user is None or not user.is_active:
            raise AuthError("Account no longer exists or is disabled")
        return user
