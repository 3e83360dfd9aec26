"""Auth router: register, login, refresh, logout, current user."""
from fastapi import APIRouter, Depends

from payrun.api.deps import get_optional_requester, get_requester, get_uow
from payrun.api.schemas.auth import (
    AccessTokenResponse, AuthResponse, LoginRequest, MessageResponse, RefreshRequest, UserRead,
    UserRegister,
)
from payrun.domain.payloads import Requester
from payrun.infra.db.uow import UnitOfWork
from payrun.services.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=201)
def register(
    payload: UserRegister,
    requester: Requester | None = Depends(get_optional_requester),
    uow: UnitOfWork = Depends(get_uow),
) -> AuthResponse:
    return AuthService(uow).register(payload, requester)


@router.post("/login", response_model=AuthResponse)
def login(payload: LoginRequest, uow: UnitOfWork = Depends(get_uow)) -> AuthResponse:
    return AuthService(uow).login(payload)


@router.post("/refresh", response_model=AccessTokenResponse)
def refresh(payload: RefreshRequest, uow: UnitOfWork = Depends(get_uow)) -> AccessTokenResponse:
    return AuthService(uow).refresh(payload.refresh_token)


@router.post("/logout", response_model=MessageResponse)
def logout(_: Requester = Depends(get_requester)) -> MessageResponse:
    # tokens are stateless; the client discards them
    return MessageResponse(message="Logged out successfully")


@router.get("/me", response_model=UserRead)
def me(
    requester: Requester = Depends(get_requester),
    uow: UnitOfWork = Depends(get_uow),
) -> UserRead:
    return AuthService(uow).me(requester)
