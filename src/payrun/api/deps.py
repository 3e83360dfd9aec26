"""FastAPI dependencies."""
from __future__ import annotations

import logging
from typing import Callable, Generator

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from payrun.config import settings
from payrun.domain.exceptions import AuthError, ForbiddenError
from payrun.domain.payloads import Requester
from payrun.infra.db.uow import UnitOfWork
from payrun.infra.security import decode_token
from payrun.infra.storage.summaries import SummaryStore
from payrun.jobs.queue import Queues
from payrun.services.payroll_service import PayrollService

logger = logging.getLogger(__name__)

PAYROLL_ROLES = ("admin", "hr")

_bearer = HTTPBearer(auto_error=False)


def get_uow() -> Generator[UnitOfWork, None, None]:
    """Yield one UnitOfWork per request; commit/rollback in __exit__."""
    with UnitOfWork() as uow:
        yield uow


def get_queues(request: Request) -> Queues:
    return request.app.state.queues


def get_summary_store() -> SummaryStore:
    return SummaryStore(settings.PAYROLLS_DIR)


def get_payroll_service(
    queues: Queues = Depends(get_queues),
    summaries: SummaryStore = Depends(get_summary_store),
) -> PayrollService:
    return PayrollService(queues.payroll, summaries)


def _requester(token: str) -> Requester:
    claims = decode_token(token, "access")
    return Requester(user_id=claims["sub"], email=claims.get("email"), role=claims["role"])


def get_requester(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> Requester:
    """Identity from a signed ``Authorization: Bearer`` access token."""
    if credentials is None:
        raise AuthError("No valid authorization token provided")
    return _requester(credentials.credentials)


def get_optional_requester(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> Requester | None:
    """Like ``get_requester`` but anonymous callers and bad tokens yield None."""
    if credentials is None:
        return None
    try:
        return _requester(credentials.credentials)
    except AuthError as exc:
        logger.info("Ignoring bearer token: %s", exc.message)
        return None


def require_roles(*roles: str) -> Callable[..., Requester]:
    def dependency(requester: Requester = Depends(get_requester)) -> Requester:
        if requester.role not in roles:
            raise ForbiddenError(
                f"This action requires one of these roles: {', '.join(roles)}",
            )
        return requester
    return dependency
