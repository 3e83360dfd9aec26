"""FastAPI application factory."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlmodel import SQLModel

from payrun import __version__
from payrun.config import settings
from payrun.domain.clock import Clock
from payrun.logging import configure_logging
from payrun.domain.exceptions import (
    AuthError, ConflictError, DuplicateJobError, ForbiddenError, NotFoundError,
    QueueUnavailableError, ValidationError,
)

logger = logging.getLogger(__name__)


def create_app(clock: Clock | None = None) -> FastAPI:
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        from payrun.infra.db.engine import engine  # triggers WAL pragma + mapper registration
        from payrun.infra.db.schema_compat import ensure_schema_compat
        from payrun.jobs.queue import create_queues
        SQLModel.metadata.create_all(engine)
        ensure_schema_compat(engine)
        queues = create_queues(engine, clock).connect()
        app.state.queues = queues

        runners = []
        if settings.RUN_WORKERS_IN_PROCESS:
            from payrun.jobs.notifications import NotificationWorker
            from payrun.jobs.payroll_worker import build_payroll_worker
            from payrun.jobs.runner import LaneRunner, Sweeper
            runners = [
                LaneRunner(build_payroll_worker(queues, engine, clock)),
                LaneRunner(NotificationWorker(queues.email)),
                Sweeper(queues),
            ]
            for runner in runners:
                runner.start()
        try:
            yield
        finally:
            for runner in runners:
                runner.stop()
            queues.close()

    app = FastAPI(
        title="Payrun API",
        version=__version__,
        lifespan=lifespan,
    )

    # Import routers inside create_app() to avoid circular imports at module load time
    from payrun.api.routers.auth import router as auth_router
    from payrun.api.routers.payroll import router as payroll_router
    from payrun.api.routers.employees import router as employees_router

    app.include_router(auth_router)
    app.include_router(payroll_router)
    app.include_router(employees_router)

    @app.exception_handler(NotFoundError)
    def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(status_code=404, content={"detail": exc.message})

    @app.exception_handler(ConflictError)
    def _conflict(request: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(status_code=409, content={"detail": exc.message})

    @app.exception_handler(DuplicateJobError)
    def _duplicate(request: Request, exc: DuplicateJobError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": exc.message, "existingJobId": exc.existing_job_id},
        )

    @app.exception_handler(ValidationError)
    def _invalid(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": exc.message})

    @app.exception_handler(RequestValidationError)
    def _malformed(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"detail": "Validation failed", "errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(AuthError)
    def _unauthenticated(request: Request, exc: AuthError) -> JSONResponse:
        return JSONResponse(status_code=401, content={"detail": exc.message})

    @app.exception_handler(ForbiddenError)
    def _forbidden(request: Request, exc: ForbiddenError) -> JSONResponse:
        return JSONResponse(status_code=403, content={"detail": exc.message})

    @app.exception_handler(QueueUnavailableError)
    def _queue_down(request: Request, exc: QueueUnavailableError) -> JSONResponse:
        logger.error("Queue unavailable: %s", exc.message)
        return JSONResponse(status_code=503, content={"detail": exc.message})

    @app.get("/health", tags=["ops"])
    def health(request: Request) -> JSONResponse:
        queues = request.app.state.queues
        if not all(q.is_connected and q.ping() for q in queues.all()):
            return JSONResponse(
                status_code=503,
                content={"status": "unavailable", "detail": "Queue store is unreachable"},
            )
        return JSONResponse(content={
            "status": "ok",
            "queues": {q.name: q.counts() for q in queues.all()},
        })

    return app
