"""Payroll router: submit runs, poll jobs, read stored summaries."""
from fastapi import APIRouter, Depends

from payrun.api.deps import PAYROLL_ROLES, get_payroll_service, require_roles
from payrun.api.schemas.payroll import (
    JobList, JobStatusResponse, PayrollDetail, PayrollRunRequest, PayrollRunResponse,
    PayrollSummaryList,
)
from payrun.domain.payloads import Requester
from payrun.services.payroll_service import PayrollService

router = APIRouter(prefix="/payrolls", tags=["payroll"])
_guard = require_roles(*PAYROLL_ROLES)


@router.post("/run", response_model=PayrollRunResponse, response_model_by_alias=True, status_code=202)
def run_payroll(
    payload: PayrollRunRequest,
    requester: Requester = Depends(_guard),
    service: PayrollService = Depends(get_payroll_service),
) -> PayrollRunResponse:
    return service.submit(payload, requester)


@router.get("/jobs", response_model=JobList, response_model_by_alias=True)
def list_jobs(
    limit: int = 50,
    _: Requester = Depends(_guard),
    service: PayrollService = Depends(get_payroll_service),
) -> JobList:
    return service.list_jobs(limit=max(1, min(limit, 100)))


@router.get("/jobs/{job_id}/status", response_model=JobStatusResponse, response_model_by_alias=True)
def job_status(
    job_id: int,
    _: Requester = Depends(_guard),
    service: PayrollService = Depends(get_payroll_service),
) -> JobStatusResponse:
    return service.status(job_id)


@router.get("", response_model=PayrollSummaryList)
def list_payrolls(
    _: Requester = Depends(_guard),
    service: PayrollService = Depends(get_payroll_service),
) -> PayrollSummaryList:
    return service.list_summaries()


@router.get("/{payroll_id}", response_model=PayrollDetail)
def get_payroll(
    payroll_id: str,
    _: Requester = Depends(_guard),
    service: PayrollService = Depends(get_payroll_service),
) -> PayrollDetail:
    return service.get_summary(payroll_id)
