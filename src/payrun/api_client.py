"""Typed HTTP client for the payroll API.

Only imports from ``payrun.api.schemas`` and ``payrun.domain.payloads``;
never ORM, never DB. Used by the CLI and by scripts that drive a running
server.
"""
from __future__ import annotations

from datetime import date

import httpx

from payrun.api.schemas.auth import AuthResponse, UserRead
from payrun.api.schemas.employees import DepartmentStats, EmployeeCreate, EmployeeList, EmployeeRead
from payrun.api.schemas.payroll import (
    JobList, JobStatusResponse, PayrollDetail, PayrollRunRequest, PayrollRunResponse,
    PayrollSummaryList,
)
from payrun.config import settings
from payrun.domain.payloads import PayPeriod, PayrollFilters


class APIError(Exception):
    """Raised when the backend returns a 4xx/5xx response."""

    def __init__(self, status_code: int, detail: str, existing_job_id: int | None = None) -> None:
        self.status_code = status_code
        self.detail = detail
        self.existing_job_id = existing_job_id
        super().__init__(f"[{status_code}] {detail}")


class PayrunClient:
    """One method per backend endpoint.  All return pure Pydantic DTOs."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if token is None and settings.API_TOKEN is not None:
            token = settings.API_TOKEN.get_secret_value()
        self._client = httpx.Client(
            base_url=base_url or settings.API_BASE_URL,
            timeout=30.0,
            transport=transport,
        )
        if token:
            self.set_token(token)

    def set_token(self, token: str) -> None:
        self._client.headers["Authorization"] = f"Bearer {token}"

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "PayrunClient":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.is_success:
            return
        try:
            body = resp.json()
        except ValueError:
            raise APIError(resp.status_code, resp.text) from None
        detail = body.get("detail", resp.text) if isinstance(body, dict) else resp.text
        existing = body.get("existingJobId") if isinstance(body, dict) else None
        raise APIError(resp.status_code, str(detail), existing_job_id=existing)

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> AuthResponse:
        """Authenticate and send the returned access token on later calls."""
        resp = self._client.post("/auth/login", json={"email": email, "password": password})
        self._raise_for_status(resp)
        auth = AuthResponse.model_validate(resp.json())
        self.set_token(auth.access_token)
        return auth

    def me(self) -> UserRead:
        resp = self._client.get("/auth/me")
        self._raise_for_status(resp)
        return UserRead.model_validate(resp.json())

    # ------------------------------------------------------------------
    # Payroll
    # ------------------------------------------------------------------

    def run_payroll(
        self,
        start_date: date,
        end_date: date,
        department: str | None = None,
        employee_ids: list[int] | None = None,
        send_emails: bool = False,
        skip_payslips: bool = False,
        force: bool = False,
    ) -> PayrollRunResponse:
        request = PayrollRunRequest(
            pay_period=PayPeriod(start_date=start_date, end_date=end_date),
            filters=PayrollFilters(department=department, employee_ids=employee_ids),
            options={"send_emails": send_emails, "skip_payslips": skip_payslips},
            force=force,
        )
        resp = self._client.post(
            "/payrolls/run", json=request.model_dump(mode="json", by_alias=True),
        )
        self._raise_for_status(resp)
        return PayrollRunResponse.model_validate(resp.json())

    def job_status(self, job_id: int) -> JobStatusResponse:
        resp = self._client.get(f"/payrolls/jobs/{job_id}/status")
        self._raise_for_status(resp)
        return JobStatusResponse.model_validate(resp.json())

    def list_jobs(self, limit: int = 50) -> JobList:
        resp = self._client.get("/payrolls/jobs", params={"limit": limit})
        self._raise_for_status(resp)
        return JobList.model_validate(resp.json())

    def list_payrolls(self) -> PayrollSummaryList:
        resp = self._client.get("/payrolls")
        self._raise_for_status(resp)
        return PayrollSummaryList.model_validate(resp.json())

    def get_payroll(self, payroll_id: str) -> PayrollDetail:
        resp = self._client.get(f"/payrolls/{payroll_id}")
        self._raise_for_status(resp)
        return PayrollDetail.model_validate(resp.json())

    # ------------------------------------------------------------------
    # Employees
    # ------------------------------------------------------------------

    def list_employees(self, page: int = 1, limit: int = 10, **filters) -> EmployeeList:
        params = {"page": page, "limit": limit}
        params.update({k: v for k, v in filters.items() if v is not None})
        resp = self._client.get("/employees", params=params)
        self._raise_for_status(resp)
        return EmployeeList.model_validate(resp.json())

    def create_employee(self, payload: EmployeeCreate) -> EmployeeRead:
        resp = self._client.post("/employees", json=payload.model_dump(mode="json"))
        self._raise_for_status(resp)
        return EmployeeRead.model_validate(resp.json())

    def department_stats(self) -> DepartmentStats:
        resp = self._client.get("/employees/stats/departments")
        self._raise_for_status(resp)
        return DepartmentStats.model_validate(resp.json())

    def health(self) -> dict:
        resp = self._client.get("/health")
        self._raise_for_status(resp)
        return resp.json()
