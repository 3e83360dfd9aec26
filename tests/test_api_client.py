"""PayrunClient against a stubbed transport."""
from datetime import date

import httpx
import pytest

from payrun.api_client import APIError, PayrunClient


def _client(handler, token: str | None = "t0ken") -> PayrunClient:
    return PayrunClient(base_url="http://payrun.test", token=token, transport=httpx.MockTransport(handler))


def test_run_payroll_sends_camel_case_body_and_bearer_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["headers"] = request.headers
        seen["body"] = request.read()
        return httpx.Response(202, json={
            "message": "Payroll job queued successfully",
            "job": {
                "id": 3,
                "status": "queued",
                "payPeriod": {"start_date": "2024-01-01", "end_date": "2024-01-31"},
                "filters": {"department": None, "employee_ids": None},
                "options": {"sendEmails": True, "skipPayslips": False},
                "queuePosition": 0,
            },
        })

    with _client(handler) as client:
        resp = client.run_payroll(date(2024, 1, 1), date(2024, 1, 31), send_emails=True)

    assert resp.job.id == 3
    assert resp.job.options.send_emails is True
    assert seen["headers"]["Authorization"] == "Bearer t0ken"
    assert b'"payPeriod"' in seen["body"]
    assert b'"sendEmails":true' in seen["body"].replace(b" ", b"")


def test_duplicate_error_carries_existing_job_id():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"detail": "Payroll job already exists", "existingJobId": 7})

    with _client(handler) as client:
        with pytest.raises(APIError) as excinfo:
            client.run_payroll(date(2024, 1, 1), date(2024, 1, 31))

    assert excinfo.value.status_code == 400
    assert excinfo.value.existing_job_id == 7


def test_non_json_error_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    with _client(handler) as client:
        with pytest.raises(APIError) as excinfo:
            client.job_status(1)

    assert excinfo.value.status_code == 502
    assert excinfo.value.detail == "bad gateway"


def test_login_switches_to_the_issued_token():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.url.path, request.headers.get("Authorization")))
        if request.url.path == "/auth/login":
            return httpx.Response(200, json={
                "message": "Login successful",
                "user": {"id": 1, "email": "hr@example.com", "role": "hr", "is_active": True},
                "access_token": "fresh",
                "refresh_token": "r",
            })
        return httpx.Response(200, json={"id": 1, "email": "hr@example.com", "role": "hr", "is_active": True})

    with _client(handler, token=None) as client:
        auth = client.login("hr@example.com", "secret1")
        me = client.me()

    assert auth.user.role.value == "hr"
    assert me.email == "hr@example.com"
    assert calls == [("/auth/login", None), ("/auth/me", "Bearer fresh")]
