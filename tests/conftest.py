"""Shared test fixtures.

  use_test_engine: redirects UoW + infra layer to a temp-file SQLite DB and
    payslip/summary storage to tmp_path.
  clock: FixedClock shared by queues and workers.
  queues: connected payroll/email lanes on the test engine.
  add_employee: inserts an Employee row and returns its id.
  auth_headers: factory for ``Authorization: Bearer`` headers of a given role.
  client: FastAPI TestClient wired to the test engine, sending an HR
    access token by default.
"""
from datetime import date

import pytest
from sqlmodel import SQLModel, Session, create_engine

from payrun.config import settings
from payrun.domain.clock import FixedClock


@pytest.fixture
def use_test_engine(tmp_path, monkeypatch):
    """Monkeypatch infra/db engine references to an isolated temp-file SQLite DB."""
    db_path = tmp_path / "test_payrun.db"
    test_engine = create_engine(
        f"sqlite:///{db_path}", echo=False, connect_args={"check_same_thread": False},
    )

    import payrun.models  # noqa: F401  register all ORM mappers
    SQLModel.metadata.create_all(test_engine)

    monkeypatch.setattr("payrun.infra.db.engine.engine", test_engine)
    monkeypatch.setattr("payrun.infra.db.uow.engine", test_engine)
    monkeypatch.setattr(settings, "PAYSLIPS_DIR", tmp_path / "payslips")
    monkeypatch.setattr(settings, "PAYROLLS_DIR", tmp_path / "payrolls")
    monkeypatch.setattr(settings, "RUN_WORKERS_IN_PROCESS", False)
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)

    yield test_engine

    SQLModel.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def queues(use_test_engine, clock):
    from payrun.jobs.queue import create_queues

    q = create_queues(use_test_engine, clock).connect()
    yield q
    q.close()


@pytest.fixture
def add_employee(use_test_engine):
    """Factory: ``add_employee(last_name, base_salary, **overrides) -> id``."""
    from payrun.models.core import Employee

    counter = {"n": 0}

    def _add(last_name: str = "Doe", base_salary: int = 7_500_000, **fields) -> int:
        counter["n"] += 1
        values = {
            "first_name": "Jane",
            "last_name": last_name,
            "email": f"employee{counter['n']}@example.com",
            "department": "Engineering",
            "job_title": "Engineer",
            "base_salary": base_salary,
            "date_of_joining": date(2020, 1, 15),
        }
        values.update(fields)
        with Session(use_test_engine) as s:
            employee = Employee(**values)
            s.add(employee)
            s.commit()
            return employee.id

    return _add


@pytest.fixture
def auth_headers():
    """Factory: ``auth_headers(role, user_id=1, email=None) -> headers``."""
    from payrun.infra.security import issue_token

    def _headers(role: str = "hr", user_id: int = 1, email: str | None = None) -> dict[str, str]:
        return {"Authorization": f"Bearer {issue_token(user_id, email, role)}"}

    return _headers


@pytest.fixture
def client(use_test_engine, clock, auth_headers):
    """FastAPI TestClient backed by the isolated test engine."""
    from fastapi.testclient import TestClient
    from payrun.api.app import create_app

    app = create_app(clock=clock)
    with TestClient(app, headers=auth_headers("hr")) as c:
        yield c
