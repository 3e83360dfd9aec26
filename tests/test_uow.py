"""Unit tests for the UnitOfWork context manager."""
from datetime import date, timedelta

import pytest
from sqlmodel import Session, select

from payrun.models.core import Employee
from payrun.infra.db.uow import UnitOfWork


def _employee(email: str) -> Employee:
    return Employee(
        first_name="Ada",
        last_name="Lovelace",
        email=email,
        department="Engineering",
        job_title="Engineer",
        base_salary=500_000,
        date_of_joining=date(2021, 3, 1),
    )


def test_commit_persists_record(use_test_engine):
    with UnitOfWork() as uow:
        employee = _employee("ada@example.com")
        uow.session.add(employee)
        uow.commit()
        employee_id = employee.id

    # Verify in a separate session
    with Session(use_test_engine) as s:
        fetched = s.get(Employee, employee_id)
        assert fetched is not None
        assert fetched.email == "ada@example.com"


def test_rollback_on_exception_reverts_record(use_test_engine):
    with Session(use_test_engine) as s:
        count_before = len(s.exec(select(Employee)).all())

    try:
        with UnitOfWork() as uow:
            uow.session.add(_employee("rolled-back@example.com"))
            uow.session.flush()  # write to DB within transaction
            raise ValueError("forced error")
    except ValueError:
        pass

    # Record must not have been persisted
    with Session(use_test_engine) as s:
        count_after = len(s.exec(select(Employee)).all())

    assert count_after == count_before


def test_explicit_bind_overrides_module_engine(use_test_engine):
    with UnitOfWork(use_test_engine) as uow:
        uow.session.add(_employee("bound@example.com"))

    with Session(use_test_engine) as s:
        emails = [e.email for e in s.exec(select(Employee)).all()]
    assert "bound@example.com" in emails


def test_session_outside_context_raises():
    uow = UnitOfWork()
    with pytest.raises(RuntimeError):
        _ = uow.session


def test_timestamps_are_stored_and_read_as_utc(use_test_engine):
    with UnitOfWork() as uow:
        employee = _employee("utc@example.com")
        uow.session.add(employee)
        uow.commit()
        employee_id = employee.id

    with Session(use_test_engine) as s:
        fetched = s.get(Employee, employee_id)
        assert fetched.created_at.utcoffset() == timedelta(0)
        assert fetched.updated_at.utcoffset() == timedelta(0)
