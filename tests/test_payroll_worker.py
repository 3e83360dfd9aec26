"""Payroll lane: one claimed job -> payslips, notifications, summary."""
import json
from datetime import date

import pytest

from payrun.domain.exceptions import SummaryWriteError
from payrun.domain.jobs import JobState
from payrun.domain.payloads import PayPeriod, PayrollFilters, PayrollOptions, PayrollRunPayload
from payrun.infra.storage.summaries import SummaryStore
from payrun.jobs.notifications import LogMailer, NotificationWorker
from payrun.jobs.payroll_worker import PayrollWorker, WorkerState, progress_percent
from payrun.jobs.queue import JobHandle
from payrun.models.core import EmployeeStatus
from payrun.payroll.payslips import PayslipGenerator

PERIOD = PayPeriod(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))


class FlakySummaryStore(SummaryStore):
    """Fails the first *failures* writes."""

    def __init__(self, directory, failures: int = 1) -> None:
        super().__init__(directory)
        self.failures = failures

    def write(self, summary):
        if self.failures:
            self.failures -= 1
            raise SummaryWriteError("Could not write payroll summary: disk full")
        return super().write(summary)


@pytest.fixture
def make_worker(queues, use_test_engine, clock, tmp_path):
    def _make(summaries=None) -> PayrollWorker:
        return PayrollWorker(
            queue=queues.payroll,
            engine=use_test_engine,
            payslips=PayslipGenerator(tmp_path / "payslips", clock),
            summaries=summaries or SummaryStore(tmp_path / "payrolls"),
            notifications=queues.email,
            clock=clock,
        )
    return _make


def _submit(queues, **kwargs):
    return queues.payroll.enqueue(PayrollRunPayload(pay_period=PERIOD, **kwargs))


def _summary(tmp_path) -> dict:
    files = sorted((tmp_path / "payrolls").glob("payroll_summary_*.json"))
    assert len(files) == 1
    return json.loads(files[0].read_text())


def test_single_employee_run_end_to_end(queues, make_worker, add_employee, tmp_path):
    employee_id = add_employee("Smith", 7_500_000, first_name="John")
    job = _submit(queues)
    worker = make_worker()

    done = worker.run_once()

    assert done.id == job.id
    assert done.state is JobState.COMPLETED
    assert done.progress == 100
    assert worker.state is WorkerState.DONE
    summary = done.result["summary"]
    assert done.result["success"] is True
    assert summary["employees_processed"] == 1
    assert summary["total_gross"] == "$75,000.00"
    assert summary["total_net"] == "$62,250.00"
    assert summary["payslips_generated"] == 1

    doc = _summary(tmp_path)
    assert doc["id"] == summary["payroll_id"]
    assert doc["total_net"] == 6_225_000
    assert doc["payroll_items"][0]["employee_id"] == employee_id
    assert doc["payslip_files"] == [f"payslips/payslip_{employee_id}_2024-01-01_2024-01-31.pdf"]
    assert (tmp_path / "payslips" / f"payslip_{employee_id}_2024-01-01_2024-01-31.pdf").is_file()


def test_bad_employee_is_skipped_not_fatal(queues, make_worker, add_employee, tmp_path):
    ids = [
        add_employee(f"Emp{i:02d}", -100 if i == 4 else 100_000)
        for i in range(1, 11)
    ]
    _submit(queues)

    done = make_worker().run_once()

    assert done.state is JobState.COMPLETED
    assert done.result["summary"]["employees_processed"] == 9
    assert done.result["summary"]["employees_skipped"] == 1
    doc = _summary(tmp_path)
    assert doc["total_employees"] == 9
    assert doc["eligible_employees"] == 10
    assert doc["skipped_employees"][0]["employee_id"] == ids[3]
    assert ids[3] not in [item["employee_id"] for item in doc["payroll_items"]]


def test_no_eligible_employees_fails_and_retries(queues, make_worker, add_employee, clock):
    add_employee("Gone", status=EmployeeStatus.TERMINATED)
    job = _submit(queues)
    worker = make_worker()

    first = worker.run_once()
    assert first.state is JobState.DELAYED
    assert first.last_error == "No eligible employees found for payroll processing"
    assert worker.state is WorkerState.ERRORED

    clock.advance(seconds=2)
    worker.run_once()
    clock.advance(seconds=4)
    final = worker.run_once()

    assert final.id == job.id
    assert final.state is JobState.FAILED
    assert final.attempts_made == 3
    assert final.failure_reason == "No eligible employees found for payroll processing"


def test_retry_after_summary_failure_does_not_double_count(queues, make_worker, add_employee, clock, tmp_path):
    for name in ("Alpha", "Bravo", "Charlie"):
        add_employee(name, 200_000)
    _submit(queues)
    worker = make_worker(FlakySummaryStore(tmp_path / "payrolls"))

    first = worker.run_once()
    assert first.state is JobState.DELAYED
    assert "disk full" in first.last_error

    clock.advance(seconds=2)
    second = worker.run_once()

    assert second.state is JobState.COMPLETED
    assert second.result["summary"]["employees_processed"] == 3
    doc = _summary(tmp_path)
    assert len(doc["payroll_items"]) == 3
    assert doc["total_gross"] == 600_000
    # payslips were overwritten in place, not duplicated
    assert len(list((tmp_path / "payslips").glob("*.pdf"))) == 3


def test_retry_after_summary_failure_mails_each_employee_once(queues, make_worker, add_employee, clock, tmp_path):
    for name in ("Alpha", "Bravo", "Charlie"):
        add_employee(name, 200_000)
    _submit(queues, options=PayrollOptions(send_emails=True))
    worker = make_worker(FlakySummaryStore(tmp_path / "payrolls"))

    first = worker.run_once()
    assert first.state is JobState.DELAYED
    assert queues.email.list() == []

    clock.advance(seconds=2)
    second = worker.run_once()

    assert second.state is JobState.COMPLETED
    assert second.result["summary"]["notifications_queued"] == 3
    emails = queues.email.list()
    assert len(emails) == 3
    assert sorted(j.payload["to"] for j in emails) == [
        "employee1@example.com", "employee2@example.com", "employee3@example.com",
    ]


def test_filters_limit_the_run(queues, make_worker, add_employee, tmp_path):
    eng = add_employee("Eng", department="Engineering")
    add_employee("Ops", department="Operations")
    other_eng = add_employee("Zed", department="Engineering")
    _submit(queues, filters=PayrollFilters(department="Engineering", employee_ids=[eng]))

    done = make_worker().run_once()

    assert done.result["summary"]["employees_processed"] == 1
    items = _summary(tmp_path)["payroll_items"]
    assert [i["employee_id"] for i in items] == [eng]
    assert other_eng not in [i["employee_id"] for i in items]


def test_employees_are_processed_in_name_order(queues, make_worker, add_employee, tmp_path):
    c = add_employee("Carter")
    a = add_employee("Adams")
    b = add_employee("Baker")
    _submit(queues)

    make_worker().run_once()

    assert [i["employee_id"] for i in _summary(tmp_path)["payroll_items"]] == [a, b, c]


def test_skip_payslips_writes_no_documents(queues, make_worker, add_employee, tmp_path):
    add_employee("Smith")
    _submit(queues, options=PayrollOptions(skip_payslips=True, send_emails=True))

    done = make_worker().run_once()

    assert done.result["summary"]["payslips_generated"] == 0
    assert done.result["summary"]["notifications_queued"] == 0
    assert not list((tmp_path / "payslips").glob("*.pdf"))


def test_send_emails_queues_one_notification_per_payslip(queues, make_worker, add_employee):
    add_employee("Smith")
    add_employee("Jones")
    _submit(queues, options=PayrollOptions(send_emails=True))

    done = make_worker().run_once()
    assert done.result["summary"]["notifications_queued"] == 2

    mailer = LogMailer()
    sent = NotificationWorker(queues.email, mailer).drain()

    assert [j.state for j in sent] == [JobState.COMPLETED, JobState.COMPLETED]
    assert sorted(m.to for m in mailer.sent) == ["employee1@example.com", "employee2@example.com"]
    assert all(m.attachment.is_file() for m in mailer.sent)


def test_wrong_payload_kind_fails_the_job(queues, make_worker):
    from payrun.domain.payloads import NotificationPayload

    queues.payroll.enqueue(NotificationPayload(
        to="x@example.com", employee_name="X", payslip_path="/nope.pdf", pay_period=PERIOD,
    ))

    worker = make_worker()
    # the lane only claims payroll jobs by name, so hand the job over directly
    job = queues.payroll.claim_next(worker_id=worker.worker_id)
    done = worker.process(JobHandle(queues.payroll, job, token=worker.worker_id))

    assert done.state is JobState.DELAYED
    assert "cannot process" in done.last_error


def test_idle_lane_returns_none(make_worker):
    worker = make_worker()
    assert worker.run_once() is None
    assert worker.state is WorkerState.IDLE


@pytest.mark.parametrize("done,total,expected", [(1, 3, 33), (2, 3, 67), (3, 3, 100), (1, 8, 13)])
def test_progress_percent_rounds_half_up(done, total, expected):
    assert progress_percent(done, total) == expected
