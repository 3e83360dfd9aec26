import os
import sys
import time
from datetime import date, datetime, timedelta
from pathlib import Path

import typer

from payrun.config import settings
from payrun.logging import logger, get_run_id

app = typer.Typer(no_args_is_help=True)


@app.callback()
def main():
    """
    Payrun payroll CLI.
    """
    pass


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"{value!r} is not a YYYY-MM-DD date") from None


@app.command(name="doctor")
def doctor():
    """
    Check configuration, storage directories and the job store.
    """
    logger.info("Running doctor check...")

    failures: list[str] = []
    passed = 0

    print("\nPayrun Doctor\n")

    print("[Environment]")
    print(f"  Python: {sys.version.split()[0]}")
    print(f"  Run ID: {get_run_id()}")
    passed += 1

    print("\n[Payroll]")
    print(f"  TAX_RATE:               {settings.TAX_RATE}")
    print(f"  HEALTH_INSURANCE_RATE:  {settings.HEALTH_INSURANCE_RATE}")
    print(f"  RETIREMENT_401K_RATE:   {settings.RETIREMENT_401K_RATE}")
    print(f"  PAYROLL_CURRENCY:       {settings.PAYROLL_CURRENCY}")
    print(f"  SMTP_HOST:              {settings.SMTP_HOST or '(unset, mail is logged only)'}")

    print("\n[Storage]")
    storage = (
        ("DATA_DIR", settings.DATA_DIR),
        ("PAYSLIPS_DIR", settings.PAYSLIPS_DIR),
        ("PAYROLLS_DIR", settings.PAYROLLS_DIR),
    )
    for label, directory in storage:
        directory = Path(directory)
        target = directory if directory.exists() else directory.parent
        if target.exists() and os.access(target, os.W_OK):
            print(f"  {label:<22}  OK  {directory.absolute()}")
            passed += 1
        else:
            print(f"  {label:<22}  FAIL  {directory.absolute()}")
            failures.append(f"{label} ({directory}) is not writable")

    print("\n[Job store]")
    from payrun.infra.db.engine import engine
    from payrun.jobs.queue import create_queues
    from payrun.domain.exceptions import QueueUnavailableError
    try:
        queues = create_queues(engine).connect()
        for queue in queues.all():
            print(f"  {queue.name:<22}  OK  {queue.counts()}")
        queues.close()
        passed += 1
    except QueueUnavailableError as e:
        print(f"  database                FAIL  {e.message}")
        failures.append("Job store is unreachable, check DATABASE_URL")

    total = passed + len(failures)
    print(f"\n{'-' * 50}")
    if failures:
        print(f"Result: {passed}/{total} checks passed\n")
        for msg in failures:
            print(f"  FAIL {msg}")
        print()
        raise typer.Exit(code=1)
    else:
        print(f"Result: {passed}/{total} checks passed")
        print()


db_app = typer.Typer(help="Database management commands.")
app.add_typer(db_app, name="db")


@db_app.command("init")
def init():
    """Create the employee and job tables."""
    from sqlmodel import SQLModel
    from payrun.infra.db.engine import engine
    from payrun.infra.db.schema_compat import ensure_schema_compat
    try:
        SQLModel.metadata.create_all(engine)
        ensure_schema_compat(engine)
        logger.info("Database initialized successfully.")
        print("Database initialized.")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        print(f"Failed: {e}")
        raise typer.Exit(code=1)


user_app = typer.Typer(help="User account commands.")
app.add_typer(user_app, name="user")


@user_app.command("create")
def user_create(
    email: str = typer.Option(..., help="Login email"),
    password: str = typer.Option(..., prompt=True, hide_input=True, confirmation_prompt=True),
    role: str = typer.Option("admin", help="admin, hr, manager or employee"),
):
    """Create an account directly in the database (local shell only)."""
    from pydantic import ValidationError as DTOValidationError
    from payrun.api.schemas.auth import UserRegister
    from payrun.domain.exceptions import PayrunError
    from payrun.domain.payloads import Requester
    from payrun.infra.db.uow import UnitOfWork
    from payrun.services.auth_service import AuthService
    try:
        data = UserRegister(email=email, password=password, role=role)
        with UnitOfWork() as uow:
            # the local shell acts with admin rights
            created = AuthService(uow).register(data, Requester(user_id="cli", role="admin"))
    except DTOValidationError as e:
        print(f"Failed: {e.errors()[0]['msg']}")
        raise typer.Exit(code=1)
    except PayrunError as e:
        print(f"Failed: {e.message}")
        raise typer.Exit(code=1)
    print(f"Created user {created.user.id} ({created.user.email}, {created.user.role.value})")


@app.command("login")
def login(
    email: str = typer.Option(..., help="Login email"),
    password: str = typer.Option(..., prompt=True, hide_input=True),
):
    """Log in against the API and print an access token for API_TOKEN."""
    from payrun.api_client import APIError, PayrunClient

    with PayrunClient() as client:
        try:
            auth = client.login(email, password)
        except APIError as e:
            print(f"Failed: {e}")
            raise typer.Exit(code=1)
    print(f"Logged in as {auth.user.email} ({auth.user.role.value})")
    print(f"export API_TOKEN={auth.access_token}")


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", help="Bind address"),
    port: int = typer.Option(8000, help="Bind port"),
    workers_in_process: bool = typer.Option(
        False, "--with-workers", help="Also run the payroll and email lanes in this process",
    ),
):
    """Run the HTTP API."""
    import uvicorn
    if workers_in_process:
        settings.RUN_WORKERS_IN_PROCESS = True
    uvicorn.run("payrun.api.app:create_app", factory=True, host=host, port=port)


@app.command("worker")
def worker(
    lanes: list[str] = typer.Option(["payroll", "email"], "--lane", help="Lanes to serve"),
    once: bool = typer.Option(False, help="Drain the lanes once and exit"),
):
    """Process queued jobs until interrupted."""
    from payrun.infra.db.engine import engine
    from payrun.jobs.notifications import NotificationWorker
    from payrun.jobs.payroll_worker import build_payroll_worker
    from payrun.jobs.queue import EMAIL_QUEUE, PAYROLL_QUEUE, create_queues
    from payrun.jobs.runner import LaneRunner, Sweeper

    unknown = set(lanes) - {PAYROLL_QUEUE, EMAIL_QUEUE}
    if unknown:
        raise typer.BadParameter(f"Unknown lane(s): {', '.join(sorted(unknown))}")

    queues = create_queues(engine).connect()
    workers = []
    if PAYROLL_QUEUE in lanes:
        workers.append(build_payroll_worker(queues, engine))
    if EMAIL_QUEUE in lanes:
        workers.append(NotificationWorker(queues.email))

    if once:
        for w in workers:
            done = w.drain()
            print(f"{w.queue.name}: processed {len(done)} job(s)")
        queues.close()
        return

    runners = [LaneRunner(w) for w in workers] + [Sweeper(queues)]
    for runner in runners:
        runner.start()
    print(f"Serving lanes {', '.join(lanes)}; Ctrl-C to stop.")
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\nStopping...")
    finally:
        for runner in runners:
            runner.stop()
        queues.close()


@app.command("clean")
def clean(
    completed_hours: int | None = typer.Option(None, help="Override COMPLETED_RETENTION_HOURS"),
    failed_days: int | None = typer.Option(None, help="Override FAILED_RETENTION_DAYS"),
):
    """Delete finished jobs past their retention window."""
    from payrun.domain.jobs import JobState
    from payrun.infra.db.engine import engine
    from payrun.jobs.queue import create_queues

    completed = timedelta(hours=completed_hours if completed_hours is not None else settings.COMPLETED_RETENTION_HOURS)
    failed = timedelta(days=failed_days if failed_days is not None else settings.FAILED_RETENTION_DAYS)
    queues = create_queues(engine).connect()
    try:
        for queue in queues.all():
            done = queue.clean(completed, JobState.COMPLETED)
            dead = queue.clean(failed, JobState.FAILED)
            recovered = queue.recover_stalled()
            print(f"{queue.name}: removed {done} completed, {dead} failed; recovered {recovered} stalled")
    finally:
        queues.close()


@app.command("calc")
def calc(
    salary: int = typer.Argument(..., help="Base salary in minor units (cents)"),
    start: str = typer.Option(..., help="Pay period start, YYYY-MM-DD"),
    end: str = typer.Option(..., help="Pay period end, YYYY-MM-DD"),
    tax_rate: float | None = typer.Option(None, help="Override TAX_RATE"),
):
    """Print the payroll breakdown for one salary."""
    from payrun.domain.exceptions import InvalidEmployeeError
    from payrun.domain.payloads import PayPeriod
    from payrun.payroll.calculator import EmployeeSnapshot, PayrollRates, calculate, format_currency

    period = PayPeriod(start_date=_parse_date(start), end_date=_parse_date(end))
    rates = PayrollRates.from_settings()
    if tax_rate is not None:
        rates = rates.with_tax(tax_rate)
    try:
        result = calculate(EmployeeSnapshot(0, "Ad", "Hoc", salary), period, rates)
    except InvalidEmployeeError as e:
        print(f"Failed: {e.message}")
        raise typer.Exit(code=1)
    money = lambda amount: format_currency(amount, result.currency)  # noqa: E731
    d = result.deductions
    print(f"Gross:            {money(result.gross_salary)}")
    print(f"Tax:              {money(d.tax)}")
    print(f"Health insurance: {money(d.health_insurance)}")
    print(f"401(k):           {money(d.retirement_401k)}")
    print(f"Total deductions: {money(d.total)}")
    print(f"Net:              {money(result.net_salary)}")


payroll_app = typer.Typer(help="Submit and follow payroll runs on a running server.")
app.add_typer(payroll_app, name="payroll")


@payroll_app.command("run")
def payroll_run(
    start: str = typer.Option(..., help="Pay period start, YYYY-MM-DD"),
    end: str = typer.Option(..., help="Pay period end, YYYY-MM-DD"),
    department: str | None = typer.Option(None, help="Only this department"),
    employee_id: list[int] | None = typer.Option(None, "--employee-id", help="Only these employees"),
    send_emails: bool = typer.Option(False, help="Email each payslip"),
    skip_payslips: bool = typer.Option(False, help="Do not render payslip PDFs"),
    force: bool = typer.Option(False, help="Queue even if a run for this period is in flight"),
    wait: bool = typer.Option(False, help="Poll until the job finishes"),
):
    """Queue a payroll run."""
    from payrun.api_client import APIError, PayrunClient

    with PayrunClient() as client:
        try:
            resp = client.run_payroll(
                _parse_date(start), _parse_date(end),
                department=department,
                employee_ids=employee_id or None,
                send_emails=send_emails,
                skip_payslips=skip_payslips,
                force=force,
            )
        except APIError as e:
            print(f"Failed: {e}")
            if e.existing_job_id is not None:
                print(f"  existing job: {e.existing_job_id} (use --force to queue anyway)")
            raise typer.Exit(code=1)
        print(f"{resp.message}: job {resp.job.id}, queue position {resp.job.queue_position}")
        if wait:
            _follow(client, resp.job.id)


@payroll_app.command("status")
def payroll_status(job_id: int, wait: bool = typer.Option(False, help="Poll until the job finishes")):
    """Show one payroll job."""
    from payrun.api_client import APIError, PayrunClient

    with PayrunClient() as client:
        try:
            if wait:
                _follow(client, job_id)
                return
            job = client.job_status(job_id).job
        except APIError as e:
            print(f"Failed: {e}")
            raise typer.Exit(code=1)
        _print_job(job)


def _print_job(job) -> None:
    print(f"Job {job.id}: {job.status.value} ({job.progress}%), attempt {job.attempts_made}/{job.max_attempts}")
    if job.result:
        for key, value in job.result.get("summary", {}).items():
            print(f"  {key}: {value}")
    if job.failure_reason:
        print(f"  failure: {job.failure_reason}")
    elif job.last_error:
        print(f"  last error: {job.last_error}")


def _follow(client, job_id: int, interval: float = 1.0) -> None:
    started = datetime.now()
    while True:
        job = client.job_status(job_id).job
        if job.status.value in ("completed", "failed"):
            _print_job(job)
            if job.status.value == "failed":
                raise typer.Exit(code=1)
            return
        print(f"  {job.status.value} {job.progress}% ({(datetime.now() - started).seconds}s)")
        time.sleep(interval)


if __name__ == "__main__":
    app()
