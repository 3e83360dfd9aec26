"""CLI commands that run without a server."""
from typer.testing import CliRunner

from payrun.cli import app

runner = CliRunner()


def test_calc_prints_breakdown():
    result = runner.invoke(app, ["calc", "7500000", "--start", "2024-01-01", "--end", "2024-01-31"])

    assert result.exit_code == 0
    assert "$75,000.00" in result.output
    assert "$12,750.00" in result.output
    assert "$62,250.00" in result.output


def test_calc_tax_override():
    result = runner.invoke(app, [
        "calc", "7500000", "--start", "2024-01-01", "--end", "2024-01-31", "--tax-rate", "0.15",
    ])

    assert result.exit_code == 0
    assert "$11,250.00" in result.output


def test_calc_rejects_negative_salary():
    result = runner.invoke(app, ["calc", "--start", "2024-01-01", "--end", "2024-01-31", "--", "-5"])
    assert result.exit_code == 1


def test_calc_rejects_bad_date():
    result = runner.invoke(app, ["calc", "100", "--start", "January", "--end", "2024-01-31"])
    assert result.exit_code != 0


def test_db_init_creates_tables(use_test_engine):
    result = runner.invoke(app, ["db", "init"])
    assert result.exit_code == 0
    assert "Database initialized." in result.output


def test_user_create_stores_a_hashed_password(use_test_engine):
    from sqlmodel import Session, select

    from payrun.models.core import User, UserRole

    result = runner.invoke(app, [
        "user", "create", "--email", "root@example.com", "--password", "s3cret-pw", "--role", "hr",
    ])

    assert result.exit_code == 0
    assert "root@example.com, hr" in result.output
    with Session(use_test_engine) as s:
        user = s.exec(select(User)).one()
    assert user.role is UserRole.HR
    assert user.password_hash != "s3cret-pw"


def test_user_create_rejects_short_password(use_test_engine):
    result = runner.invoke(app, ["user", "create", "--email", "root@example.com", "--password", "123"])
    assert result.exit_code == 1
