"""Payslip rendering and storage."""
from datetime import date, datetime
from decimal import Decimal

import pytest

from payrun.domain.clock import FixedClock
from payrun.domain.exceptions import ArtifactWriteError
from payrun.domain.payloads import PayPeriod
from payrun.payroll.calculator import EmployeeSnapshot, PayrollRates, calculate
from payrun.payroll.payslips import PayslipGenerator, payslip_filename, render_payslip

PERIOD = PayPeriod(start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))
RATES = PayrollRates(Decimal("0.10"), Decimal("0.02"), Decimal("0.05"))


@pytest.fixture
def result():
    return calculate(EmployeeSnapshot(7, "John", "Smith", 7_500_000), PERIOD, RATES, "USD")


def test_render_produces_pdf(result):
    data = render_payslip(result, datetime(2024, 2, 1, 9, 30))
    assert data.startswith(b"%PDF")


def test_filename_is_keyed_by_employee_and_period(result):
    assert payslip_filename(result) == "payslip_7_2024-01-01_2024-01-31.pdf"


def test_generate_writes_file_and_reference(result, tmp_path):
    artifact = PayslipGenerator(tmp_path, FixedClock()).generate(result)

    assert artifact.file_path == tmp_path / "payslip_7_2024-01-01_2024-01-31.pdf"
    assert artifact.file_path.read_bytes().startswith(b"%PDF")
    assert artifact.file_reference == "payslips/payslip_7_2024-01-01_2024-01-31.pdf"
    assert artifact.pay_period == ("2024-01-01", "2024-01-31")


def test_regenerating_overwrites_in_place(result, tmp_path):
    clock = FixedClock()
    generator = PayslipGenerator(tmp_path, clock)

    generator.generate(result)
    clock.advance(days=1)
    generator.generate(result)

    assert [p.name for p in tmp_path.iterdir()] == ["payslip_7_2024-01-01_2024-01-31.pdf"]


def test_write_failure_is_wrapped(result, tmp_path):
    blocked = tmp_path / "blocked"
    blocked.write_text("not a directory")

    with pytest.raises(ArtifactWriteError):
        PayslipGenerator(blocked).generate(result)
