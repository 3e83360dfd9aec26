"""Payslip PDF rendering and storage.

One document per ``(employee_id, pay_period)``:
``{PAYSLIPS_DIR}/payslip_{employee_id}_{start}_{end}.pdf``. Regenerating the
same key replaces the file atomically.
"""
from __future__ import annotations

import io
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

from payrun.domain.clock import Clock, SystemClock
from payrun.domain.exceptions import ArtifactWriteError
from payrun.infra.storage.files import atomic_write_bytes, sanitize_component
from payrun.payroll.calculator import PayrollCalculationResult, format_currency

REFERENCE_PREFIX = "payslips"


@dataclass(frozen=True)
class PayslipArtifact:
    employee_id: int
    pay_period: tuple[str, str]
    file_name: str
    file_path: Path
    file_reference: str


def payslip_filename(result: PayrollCalculationResult) -> str:
    parts = (str(result.employee_id), result.pay_period.start, result.pay_period.end)
    return "payslip_" + "_".join(sanitize_component(p) for p in parts) + ".pdf"


def render_payslip(result: PayrollCalculationResult, generated_at: datetime) -> bytes:
    buf = io.BytesIO()
    pdf = canvas.Canvas(buf, pagesize=letter)
    pdf.setTitle(f"Payslip {result.employee_name} {result.pay_period.start}")
    _, height = letter
    money = lambda amount: format_currency(amount, result.currency)  # noqa: E731

    def line(y: float, text: str, size: int = 11, bold: bool = False) -> None:
        pdf.setFont("Helvetica-Bold" if bold else "Helvetica", size)
        pdf.drawString(50, height - y, text)

    line(50, "PAYSLIP", 20, bold=True)
    line(80, f"Pay Period: {result.pay_period.start} to {result.pay_period.end}", 12)

    line(120, "Employee Information", 14, bold=True)
    line(145, f"Name: {result.employee_name}")
    line(160, f"Employee ID: {result.employee_id}")

    line(200, "Earnings", 14, bold=True)
    line(225, f"Gross Salary: {money(result.gross_salary)}")

    d = result.deductions
    line(260, "Deductions", 14, bold=True)
    line(285, f"Tax: {money(d.tax)}")
    line(300, f"Health Insurance: {money(d.health_insurance)}")
    line(315, f"401(k): {money(d.retirement_401k)}")
    line(330, f"Total Deductions: {money(d.total)}")

    line(370, f"NET PAY: {money(result.net_salary)}", 16, bold=True)

    line(450, "This is a computer-generated payslip.", 10)
    line(465, f"Generated on: {generated_at.strftime('%Y-%m-%d %H:%M:%S')} UTC", 10)

    pdf.showPage()
    pdf.save()
    return buf.getvalue()


class PayslipGenerator:
    def __init__(self, directory: Path, clock: Clock | None = None) -> None:
        self._dir = Path(directory)
        self._clock = clock or SystemClock()

    def generate(self, result: PayrollCalculationResult) -> PayslipArtifact:
        """Render and store the payslip for *result*.

        Raises:
            ArtifactWriteError: rendering or the filesystem write failed. The
                caller treats this as a per-employee failure.
        """
        file_name = payslip_filename(result)
        try:
            data = render_payslip(result, self._clock.now())
            path = atomic_write_bytes(self._dir / file_name, data)
        except Exception as exc:
            raise ArtifactWriteError(
                f"Payslip for employee {result.employee_id} could not be written: {exc}"
            ) from exc
        return PayslipArtifact(
            employee_id=result.employee_id,
            pay_period=(result.pay_period.start, result.pay_period.end),
            file_name=file_name,
            file_path=path,
            file_reference=f"{REFERENCE_PREFIX}/{file_name}",
        )
