"""Per-employee payroll calculation.

Pure: no I/O, no clock, no session. All money is integer minor currency
units (cents). Each deduction is rounded on its own, half-up, so totals are
exact sums of the printed components.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from pydantic import BaseModel, ConfigDict

from payrun.config import settings
from payrun.domain.exceptions import InvalidEmployeeError
from payrun.domain.payloads import PayPeriod


class EmployeeLike(Protocol):
    id: int | None
    first_name: str
    last_name: str
    base_salary: int


@dataclass(frozen=True)
class EmployeeSnapshot:
    """Detached copy of the employee fields a payroll run reads."""

    id: int
    first_name: str
    last_name: str
    base_salary: int
    email: str | None = None
    department: str | None = None

    @classmethod
    def of(cls, employee) -> "EmployeeSnapshot":
        return cls(
            id=employee.id,
            first_name=employee.first_name,
            last_name=employee.last_name,
            base_salary=employee.base_salary,
            email=getattr(employee, "email", None),
            department=getattr(employee, "department", None),
        )


@dataclass(frozen=True)
class PayrollRates:
    tax: Decimal
    health_insurance: Decimal
    retirement_401k: Decimal

    @classmethod
    def from_settings(cls) -> "PayrollRates":
        # str() first: Decimal(0.1) would carry the binary float error
        return cls(
            tax=Decimal(str(settings.TAX_RATE)),
            health_insurance=Decimal(str(settings.HEALTH_INSURANCE_RATE)),
            retirement_401k=Decimal(str(settings.RETIREMENT_401K_RATE)),
        )

    def with_tax(self, rate: float | str | Decimal) -> "PayrollRates":
        return PayrollRates(Decimal(str(rate)), self.health_insurance, self.retirement_401k)


class ResultPeriod(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: str
    end: str


class Deductions(BaseModel):
    model_config = ConfigDict(frozen=True)

    tax: int
    health_insurance: int
    retirement_401k: int
    total: int


class PayrollCalculationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    employee_id: int
    employee_name: str
    pay_period: ResultPeriod
    gross_salary: int
    deductions: Deductions
    net_salary: int
    currency: str


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def percent_of(amount: int, rate: Decimal) -> int:
    return round_half_up(Decimal(amount) * rate)


def _validate(employee: EmployeeLike) -> int:
    if getattr(employee, "id", None) is None:
        raise InvalidEmployeeError("Employee record has no id")
    first = getattr(employee, "first_name", None)
    last = getattr(employee, "last_name", None)
    if not first or not last:
        raise InvalidEmployeeError(f"Employee {employee.id} is missing a name")
    salary = getattr(employee, "base_salary", None)
    if isinstance(salary, bool) or not isinstance(salary, int):
        raise InvalidEmployeeError(f"Employee {employee.id} has a non-integer salary: {salary!r}")
    if salary < 0:
        raise InvalidEmployeeError(f"Employee {employee.id} has a negative salary")
    return salary


def calculate(
    employee: EmployeeLike,
    pay_period: PayPeriod,
    rates: PayrollRates | None = None,
    currency: str | None = None,
) -> PayrollCalculationResult:
    """Gross, deductions and net for one employee over one pay period.

    Raises:
        InvalidEmployeeError: negative or non-integer salary, missing id/name.
    """
    gross = _validate(employee)
    rates = rates or PayrollRates.from_settings()

    tax = percent_of(gross, rates.tax)
    health = percent_of(gross, rates.health_insurance)
    retirement = percent_of(gross, rates.retirement_401k)
    total = tax + health + retirement

    return PayrollCalculationResult(
        employee_id=employee.id,
        employee_name=f"{employee.first_name} {employee.last_name}",
        pay_period=ResultPeriod(
            start=pay_period.start_date.isoformat(),
            end=pay_period.end_date.isoformat(),
        ),
        gross_salary=gross,
        deductions=Deductions(
            tax=tax,
            health_insurance=health,
            retirement_401k=retirement,
            total=total,
        ),
        net_salary=gross - total,
        currency=currency or settings.PAYROLL_CURRENCY,
    )


def format_currency(amount_minor: int, currency: str = "USD") -> str:
    """``7500000`` -> ``"$75,000.00"``; unknown currencies get a code prefix."""
    symbols = {"USD": "$", "EUR": "€", "GBP": "£"}
    sign = "-" if amount_minor < 0 else ""
    major, minor = divmod(abs(amount_minor), 100)
    prefix = symbols.get(currency.upper(), f"{currency.upper()} ")
    return f"{sign}{prefix}{major:,}.{minor:02d}"
