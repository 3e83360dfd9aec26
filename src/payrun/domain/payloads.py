"""Job payload variants.

Every job carries exactly one of these payloads, tagged by ``kind``. Workers
parse the stored JSON back into the variant and dispatch on its type.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

PAYROLL_RUN = "process-payroll"
SEND_PAYSLIP = "send-payslip"


class PayPeriod(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_date: date
    end_date: date

    def is_valid(self) -> bool:
        return self.start_date < self.end_date


class PayrollFilters(BaseModel):
    department: str | None = None
    employee_ids: list[int] | None = None


class PayrollOptions(BaseModel):
    send_emails: bool = False
    skip_payslips: bool = False


class Requester(BaseModel):
    user_id: str
    email: str | None = None
    role: str


class PayrollRunPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["process-payroll"] = PAYROLL_RUN
    pay_period: PayPeriod
    filters: PayrollFilters = Field(default_factory=PayrollFilters)
    options: PayrollOptions = Field(default_factory=PayrollOptions)
    requested_by: Requester | None = None
    requested_at: datetime | None = None


class NotificationPayload(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["send-payslip"] = SEND_PAYSLIP
    to: str
    employee_name: str
    payslip_path: str
    pay_period: PayPeriod


JobPayload = Annotated[
    Union[PayrollRunPayload, NotificationPayload],
    Field(discriminator="kind"),
]

_adapter: TypeAdapter[JobPayload] = TypeAdapter(JobPayload)


def parse_payload(data: dict) -> PayrollRunPayload | NotificationPayload:
    """Rebuild the typed variant from stored job JSON."""
    return _adapter.validate_python(data)
