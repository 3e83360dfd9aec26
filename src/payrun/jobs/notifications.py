"""Email lane: delivers payslip notifications queued by payroll runs."""
from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from pathlib import Path
from typing import Protocol

from payrun.config import settings
from payrun.domain.exceptions import PayrunError
from payrun.domain.jobs import Job
from payrun.domain.payloads import SEND_PAYSLIP, NotificationPayload
from payrun.jobs.queue import JobHandle, JobQueue
from payrun.jobs.runner import QueueWorker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutgoingMail:
    to: str
    subject: str
    body: str
    attachment: Path | None = None


class Mailer(Protocol):
    def send(self, mail: OutgoingMail) -> None: ...


class LogMailer:
    """Records mail in the log instead of sending it; used when SMTP is not configured."""

    def __init__(self) -> None:
        self.sent: list[OutgoingMail] = []

    def send(self, mail: OutgoingMail) -> None:
        self.sent.append(mail)
        logger.info("Mail to %s: %s (attachment=%s)", mail.to, mail.subject, mail.attachment)


class SmtpMailer:
    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        sender: str = "payroll@example.com",
        use_tls: bool = True,
    ) -> None:
        self._host = host
        self._port = port
        self._username = username
        self._password = password
        self._sender = sender
        self._use_tls = use_tls

    def send(self, mail: OutgoingMail) -> None:
        msg = EmailMessage()
        msg["From"] = self._sender
        msg["To"] = mail.to
        msg["Subject"] = mail.subject
        msg.set_content(mail.body)
        if mail.attachment is not None:
            msg.add_attachment(
                mail.attachment.read_bytes(),
                maintype="application",
                subtype="pdf",
                filename=mail.attachment.name,
            )
        with smtplib.SMTP(self._host, self._port, timeout=30) as smtp:
            if self._use_tls:
                smtp.starttls()
            if self._username:
                smtp.login(self._username, self._password or "")
            smtp.send_message(msg)


def build_mailer() -> Mailer:
    if not settings.SMTP_HOST:
        return LogMailer()
    password = settings.SMTP_PASSWORD.get_secret_value() if settings.SMTP_PASSWORD else None
    return SmtpMailer(
        host=settings.SMTP_HOST,
        port=settings.SMTP_PORT,
        username=settings.SMTP_USERNAME,
        password=password,
        sender=settings.SMTP_SENDER,
        use_tls=settings.SMTP_USE_TLS,
    )


def payslip_mail(payload: NotificationPayload) -> OutgoingMail:
    period = payload.pay_period
    return OutgoingMail(
        to=payload.to,
        subject=f"Your payslip for {period.start_date} to {period.end_date}",
        body=(
            f"Hello {payload.employee_name},\n\n"
            f"Your payslip for the pay period {period.start_date} to {period.end_date} "
            "is attached.\n"
        ),
        attachment=Path(payload.payslip_path),
    )


class NotificationWorker(QueueWorker):
    job_name = SEND_PAYSLIP

    def __init__(self, queue: JobQueue, mailer: Mailer | None = None) -> None:
        super().__init__(queue)
        self._mailer = mailer or build_mailer()

    def process(self, handle: JobHandle) -> Job:
        try:
            payload = handle.payload
            if not isinstance(payload, NotificationPayload):
                raise PayrunError(f"Email lane cannot process '{payload.kind}' jobs")
            mail = payslip_mail(payload)
            if mail.attachment is not None and not mail.attachment.is_file():
                raise PayrunError(f"Payslip {mail.attachment} no longer exists")
            self._mailer.send(mail)
        except Exception as exc:
            reason = exc.message if isinstance(exc, PayrunError) else f"{type(exc).__name__}: {exc}"
            logger.error("Job %s: payslip email failed: %s", handle.id, reason)
            return handle.fail(reason)
        return handle.complete({"to": payload.to, "subject": mail.subject})
