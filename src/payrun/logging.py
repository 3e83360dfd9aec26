"""Process-wide logging setup.

Every record carries a ``run_id`` that identifies this process, so lines from
the API and the worker lanes can be told apart in a shared log stream.
"""
from __future__ import annotations

import logging
import sys
import uuid

from payrun.config import settings

_RUN_ID = uuid.uuid4().hex[:12]
_FORMAT = "%(asctime)s %(levelname)-8s [%(run_id)s] %(name)s: %(message)s"


def get_run_id() -> str:
    return _RUN_ID


class _RunIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _RUN_ID
        return True


def configure_logging(level: str | None = None) -> logging.Logger:
    """Attach a stream handler to the ``payrun`` logger (idempotent)."""
    root = logging.getLogger("payrun")
    root.setLevel((level or settings.LOG_LEVEL).upper())
    if not any(getattr(h, "_payrun", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler.addFilter(_RunIdFilter())
        handler._payrun = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    return root


logger = configure_logging()
