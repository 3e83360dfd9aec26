"""JSON payroll summary documents, one per completed payroll job.

Layout: ``{PAYROLLS_DIR}/payroll_summary_{start}_{end}_{job_id}_{created_ms}.json``
with ``id = payroll_{job_id}_{created_ms}``. The id is derived from the job,
not the wall clock, so a retried job rewrites its own document instead of
adding a second one.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from payrun.domain.exceptions import NotFoundError, SummaryWriteError
from payrun.infra.storage.files import atomic_write_bytes

logger = logging.getLogger(__name__)

PREFIX = "payroll_summary_"
LIST_LIMIT = 50
_LIST_FIELDS = (
    "id", "job_id", "pay_period", "processed_at", "total_employees",
    "total_gross", "total_deductions", "total_net", "currency", "filters", "options",
)


def summary_id_for(job_id: int, created_ms: int) -> str:
    return f"payroll_{job_id}_{created_ms}"


class SummaryStore:
    def __init__(self, directory: Path) -> None:
        self._dir = Path(directory)

    def filename_for(self, summary: dict[str, Any]) -> str:
        period = summary["pay_period"]
        suffix = summary["id"].removeprefix("payroll_")
        return f"{PREFIX}{period['start_date']}_{period['end_date']}_{suffix}.json"

    def write(self, summary: dict[str, Any]) -> Path:
        """Persist *summary*; raises SummaryWriteError on any storage failure."""
        try:
            data = json.dumps(summary, indent=2, default=str).encode("utf-8")
            return atomic_write_bytes(self._dir / self.filename_for(summary), data)
        except (OSError, TypeError, ValueError, KeyError) as exc:
            raise SummaryWriteError(f"Could not write payroll summary: {exc}") from exc

    def _files(self) -> list[Path]:
        if not self._dir.is_dir():
            return []
        return [p for p in self._dir.iterdir() if p.name.startswith(PREFIX) and p.suffix == ".json"]

    def _read(self, path: Path) -> dict[str, Any]:
        return json.loads(path.read_text(encoding="utf-8"))

    def list_recent(self, limit: int = LIST_LIMIT) -> list[dict[str, Any]]:
        """Summaries without their per-employee items, newest first."""
        items: list[dict[str, Any]] = []
        for path in self._files():
            try:
                doc = self._read(path)
            except (OSError, ValueError) as exc:
                logger.error("Skipping unreadable payroll summary %s: %s", path.name, exc)
                continue
            items.append({key: doc.get(key) for key in _LIST_FIELDS})
        items.sort(key=lambda s: s.get("processed_at") or "", reverse=True)
        return items[:limit]

    def get(self, summary_id: str) -> dict[str, Any]:
        suffix = summary_id.removeprefix("payroll_")
        for path in self._files():
            if path.stem.endswith(f"_{suffix}"):
                doc = self._read(path)
                if doc.get("id") == summary_id:
                    return doc
        raise NotFoundError(f"Payroll {summary_id} not found")
