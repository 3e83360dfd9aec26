"""Runtime DB compatibility helpers for job stores created by older releases.

Heartbeats and retry bookkeeping were added to ``job`` after the first
deployments; ``SQLModel.metadata.create_all()`` never alters existing tables,
so the missing columns are backfilled here.
"""

from __future__ import annotations

import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger(__name__)

_JOB_COLUMNS = {
    "available_at": "DATETIME",
    "heartbeat_at": "DATETIME",
    "last_error": "VARCHAR",
    "locked_by": "VARCHAR",
}


def ensure_schema_compat(engine: Engine) -> None:
    """Add any job columns an existing database is missing."""
    with engine.begin() as conn:
        _ensure_job_columns(conn)


def _ensure_job_columns(conn: Connection) -> None:
    inspector = inspect(conn)
    if not inspector.has_table("job"):
        return

    present = {col["name"] for col in inspector.get_columns("job")}
    for column_name, column_type in _JOB_COLUMNS.items():
        if column_name not in present:
            conn.execute(text(f"ALTER TABLE job ADD COLUMN {column_name} {column_type}"))
            logger.info("Applied compatibility upgrade: added job.%s", column_name)

    indexes = {ix["name"] for ix in inspector.get_indexes("job")}
    if "ix_job_state" not in indexes:
        conn.execute(text("CREATE INDEX ix_job_state ON job (state)"))
