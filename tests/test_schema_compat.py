from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, text

from payrun.infra.db.schema_compat import ensure_schema_compat


def _column_names(db_path: Path, table_name: str) -> set[str]:
    engine = create_engine(f"sqlite:///{db_path}")
    with engine.connect() as conn:
        rows = conn.execute(text(f"PRAGMA table_info({table_name})")).fetchall()
    return {row[1] for row in rows}


def _index_names(db_path: Path, table_name: str) -> set[str]:
    engine = create_engine(f"sqlite:///{db_path}")
    with engine.connect() as conn:
        rows = conn.execute(text(f"PRAGMA index_list({table_name})")).fetchall()
    return {row[1] for row in rows}


def test_ensure_schema_compat_backfills_job_columns_for_legacy_db(tmp_path):
    db_path = tmp_path / "legacy.db"
    engine = create_engine(f"sqlite:///{db_path}")
    with engine.begin() as conn:
        conn.execute(
            text(
                """
                CREATE TABLE job (
                    id INTEGER PRIMARY KEY,
                    queue VARCHAR NOT NULL,
                    name VARCHAR NOT NULL,
                    state VARCHAR NOT NULL,
                    payload JSON NOT NULL,
                    priority INTEGER NOT NULL,
                    progress INTEGER NOT NULL,
                    attempts_made INTEGER NOT NULL,
                    max_attempts INTEGER NOT NULL,
                    backoff_delay_ms INTEGER NOT NULL,
                    result JSON,
                    failure_reason VARCHAR,
                    created_at DATETIME NOT NULL,
                    processed_at DATETIME,
                    finished_at DATETIME
                )
                """
            )
        )

    ensure_schema_compat(engine)

    columns = _column_names(db_path, "job")
    assert {"available_at", "heartbeat_at", "last_error", "locked_by"} <= columns
    assert "ix_job_state" in _index_names(db_path, "job")

    # idempotent: running again should not fail and should keep schema intact
    ensure_schema_compat(engine)
    assert "heartbeat_at" in _column_names(db_path, "job")


def test_ensure_schema_compat_ignores_missing_job_table(tmp_path):
    db_path = tmp_path / "empty.db"
    engine = create_engine(f"sqlite:///{db_path}")

    ensure_schema_compat(engine)

    assert _column_names(db_path, "job") == set()
