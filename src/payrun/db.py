"""Engine singleton; created once at import from ``settings.DATABASE_URL``."""
from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import make_url
from sqlmodel import create_engine

from payrun.config import settings


def _make_engine(url: str):
    parsed = make_url(url)
    connect_args: dict = {}
    if parsed.get_backend_name() == "sqlite":
        # worker lanes run on their own threads
        connect_args["check_same_thread"] = False
        if parsed.database and parsed.database != ":memory:":
            Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, echo=False, connect_args=connect_args)


engine = _make_engine(settings.DATABASE_URL)
