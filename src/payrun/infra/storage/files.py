"""Filesystem helpers shared by the payslip and summary stores."""
from __future__ import annotations

import os
import re
import tempfile
from pathlib import Path

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_component(value: str) -> str:
    """Make *value* safe to embed in a file name."""
    return _UNSAFE.sub("_", value).strip("_") or "x"


def atomic_write_bytes(path: Path, data: bytes) -> Path:
    """Write *data* next to *path* then rename over it.

    Readers see either the previous file or the complete new one, never a
    partial write, so re-running a payroll overwrites cleanly.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    return path
