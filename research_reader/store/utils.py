from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager

from ..errors import StoreFailure
from ..models import now_iso

__all__ = ["now_iso", "store_errors"]


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except sqlite3.Error as exc:
        raise StoreFailure(f"Failed to {action}") from exc
