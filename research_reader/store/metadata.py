from __future__ import annotations

from typing import TYPE_CHECKING

from .utils import store_errors

if TYPE_CHECKING:
    from ._store import DocumentStore

TITLE_KEY = "title"
PAGE_COUNT_KEY = "page_count"
LAST_PAGE_KEY = "last_page"


def get_metadata(store: DocumentStore, key: str) -> str | None:
    with store_errors(f"read metadata {key!r}"):
        row = store.conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
    if row is None:
        return None
    return str(row["value"])


def set_metadata(store: DocumentStore, key: str, value: str) -> None:
    with store_errors(f"set metadata {key!r}"):
        store.conn.execute(
            """
            INSERT INTO metadata(key, value) VALUES (?, ?)
            ON CONFLICT(key) DO UPDATE SET value = excluded.value
            """,
            (key, value),
        )
        store.conn.commit()


def all_metadata(store: DocumentStore) -> dict[str, str]:
    with store_errors("read metadata"):
        rows = store.conn.execute("SELECT key, value FROM metadata ORDER BY key").fetchall()
    return {str(row["key"]): str(row["value"]) for row in rows}


def get_int_metadata(store: DocumentStore, key: str) -> int | None:
    value = get_metadata(store, key)
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None
