from __future__ import annotations

import sqlite3
from typing import TYPE_CHECKING
from uuid import uuid4

from ..errors import InvalidRecordEncoding, ValidationFailure
from ..models import (
    Annotation,
    AnnotationType,
    CreateAnnotationInput,
    PositionData,
    UpdateAnnotationInput,
)
from . import utils as store_utils
from .utils import store_errors

if TYPE_CHECKING:
    from ._store import DocumentStore

_COLUMNS = "id, type, page_number, color, content, position_data, created_at, updated_at"


def _row_to_annotation(row: sqlite3.Row) -> Annotation:
    raw_position = row["position_data"]
    position: PositionData | None = None
    if raw_position is not None:
        try:
            position = PositionData.from_json(str(raw_position))
        except InvalidRecordEncoding as exc:
            raise InvalidRecordEncoding(
                f"Annotation {row['id']} has malformed position_data"
            ) from exc
    return Annotation(
        id=str(row["id"]),
        type=AnnotationType.parse(row["type"]),
        page_number=int(row["page_number"]),
        color=row["color"],
        content=row["content"],
        position_data=position,
        created_at=str(row["created_at"]),
        updated_at=str(row["updated_at"]),
    )


def list_annotations(store: DocumentStore, page_number: int | None = None) -> list[Annotation]:
    # rowid breaks ties between annotations created within the same microsecond.
    if page_number is None:
        sql = (
            f"SELECT {_COLUMNS} FROM annotations "
            "ORDER BY page_number ASC, created_at ASC, rowid ASC"
        )
        params: tuple[int, ...] = ()
    else:
        sql = (
            f"SELECT {_COLUMNS} FROM annotations WHERE page_number = ? "
            "ORDER BY created_at ASC, rowid ASC"
        )
        params = (page_number,)
    with store_errors("list annotations"):
        rows = store.conn.execute(sql, params).fetchall()
    return [_row_to_annotation(row) for row in rows]


def get_annotation(store: DocumentStore, annotation_id: str) -> Annotation | None:
    with store_errors("read annotation"):
        row = store.conn.execute(
            f"SELECT {_COLUMNS} FROM annotations WHERE id = ?", (annotation_id,)
        ).fetchone()
    if row is None:
        return None
    return _row_to_annotation(row)


def create_annotation(store: DocumentStore, data: CreateAnnotationInput) -> Annotation:
    try:
        annotation_type = AnnotationType.parse(getattr(data.type, "value", data.type))
    except InvalidRecordEncoding as exc:
        raise ValidationFailure(exc.message) from None
    if isinstance(data.page_number, bool) or not isinstance(data.page_number, int):
        raise ValidationFailure(f"page_number must be an integer, got {data.page_number!r}")
    if data.page_number < 0:
        raise ValidationFailure(f"page_number must be non-negative, got {data.page_number}")

    now = store_utils.now_iso()
    annotation = Annotation(
        id=str(uuid4()),
        type=annotation_type,
        page_number=data.page_number,
        color=data.color,
        content=data.content,
        position_data=data.position_data,
        created_at=now,
        updated_at=now,
    )
    position_json = data.position_data.to_json() if data.position_data else None
    with store_errors("create annotation"):
        store.conn.execute(
            f"INSERT INTO annotations ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            (
                annotation.id,
                annotation.type.value,
                annotation.page_number,
                annotation.color,
                annotation.content,
                position_json,
                annotation.created_at,
                annotation.updated_at,
            ),
        )
        store.conn.commit()
    return annotation


def update_annotation(store: DocumentStore, data: UpdateAnnotationInput) -> bool:
    position_json = data.position_data.to_json() if data.position_data else None
    # MAX keeps updated_at non-decreasing if the wall clock steps backwards.
    with store_errors("update annotation"):
        cur = store.conn.execute(
            """
            UPDATE annotations SET
                color = COALESCE(?, color),
                content = COALESCE(?, content),
                position_data = COALESCE(?, position_data),
                updated_at = MAX(updated_at, ?)
            WHERE id = ?
            """,
            (data.color, data.content, position_json, store_utils.now_iso(), data.id),
        )
        store.conn.commit()
    return cur.rowcount > 0


def delete_annotation(store: DocumentStore, annotation_id: str) -> bool:
    with store_errors("delete annotation"):
        cur = store.conn.execute("DELETE FROM annotations WHERE id = ?", (annotation_id,))
        store.conn.commit()
    return cur.rowcount > 0
