from __future__ import annotations

import sqlite3
from pathlib import Path

from .. import db
from ..errors import StoreFailure
from ..models import Annotation, CreateAnnotationInput, UpdateAnnotationInput
from . import annotations as store_annotations
from . import metadata as store_metadata
from .utils import store_errors


class DocumentStore:
    """Annotation and metadata access over one container's ``data.sqlite``."""

    def __init__(self, db_path: Path | str, *, check_same_thread: bool = False):
        self.db_path = Path(db_path).expanduser()
        try:
            self.conn = db.connect(self.db_path, check_same_thread=check_same_thread)
        except sqlite3.Error as exc:
            raise StoreFailure("Failed to open database", path=self.db_path) from exc
        try:
            db.initialize_schema(self.conn)
        except StoreFailure:
            self.conn.close()
            raise
        except sqlite3.Error as exc:
            self.conn.close()
            raise StoreFailure("Failed to init database", path=self.db_path) from exc

    def list_annotations(self, page_number: int | None = None) -> list[Annotation]:
        return store_annotations.list_annotations(self, page_number)

    def get_annotation(self, annotation_id: str) -> Annotation | None:
        return store_annotations.get_annotation(self, annotation_id)

    def create_annotation(self, data: CreateAnnotationInput) -> Annotation:
        return store_annotations.create_annotation(self, data)

    def update_annotation(self, data: UpdateAnnotationInput) -> bool:
        return store_annotations.update_annotation(self, data)

    def delete_annotation(self, annotation_id: str) -> bool:
        return store_annotations.delete_annotation(self, annotation_id)

    def get_metadata(self, key: str) -> str | None:
        return store_metadata.get_metadata(self, key)

    def get_int_metadata(self, key: str) -> int | None:
        return store_metadata.get_int_metadata(self, key)

    def set_metadata(self, key: str, value: str) -> None:
        store_metadata.set_metadata(self, key, value)

    def all_metadata(self) -> dict[str, str]:
        return store_metadata.all_metadata(self)

    def checkpoint(self) -> None:
        with store_errors("checkpoint WAL"):
            busy, _, _ = db.checkpoint(self.conn)
        if busy:
            raise StoreFailure("Failed to checkpoint WAL: database is busy", path=self.db_path)

    def close(self) -> None:
        self.conn.close()
