"""Operations exposed to the UI command layer.

Each takes the ``SessionManager`` that owns the open document; nothing here
reads session state from anywhere else.
"""

from __future__ import annotations

from pathlib import Path

from . import container
from .models import Annotation, CreateAnnotationInput, DocumentInfo, UpdateAnnotationInput
from .session import SessionManager


def open_file(manager: SessionManager, path: Path | str) -> DocumentInfo:
    return manager.open(path)


def import_pdf(
    manager: SessionManager, path: Path | str, output_path: Path | str | None = None
) -> DocumentInfo:
    return manager.import_pdf(path, output_path)


def save_file(manager: SessionManager) -> None:
    manager.save()


def close_file(manager: SessionManager) -> None:
    manager.close()


def read_pdf_bytes(manager: SessionManager) -> bytes:
    with manager.active() as session:
        return container.read_pdf_bytes(session)


def get_annotations(manager: SessionManager, page_number: int | None = None) -> list[Annotation]:
    with manager.active() as session:
        return session.store.list_annotations(page_number)


def create_annotation(manager: SessionManager, data: CreateAnnotationInput) -> Annotation:
    with manager.active() as session:
        return session.store.create_annotation(data)


def update_annotation(manager: SessionManager, data: UpdateAnnotationInput) -> bool:
    with manager.active() as session:
        return session.store.update_annotation(data)


def delete_annotation(manager: SessionManager, annotation_id: str) -> bool:
    with manager.active() as session:
        return session.store.delete_annotation(annotation_id)


def get_document_metadata(manager: SessionManager, key: str) -> str | None:
    with manager.active() as session:
        return session.store.get_metadata(key)


def set_document_metadata(manager: SessionManager, key: str, value: str) -> None:
    with manager.active() as session:
        session.store.set_metadata(key, value)
