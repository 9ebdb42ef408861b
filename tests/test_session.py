from __future__ import annotations

import shutil
import threading
from pathlib import Path

import pytest

from research_reader import container
from research_reader.config import ReaderConfig
from research_reader.errors import (
    ArchiveCorrupt,
    FilesystemFailure,
    NoActiveSession,
    UnsupportedFormat,
)
from research_reader.models import AnnotationType, CreateAnnotationInput
from research_reader.session import SessionManager


def _second_pdf(sample_pdf: Path) -> Path:
    other = sample_pdf.with_name("Other Paper.pdf")
    shutil.copyfile(sample_pdf, other)
    return other


def test_open_pdf_imports_and_reports_summary(sample_pdf: Path, config: ReaderConfig) -> None:
    with SessionManager(config) as manager:
        info = manager.open(sample_pdf)

        assert manager.is_open
        assert info.rr_path == str(sample_pdf.with_suffix(".rr"))
        assert info.title == "Deep Learning"
        assert info.page_count is None
        assert info.last_page is None
        assert Path(info.pdf_path).name == "document.pdf"
        assert Path(info.pdf_path).read_bytes() == sample_pdf.read_bytes()

    assert not manager.is_open
    assert not Path(info.pdf_path).exists()


def test_open_reports_page_metadata(sample_pdf: Path, config: ReaderConfig) -> None:
    manager = SessionManager(config)
    manager.open(sample_pdf)
    with manager.active() as session:
        session.store.set_metadata("page_count", "42")
        session.store.set_metadata("last_page", "17")
    manager.close()

    info = manager.open(sample_pdf.with_suffix(".rr"))
    manager.close()

    assert info.page_count == 42
    assert info.last_page == 17


def test_open_unknown_extension_is_unsupported(tmp_path: Path, config: ReaderConfig) -> None:
    doc = tmp_path / "notes.txt"
    doc.write_text("hello")
    manager = SessionManager(config)

    with pytest.raises(UnsupportedFormat):
        manager.open(doc)
    assert not manager.is_open


def test_operations_require_open_session(config: ReaderConfig) -> None:
    manager = SessionManager(config)

    with pytest.raises(NoActiveSession, match="No file is open"):
        manager.save()
    with pytest.raises(NoActiveSession):
        with manager.active():
            pass
    manager.close()


def test_opening_second_document_persists_first(sample_pdf: Path, config: ReaderConfig) -> None:
    other = _second_pdf(sample_pdf)
    manager = SessionManager(config)
    first = manager.open(sample_pdf)
    with manager.active() as session:
        session.store.create_annotation(
            CreateAnnotationInput(type=AnnotationType.NOTE, page_number=1, content="unsaved")
        )
        first_work_dir = session.work_dir

    second = manager.open(other)
    with manager.active() as session:
        assert str(session.rr_path) == second.rr_path
    manager.close()

    assert not first_work_dir.exists()
    reopened = container.open_container(first.rr_path, config=config)
    try:
        notes = reopened.store.list_annotations()
    finally:
        reopened.store.close()
        container.cleanup_session(reopened)
    assert [n.content for n in notes] == ["unsaved"]


def test_failed_persist_keeps_previous_session(
    monkeypatch, sample_pdf: Path, config: ReaderConfig
) -> None:
    other = _second_pdf(sample_pdf)
    manager = SessionManager(config)
    manager.open(sample_pdf)
    with manager.active() as session:
        original = session
    real_save = container.save_container

    def _fail_save(*_args, **_kwargs):
        raise FilesystemFailure("Failed to write .rr file")

    monkeypatch.setattr(container, "save_container", _fail_save)
    with pytest.raises(FilesystemFailure):
        manager.open(other)
    with pytest.raises(FilesystemFailure):
        manager.close()

    with manager.active() as session:
        assert session is original
        assert session.work_dir.exists()
        assert session.store.get_metadata("title") == "Deep Learning"

    monkeypatch.setattr(container, "save_container", real_save)
    manager.close()
    assert not manager.is_open
    assert not original.work_dir.exists()


def test_failed_open_of_new_document_keeps_previous_session(
    tmp_path: Path, sample_pdf: Path, config: ReaderConfig
) -> None:
    bogus = tmp_path / "bogus.rr"
    bogus.write_bytes(b"garbage")
    manager = SessionManager(config)
    manager.open(sample_pdf)

    with pytest.raises(ArchiveCorrupt):
        manager.open(bogus)

    with manager.active() as session:
        assert session.rr_path == sample_pdf.with_suffix(".rr")
    manager.close()


def test_close_is_noop_when_closed(config: ReaderConfig) -> None:
    manager = SessionManager(config)
    manager.close()
    manager.close()
    assert not manager.is_open


def test_import_with_explicit_destination(
    sample_pdf: Path, tmp_path: Path, config: ReaderConfig
) -> None:
    destination = tmp_path / "library" / "dl.rr"
    with SessionManager(config) as manager:
        info = manager.import_pdf(sample_pdf, destination)

    assert info.rr_path == str(destination)
    assert destination.exists()
    assert not sample_pdf.with_suffix(".rr").exists()


def test_concurrent_store_access_is_serialized(sample_pdf: Path, config: ReaderConfig) -> None:
    manager = SessionManager(config)
    manager.open(sample_pdf)
    errors: list[BaseException] = []

    def _worker(page: int) -> None:
        try:
            for _ in range(10):
                with manager.active() as session:
                    session.store.create_annotation(
                        CreateAnnotationInput(type=AnnotationType.BOOKMARK, page_number=page)
                    )
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=_worker, args=(page,)) for page in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    with manager.active() as session:
        count = len(session.store.list_annotations())
    manager.close()

    assert errors == []
    assert count == 40
