from __future__ import annotations

from pathlib import Path

import pytest

from research_reader.config import ReaderConfig

PDF_BYTES = (
    b"%PDF-1.4\n"
    b"1 0 obj << /Type /Catalog /Pages 2 0 R >> endobj\n"
    b"2 0 obj << /Type /Pages /Kids [] /Count 0 >> endobj\n"
    b"trailer << /Root 1 0 R >>\n"
    b"\x00\x01\x02\xff binary tail\n"
    b"%%EOF\n"
)


@pytest.fixture(autouse=True)
def _isolate_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("RESEARCH_READER_CONFIG", str(tmp_path / "config.json"))
    monkeypatch.setenv("RESEARCH_READER_WORK_DIR", str(tmp_path / "work"))
    for name in (
        "RESEARCH_READER_COMPRESS_LEVEL",
        "RESEARCH_READER_LOG_LEVEL",
        "RESEARCH_READER_FSYNC",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config(tmp_path: Path) -> ReaderConfig:
    return ReaderConfig(work_dir=str(tmp_path / "work"), fsync=False)


@pytest.fixture
def sample_pdf(tmp_path: Path) -> Path:
    path = tmp_path / "docs" / "Deep Learning.pdf"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(PDF_BYTES)
    return path


@pytest.fixture
def pdf_bytes() -> bytes:
    return PDF_BYTES
