from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from research_reader import db
from research_reader.errors import StoreFailure


def test_initialize_schema_sets_user_version(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "data.sqlite")
    try:
        db.initialize_schema(conn)
        version = db.schema_user_version(conn)
        tables = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
        indexes = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'index'")
        }
    finally:
        conn.close()

    assert version == db.SCHEMA_VERSION
    assert {"metadata", "annotations"} <= tables
    assert {"idx_annotations_page", "idx_annotations_type"} <= indexes


def test_initialize_schema_is_idempotent(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "data.sqlite")
    try:
        db.initialize_schema(conn)
        conn.execute("INSERT INTO metadata(key, value) VALUES ('title', 'kept')")
        conn.commit()
        db.initialize_schema(conn)
        row = conn.execute("SELECT value FROM metadata WHERE key = 'title'").fetchone()
    finally:
        conn.close()

    assert row[0] == "kept"


def test_initialize_schema_rejects_newer_version(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "data.sqlite")
    try:
        conn.execute(f"PRAGMA user_version = {db.SCHEMA_VERSION + 1}")
        with pytest.raises(StoreFailure, match="newer than supported"):
            db.initialize_schema(conn)
    finally:
        conn.close()


def test_annotation_type_check_constraint(tmp_path: Path) -> None:
    conn = db.connect(tmp_path / "data.sqlite")
    try:
        db.initialize_schema(conn)
        with pytest.raises(sqlite3.IntegrityError):
            conn.execute(
                """
                INSERT INTO annotations(id, type, page_number, created_at, updated_at)
                VALUES ('a', 'underline', 1, 'now', 'now')
                """
            )
    finally:
        conn.close()


def test_checkpoint_merges_wal_into_main_file(tmp_path: Path) -> None:
    path = tmp_path / "data.sqlite"
    conn = db.connect(path)
    try:
        db.initialize_schema(conn)
        conn.execute("INSERT INTO metadata(key, value) VALUES ('title', 'walled')")
        conn.commit()
        busy, _, _ = db.checkpoint(conn)
        wal = path.with_name(path.name + "-wal")
        wal_size = wal.stat().st_size if wal.exists() else 0
    finally:
        conn.close()

    assert busy == 0
    assert wal_size == 0


def test_connect_closes_handle_when_file_is_not_a_database(
    monkeypatch, tmp_path: Path
) -> None:
    path = tmp_path / "data.sqlite"
    path.write_bytes(b"this is not sqlite" * 100)
    opened: list[sqlite3.Connection] = []
    real_connect = sqlite3.connect

    def _recording_connect(*args, **kwargs):
        conn = real_connect(*args, **kwargs)
        opened.append(conn)
        return conn

    monkeypatch.setattr(db.sqlite3, "connect", _recording_connect)
    with pytest.raises(sqlite3.DatabaseError):
        db.connect(path)

    assert len(opened) == 1
    with pytest.raises(sqlite3.ProgrammingError):
        opened[0].execute("SELECT 1")
