from __future__ import annotations

import json
import logging
import os
import shutil
import stat
import tempfile
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from .config import ReaderConfig, load_config
from .db import DB_FILENAME
from .errors import (
    ArchiveCorrupt,
    FilesystemFailure,
    ReaderError,
    UnsupportedFormat,
    ValidationFailure,
)
from .models import CONTAINER_SUFFIX, MANIFEST_FORMAT, Manifest
from .store import DocumentStore
from .store.metadata import TITLE_KEY

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"
PDF_NAME = "document.pdf"
SUPPORTED_MANIFEST_MAJOR = 1

# Fixed entry timestamp so unchanged inputs produce identical archive entries.
ZIP_TIMESTAMP = (1980, 1, 1, 0, 0, 0)

ARCHIVE_ENTRIES: tuple[tuple[str, int], ...] = (
    (MANIFEST_NAME, zipfile.ZIP_DEFLATED),
    (PDF_NAME, zipfile.ZIP_STORED),
    (DB_FILENAME, zipfile.ZIP_DEFLATED),
)


@dataclass
class Session:
    """One open container: its archive path, working directory and store."""

    rr_path: Path
    work_dir: Path
    store: DocumentStore
    manifest: Manifest | None = None

    @property
    def pdf_path(self) -> Path:
        return self.work_dir / PDF_NAME


def allocate_work_dir(config: ReaderConfig) -> Path:
    root = config.work_root()
    try:
        if root is not None:
            root.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix="rr-session-", dir=root))
    except OSError as exc:
        raise FilesystemFailure("Failed to create temp dir", path=root) from exc


def _remove_tree(path: Path) -> None:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        return
    except OSError as exc:
        logger.warning("failed to remove working directory %s", path, exc_info=exc)


def _entry_target(work_dir: Path, name: str) -> Path:
    """Map an archive entry name to a path inside ``work_dir``.

    Rejects absolute names, drive-qualified names, and names that resolve outside
    the working directory.
    """
    normalized = name.replace("\\", "/")
    relative = PurePosixPath(normalized)
    if not normalized or relative.is_absolute():
        raise ArchiveCorrupt(f"Archive entry has an absolute path: {name!r}")
    if relative.parts and ":" in relative.parts[0]:
        raise ArchiveCorrupt(f"Archive entry has a drive-qualified path: {name!r}")
    root = work_dir.resolve()
    target = root.joinpath(*relative.parts).resolve()
    if target != root and not target.is_relative_to(root):
        raise ArchiveCorrupt(f"Archive entry escapes the working directory: {name!r}")
    return target


def extract_archive(rr_path: Path, work_dir: Path) -> None:
    try:
        with zipfile.ZipFile(rr_path) as archive:
            for info in archive.infolist():
                target = _entry_target(work_dir, info.filename)
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with archive.open(info) as src, target.open("wb") as dst:
                    shutil.copyfileobj(src, dst)
    except ReaderError:
        raise
    except (
        zipfile.BadZipFile,
        zipfile.LargeZipFile,
        zlib.error,
        EOFError,
        NotImplementedError,
        RuntimeError,
        ValueError,
    ) as exc:
        raise ArchiveCorrupt("Failed to read .rr archive", path=rr_path) from exc
    except OSError as exc:
        raise FilesystemFailure("Failed to extract .rr archive", path=rr_path) from exc


def read_manifest(work_dir: Path) -> Manifest | None:
    path = work_dir / MANIFEST_NAME
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ArchiveCorrupt("Manifest is not valid JSON", path=path) from exc
    except OSError as exc:
        raise FilesystemFailure("Failed to read manifest", path=path) from exc
    if not isinstance(data, dict):
        raise ArchiveCorrupt("Manifest must be an object", path=path)
    fields = {}
    for key in ("version", "format", "created_at"):
        value = data.get(key)
        if not isinstance(value, str):
            raise ArchiveCorrupt(f"Manifest field {key!r} must be a string", path=path)
        fields[key] = value
    return Manifest(**fields)


def validate_manifest(manifest: Manifest, rr_path: Path) -> None:
    if manifest.format != MANIFEST_FORMAT:
        raise UnsupportedFormat(f"Unknown container format {manifest.format!r}", path=rr_path)
    major = manifest.major_version
    if major is None:
        raise ArchiveCorrupt(f"Malformed manifest version {manifest.version!r}", path=rr_path)
    if major > SUPPORTED_MANIFEST_MAJOR:
        raise UnsupportedFormat(
            f"Container version {manifest.version} is newer than supported "
            f"version {SUPPORTED_MANIFEST_MAJOR}.x",
            path=rr_path,
        )


def open_container(rr_path: Path | str, *, config: ReaderConfig | None = None) -> Session:
    """Extract an existing container to a fresh working directory and open its store."""
    cfg = config or load_config()
    path = Path(rr_path).expanduser()
    if not path.is_file():
        raise ValidationFailure("Container not found", path=path)

    work_dir = allocate_work_dir(cfg)
    try:
        extract_archive(path, work_dir)
        manifest = read_manifest(work_dir)
        if manifest is None:
            logger.warning("container %s has no manifest", path)
        else:
            validate_manifest(manifest, path)
        if not (work_dir / PDF_NAME).is_file():
            raise ArchiveCorrupt(f"Container is missing {PDF_NAME}", path=path)
        store = DocumentStore(work_dir / DB_FILENAME)
    except BaseException:
        _remove_tree(work_dir)
        raise

    logger.info("opened container %s in %s", path, work_dir)
    return Session(rr_path=path, work_dir=work_dir, store=store, manifest=manifest)


def default_container_path(pdf_path: Path) -> Path:
    return pdf_path.with_suffix(CONTAINER_SUFFIX)


def import_pdf(
    pdf_path: Path | str,
    output_path: Path | str | None = None,
    *,
    config: ReaderConfig | None = None,
) -> Session:
    """Create a new container from a standalone PDF and write it to disk.

    The container lands next to the PDF unless ``output_path`` is given. Either
    the container exists when this returns, or nothing was written.
    """
    cfg = config or load_config()
    source = Path(pdf_path).expanduser()
    if not source.is_file():
        raise ValidationFailure("PDF not found", path=source)
    rr_path = Path(output_path).expanduser() if output_path else default_container_path(source)
    if rr_path.resolve() == source.resolve():
        raise ValidationFailure("Container path would overwrite the source PDF", path=rr_path)

    work_dir = allocate_work_dir(cfg)
    store: DocumentStore | None = None
    try:
        manifest = Manifest()
        try:
            shutil.copyfile(source, work_dir / PDF_NAME)
        except OSError as exc:
            raise FilesystemFailure("Failed to copy PDF", path=source) from exc
        try:
            (work_dir / MANIFEST_NAME).write_text(manifest.to_json(), encoding="utf-8")
        except OSError as exc:
            raise FilesystemFailure("Failed to write manifest", path=work_dir) from exc

        store = DocumentStore(work_dir / DB_FILENAME)
        if source.stem:
            store.set_metadata(TITLE_KEY, source.stem)

        session = Session(rr_path=rr_path, work_dir=work_dir, store=store, manifest=manifest)
        save_container(session, config=cfg)
    except BaseException:
        if store is not None:
            store.close()
        _remove_tree(work_dir)
        raise

    logger.info("imported %s into %s", source, rr_path)
    return session


def _archive_mode(dest: Path) -> int:
    """Mode for a rewritten archive: the existing file's, or the umask default."""
    try:
        return stat.S_IMODE(dest.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def save_container(session: Session, *, config: ReaderConfig | None = None) -> None:
    """Re-pack the working directory into the session's archive path.

    The archive is written beside the destination and moved over it, so a
    failure part-way leaves the previous archive intact.
    """
    cfg = config or load_config()
    dest = session.rr_path
    work_dir = session.work_dir
    if (work_dir / DB_FILENAME).exists():
        session.store.checkpoint()

    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent)
    except OSError as exc:
        raise FilesystemFailure("Failed to create .rr file", path=dest) from exc

    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as handle:
            with zipfile.ZipFile(handle, "w") as archive:
                for name, method in ARCHIVE_ENTRIES:
                    source = work_dir / name
                    if not source.is_file():
                        continue
                    info = zipfile.ZipInfo(name, date_time=ZIP_TIMESTAMP)
                    info.external_attr = 0o644 << 16
                    level = cfg.compress_level if method == zipfile.ZIP_DEFLATED else None
                    archive.writestr(
                        info, source.read_bytes(), compress_type=method, compresslevel=level
                    )
            handle.flush()
            if cfg.fsync:
                os.fsync(handle.fileno())
        os.chmod(tmp_path, _archive_mode(dest))
        os.replace(tmp_path, dest)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        raise FilesystemFailure("Failed to write .rr file", path=dest) from exc
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise
    logger.info("saved container %s", dest)


def read_pdf_bytes(session: Session) -> bytes:
    path = session.pdf_path
    try:
        return path.read_bytes()
    except OSError as exc:
        raise FilesystemFailure("Failed to read PDF", path=path) from exc


def cleanup_session(session: Session) -> None:
    """Remove the session's working directory; failures are only logged."""
    _remove_tree(session.work_dir)
