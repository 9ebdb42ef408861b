from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from . import container
from .config import ReaderConfig, load_config
from .container import Session
from .errors import NoActiveSession
from .models import DocumentInfo, SourceKind
from .store.metadata import LAST_PAGE_KEY, PAGE_COUNT_KEY, TITLE_KEY

logger = logging.getLogger(__name__)


def document_info(session: Session) -> DocumentInfo:
    store = session.store
    return DocumentInfo(
        pdf_path=str(session.pdf_path),
        rr_path=str(session.rr_path),
        title=store.get_metadata(TITLE_KEY),
        page_count=store.get_int_metadata(PAGE_COUNT_KEY),
        last_page=store.get_int_metadata(LAST_PAGE_KEY),
    )


class SessionManager:
    """Owns the single open container and sequences open, save and close.

    Every transition and every store access goes through one lock, so callers
    never observe a session half-way through being replaced.
    """

    def __init__(self, config: ReaderConfig | None = None):
        self.config = config or load_config()
        self._lock = threading.RLock()
        self._session: Session | None = None

    def __enter__(self) -> SessionManager:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        with self._lock:
            return self._session is not None

    @contextmanager
    def active(self) -> Iterator[Session]:
        with self._lock:
            if self._session is None:
                raise NoActiveSession()
            yield self._session

    def open(self, path: Path | str) -> DocumentInfo:
        kind = SourceKind.from_path(path)
        if kind is SourceKind.CONTAINER:
            return self._replace(lambda: container.open_container(path, config=self.config))
        if kind is SourceKind.PDF:
            return self._replace(lambda: container.import_pdf(path, config=self.config))
        raise AssertionError(f"unhandled source kind {kind!r}")

    def import_pdf(
        self, pdf_path: Path | str, output_path: Path | str | None = None
    ) -> DocumentInfo:
        return self._replace(
            lambda: container.import_pdf(pdf_path, output_path, config=self.config)
        )

    def _replace(self, establish: Callable[[], Session]) -> DocumentInfo:
        with self._lock:
            previous = self._session
            if previous is not None:
                # Persist first so a failure leaves the previous session untouched.
                container.save_container(previous, config=self.config)
            session = establish()
            try:
                info = document_info(session)
            except BaseException:
                self._discard(session)
                raise
            self._session = session
            if previous is not None:
                self._discard(previous)
            logger.info("session open for %s", session.rr_path)
            return info

    def save(self) -> None:
        with self.active() as session:
            container.save_container(session, config=self.config)

    def close(self) -> None:
        with self._lock:
            session = self._session
            if session is None:
                return
            container.save_container(session, config=self.config)
            self._session = None
            self._discard(session)
            logger.info("session closed for %s", session.rr_path)

    def _discard(self, session: Session) -> None:
        try:
            session.store.close()
        except sqlite3.Error as exc:  # pragma: no cover
            logger.warning("failed to close store for %s", session.rr_path, exc_info=exc)
        container.cleanup_session(session)
