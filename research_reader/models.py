from __future__ import annotations

import datetime as dt
import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from .errors import InvalidRecordEncoding, UnsupportedFormat

MANIFEST_FORMAT = "research-reader"
MANIFEST_VERSION = "1.0.0"
CONTAINER_SUFFIX = ".rr"


class AnnotationType(str, Enum):
    HIGHLIGHT = "highlight"
    NOTE = "note"
    BOOKMARK = "bookmark"

    @classmethod
    def parse(cls, value: object) -> AnnotationType:
        for member in cls:
            if member.value == value:
                return member
        allowed = ", ".join(member.value for member in cls)
        raise InvalidRecordEncoding(f"Unknown annotation type {value!r}. Allowed types: {allowed}")


class SourceKind(str, Enum):
    CONTAINER = "rr"
    PDF = "pdf"

    @classmethod
    def from_path(cls, path: Path | str) -> SourceKind:
        suffix = Path(path).suffix.lower().lstrip(".")
        for member in cls:
            if member.value == suffix:
                return member
        raise UnsupportedFormat(f"Unsupported file type: .{suffix}", path=path)


def _number(data: dict[str, Any], key: str) -> float:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidRecordEncoding(f"position_data field {key!r} must be a number")
    return float(value)


def _optional_int(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidRecordEncoding(f"position_data field {key!r} must be an integer")
    if value < 0:
        raise InvalidRecordEncoding(f"position_data field {key!r} must be non-negative")
    return value


@dataclass(frozen=True)
class Rect:
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_dict(cls, data: object) -> Rect:
        if not isinstance(data, dict):
            raise InvalidRecordEncoding("position_data rect must be an object")
        return cls(
            x=_number(data, "x"),
            y=_number(data, "y"),
            width=_number(data, "width"),
            height=_number(data, "height"),
        )


@dataclass(frozen=True)
class PositionData:
    """Where an annotation sits on its page.

    Rectangles are in page space at zoom 1.0; ``page_width``/``page_height`` are
    the reference dimensions used for that normalization.
    """

    rects: tuple[Rect, ...]
    page_width: float
    page_height: float
    selected_text: str | None = None
    start_offset: int | None = None
    end_offset: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "rects": [asdict(rect) for rect in self.rects],
            "page_width": self.page_width,
            "page_height": self.page_height,
            "selected_text": self.selected_text,
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: object) -> PositionData:
        if not isinstance(data, dict):
            raise InvalidRecordEncoding("position_data must be an object")
        rects = data.get("rects")
        if not isinstance(rects, list):
            raise InvalidRecordEncoding("position_data field 'rects' must be a list")
        selected_text = data.get("selected_text")
        if selected_text is not None and not isinstance(selected_text, str):
            raise InvalidRecordEncoding("position_data field 'selected_text' must be a string")
        return cls(
            rects=tuple(Rect.from_dict(rect) for rect in rects),
            page_width=_number(data, "page_width"),
            page_height=_number(data, "page_height"),
            selected_text=selected_text,
            start_offset=_optional_int(data, "start_offset"),
            end_offset=_optional_int(data, "end_offset"),
        )

    @classmethod
    def from_json(cls, text: str) -> PositionData:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise InvalidRecordEncoding("position_data is not valid JSON") from exc
        return cls.from_dict(data)


@dataclass
class Annotation:
    id: str
    type: AnnotationType
    page_number: int
    color: str | None
    content: str | None
    position_data: PositionData | None
    created_at: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "page_number": self.page_number,
            "color": self.color,
            "content": self.content,
            "position_data": self.position_data.to_dict() if self.position_data else None,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass
class CreateAnnotationInput:
    type: AnnotationType
    page_number: int
    color: str | None = None
    content: str | None = None
    position_data: PositionData | None = None


@dataclass
class UpdateAnnotationInput:
    """Partial update; ``None`` fields are left unchanged."""

    id: str
    color: str | None = None
    content: str | None = None
    position_data: PositionData | None = None


def now_iso() -> str:
    return dt.datetime.now(dt.UTC).isoformat(timespec="microseconds")


@dataclass(frozen=True)
class Manifest:
    version: str = MANIFEST_VERSION
    format: str = MANIFEST_FORMAT
    created_at: str = field(default_factory=now_iso)

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False, indent=2) + "\n"

    @property
    def major_version(self) -> int | None:
        head = self.version.split(".", 1)[0]
        return int(head) if head.isdigit() else None


@dataclass
class DocumentInfo:
    pdf_path: str
    rr_path: str
    title: str | None
    page_count: int | None
    last_page: int | None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
