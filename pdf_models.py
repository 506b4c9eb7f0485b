from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Sequence


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ExtractionError(Exception):
    """Base class for every failure raised by the extraction engine."""


class MalformedRectError(ExtractionError):
    """An annotation rectangle did not carry four numeric components."""


class PageGeometryError(ExtractionError):
    """A page reported a zero or negative width/height."""


class DocumentTooLargeError(ExtractionError):
    """The document exceeds a configured page or text-run ceiling."""

    def __init__(self, what: str, actual: int, limit: int) -> None:
        super().__init__(f"document has {actual} {what}, limit is {limit}")
        self.what = what
        self.actual = actual
        self.limit = limit


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PageGeometry:
    """Viewport size of one page at scale 1.0."""

    width: float
    height: float

    @property
    def is_valid(self) -> bool:
        return (
            math.isfinite(self.width)
            and math.isfinite(self.height)
            and self.width > 0
            and self.height > 0
        )


@dataclass(frozen=True)
class RawRect:
    """Rectangle in PDF user space. Corners may come in any order."""

    x1: float
    y1: float
    x2: float
    y2: float

    @classmethod
    def from_sequence(cls, values: Sequence[Any] | None) -> RawRect:
        if values is None or len(values) < 4:
            raise MalformedRectError(f"expected 4 coordinates, got {values!r}")
        try:
            x1, y1, x2, y2 = (float(v) for v in values[:4])
        except (TypeError, ValueError) as exc:
            raise MalformedRectError(f"non-numeric rectangle {values!r}") from exc
        if not all(math.isfinite(v) for v in (x1, y1, x2, y2)):
            raise MalformedRectError(f"non-finite rectangle {values!r}")
        return cls(x1, y1, x2, y2)

    def as_list(self) -> list[float]:
        return [self.x1, self.y1, self.x2, self.y2]


@dataclass(frozen=True)
class NormalizedRect:
    """Percent-of-page box with a top-left origin."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RawTextItem:
    """A positioned glyph run as reported by the PDF parser."""

    text: str
    transform: tuple[float, float, float, float, float, float]
    width: float | None = None
    height: float | None = None


@dataclass(frozen=True)
class TextRun:
    """One glyph run. ``origin`` is in PDF space; ``rect`` is set once normalized."""

    text: str
    origin: tuple[float, float]
    width: float
    height: float
    page: int
    rect: NormalizedRect | None = None


@dataclass(frozen=True)
class TextLine:
    """Runs sharing a y-band, left to right. ``y`` is the PDF-space reference y."""

    page: int
    index: int
    y: float
    runs: tuple[TextRun, ...]

    @property
    def text(self) -> str:
        return " ".join(r.text for r in self.runs)

    @property
    def rect(self) -> NormalizedRect | None:
        rects = [r.rect for r in self.runs if r.rect is not None]
        if not rects:
            return None
        x0 = min(r.x for r in rects)
        y0 = min(r.y for r in rects)
        x1 = max(r.right for r in rects)
        y1 = max(r.bottom for r in rects)
        return NormalizedRect(x0, y0, x1 - x0, y1 - y0)

    def to_dict(self) -> dict[str, Any]:
        rect = self.rect
        return {
            "page": self.page,
            "index": self.index,
            "y": self.y,
            "text": self.text,
            "rect": rect.to_dict() if rect else None,
        }


# ---------------------------------------------------------------------------
# Annotations
# ---------------------------------------------------------------------------

class FieldTypeTag(Enum):
    """The ``/FT`` entry of an AcroForm field."""

    TEXT = "Tx"
    BUTTON = "Btn"
    SIGNATURE = "Sig"
    CHOICE = "Ch"
    UNKNOWN = ""

    @classmethod
    def parse(cls, raw: Any) -> FieldTypeTag:
        if isinstance(raw, FieldTypeTag):
            return raw
        name = str(raw or "").lstrip("/")
        for tag in cls:
            if tag.value and tag.value == name:
                return tag
        return cls.UNKNOWN


@dataclass(frozen=True)
class WidgetAnnotation:
    """A page annotation, resolved once at ingestion.

    ``rect`` is kept exactly as the source supplied it so the extractor can
    decide whether it is usable.
    """

    subtype: str
    rect: tuple[Any, ...] | None
    field_type: FieldTypeTag = FieldTypeTag.UNKNOWN
    field_name: str | None = None
    checkbox: bool = False
    radio: bool = False
    required: bool = False
    value: str | None = None
    export_value: str | None = None

    @property
    def is_widget(self) -> bool:
        return self.subtype == "Widget"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> WidgetAnnotation:
        """Build from a pdf.js-style dict (``fieldType``, ``checkBox``, ...)."""
        rect = data.get("rect")
        value = data.get("fieldValue", data.get("value"))
        return cls(
            subtype=str(data.get("subtype") or ""),
            rect=tuple(rect) if rect is not None else None,
            field_type=FieldTypeTag.parse(data.get("fieldType", data.get("field_type"))),
            field_name=data.get("fieldName", data.get("field_name")) or None,
            checkbox=bool(data.get("checkBox", data.get("checkbox", False))),
            radio=bool(data.get("radioButton", data.get("radio", False))),
            required=bool(data.get("required", False)),
            value=str(value) if value not in (None, "") else None,
            export_value=data.get("buttonValue", data.get("export_value")) or None,
        )


@dataclass(frozen=True)
class PageContent:
    """Everything the engine needs from one page of the source document."""

    number: int
    geometry: PageGeometry
    annotations: tuple[WidgetAnnotation, ...] = ()
    text_items: tuple[RawTextItem, ...] = ()


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------

class FieldKind(Enum):
    TEXT = "text"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    SIGNATURE = "signature"
    DATE = "date"


@dataclass(frozen=True)
class ExtractedField:
    """One fillable field, positioned in percent-of-page coordinates."""

    field_id: str
    kind: FieldKind
    page: int
    rect: NormalizedRect
    source_rect: RawRect | None = None
    group: str | None = None
    value: str | None = None
    required: bool = False
    label: str | None = None
    filled_by: str | None = None

    @property
    def is_inferred(self) -> bool:
        return self.source_rect is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "field_id": self.field_id,
            "kind": self.kind.value,
            "page": self.page,
            "rect": self.rect.to_dict(),
            "source_rect": self.source_rect.as_list() if self.source_rect else None,
            "group": self.group,
            "value": self.value,
            "required": self.required,
            "label": self.label,
            "filled_by": self.filled_by,
        }


@dataclass
class ExtractionResult:
    fields: list[ExtractedField] = field(default_factory=list)
    text_lines: list[tuple[int, TextLine]] = field(default_factory=list)
    page_count: int = 0
    has_acro_form: bool = False
    document_type: str = "other"

    def to_dict(self) -> dict[str, Any]:
        return {
            "fields": [f.to_dict() for f in self.fields],
            "text_lines": [line.to_dict() for _, line in self.text_lines],
            "page_count": self.page_count,
            "has_acro_form": self.has_acro_form,
            "document_type": self.document_type,
        }

    def to_json(self, indent: int | None = None) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ExtractionConfig:
    """Tunable thresholds and ceilings for one extraction run."""

    line_tolerance: float = 5.0         # PDF units between a run and its line's reference y
    checkbox_label_window: float = 40.0  # percent of page width searched right of a glyph
    max_pages: int = 500
    max_text_runs: int = 200_000
    max_workers: int = 1
    default_signatures: bool = True  # add signature blocks to text-only documents lacking them
