"""Load a PDF with pdfplumber into the engine's PageContent records."""

from __future__ import annotations

import logging
import warnings
from collections import defaultdict
from pathlib import Path
from typing import Any

import pdfplumber
from pdfminer.psparser import PSLiteral, literal_name
from pdfminer.pdftypes import resolve1
from pdfminer.utils import decode_text

from pdf_models import (
    DocumentTooLargeError,
    ExtractionConfig,
    ExtractionResult,
    FieldTypeTag,
    PageContent,
    PageGeometry,
    RawTextItem,
    WidgetAnnotation,
)
from pdf_pipeline import extract_document

logging.getLogger("pdfminer").setLevel(logging.ERROR)
warnings.filterwarnings("ignore", module="pdfminer")

logger = logging.getLogger(__name__)

# Field flags, PDF 32000-1 tables 221 and 226 (bit 2 required, 16 radio, 17 push button)
_FF_REQUIRED = 1 << 1
_FF_RADIO = 1 << 15
_FF_PUSHBUTTON = 1 << 16

_MAX_PARENT_DEPTH = 32


def _as_text(value: Any) -> str | None:
    value = resolve1(value)
    if value is None:
        return None
    if isinstance(value, PSLiteral):
        return literal_name(value)
    if isinstance(value, bytes):
        return decode_text(value)
    return str(value)


def _field_chain(annot: dict) -> list[dict]:
    """The widget followed by its ancestor field dictionaries."""
    chain: list[dict] = []
    node: Any = annot
    while isinstance(node, dict) and len(chain) < _MAX_PARENT_DEPTH:
        chain.append(node)
        node = resolve1(node.get("Parent"))
    return chain


def _inherited(chain: list[dict], key: str) -> Any:
    for node in chain:
        if key in node:
            return resolve1(node[key])
    return None


def _qualified_name(chain: list[dict]) -> str | None:
    parts = [_as_text(node["T"]) for node in reversed(chain) if "T" in node]
    name = ".".join(p for p in parts if p)
    return name or None


def _export_value(annot: dict) -> str | None:
    appearance = resolve1(annot.get("AP"))
    if not isinstance(appearance, dict):
        return None
    normal = resolve1(appearance.get("N"))
    if not isinstance(normal, dict):
        return None
    for key in normal:
        name = literal_name(key) if isinstance(key, PSLiteral) else str(key)
        if name != "Off":
            return name
    return None


def _rect(annot: dict, origin: tuple[float, float]) -> tuple[Any, ...] | None:
    raw = resolve1(annot.get("Rect"))
    if not isinstance(raw, (list, tuple)):
        return None
    values = tuple(resolve1(v) for v in raw)
    if len(values) < 4 or not all(isinstance(v, (int, float)) for v in values[:4]):
        return values
    ox, oy = origin
    x1, y1, x2, y2 = values[:4]
    return (x1 - ox, y1 - oy, x2 - ox, y2 - oy)


def annotation_from_pdf(annot: dict, origin: tuple[float, float] = (0.0, 0.0)) -> WidgetAnnotation:
    """Resolve one raw annotation dictionary, walking /Parent for field entries."""
    chain = _field_chain(annot)
    field_type = FieldTypeTag.parse(_as_text(_inherited(chain, "FT")))
    flags = _inherited(chain, "Ff")
    flags = flags if isinstance(flags, int) else 0
    is_button = field_type is FieldTypeTag.BUTTON
    radio = is_button and bool(flags & _FF_RADIO)
    checkbox = is_button and not radio and not flags & _FF_PUSHBUTTON
    value = _as_text(_inherited(chain, "V"))
    return WidgetAnnotation(
        subtype=_as_text(annot.get("Subtype")) or "",
        rect=_rect(annot, origin),
        field_type=field_type,
        field_name=_qualified_name(chain),
        checkbox=checkbox,
        radio=radio,
        required=bool(flags & _FF_REQUIRED),
        value=value if value not in ("", "Off") else None,
        export_value=_export_value(annot) if is_button else None,
    )


def chars_to_items(chars: list[dict]) -> list[RawTextItem]:
    """Group page.chars into positioned runs.

    Characters are bucketed by rounded 'top', then split wherever the x gap
    exceeds 1.5 average character widths. Explicit spaces stay inside a run,
    so a label and its blank typed on one baseline form one item.
    """
    by_y: dict[int, list[dict]] = defaultdict(list)
    for c in chars:
        by_y[round(c["top"])].append(c)

    items: list[RawTextItem] = []
    for y_key in sorted(by_y.keys()):
        row = sorted(by_y[y_key], key=lambda c: c["x0"])
        current: list[dict] = []
        text = ""
        x0 = x1 = 0.0

        def flush() -> None:
            stripped = text.rstrip()
            if stripped:
                first = current[0]
                size = float(first.get("size") or (first["bottom"] - first["top"]))
                items.append(
                    RawTextItem(
                        text=stripped,
                        transform=(size, 0.0, 0.0, size, x0, float(first["y0"])),
                        width=x1 - x0,
                        height=size,
                    )
                )

        for c in row:
            ch = c["text"]
            if ch.isspace():
                if text:
                    text += " "
                continue
            if text:
                printed = len(text.rstrip())
                avg_char_width = (x1 - x0) / printed if printed else 5.0
                if c["x0"] - x1 > max(avg_char_width * 1.5, 4.0):
                    flush()
                    current, text = [], ""
            if not text:
                x0 = float(c["x0"])
            current.append(c)
            text += ch
            x1 = float(c["x1"])

        flush()

    return items


def _page_content(page: pdfplumber.page.Page) -> PageContent:
    mediabox = page.page_obj.mediabox or (0, 0, 0, 0)
    origin = (float(mediabox[0]), float(mediabox[1]))
    raw_annots = resolve1(page.page_obj.annots) or []
    annotations = tuple(
        annotation_from_pdf(a, origin)
        for a in (resolve1(r) for r in raw_annots)
        if isinstance(a, dict)
    )
    return PageContent(
        number=page.page_number,
        geometry=PageGeometry(float(page.width), float(page.height)),
        annotations=annotations,
        text_items=tuple(chars_to_items(page.chars)),
    )


def load_document(path: str | Path, max_pages: int | None = None) -> list[PageContent]:
    """Read every page of *path*; fails before parsing pages when over *max_pages*."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"file not found: {path}")
    with pdfplumber.open(path) as pdf:
        if max_pages is not None and len(pdf.pages) > max_pages:
            raise DocumentTooLargeError("pages", len(pdf.pages), max_pages)
        pages = [_page_content(page) for page in pdf.pages]
    logger.debug("loaded %d pages from %s", len(pages), path)
    return pages


def extract_pdf(path: str | Path, config: ExtractionConfig | None = None) -> ExtractionResult:
    config = config or ExtractionConfig()
    return extract_document(load_document(path, config.max_pages), config)
