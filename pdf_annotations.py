from __future__ import annotations

import logging
import re
from typing import Iterable

from pdf_context import match_label
from pdf_geometry import WIDGET_BOUNDS, from_pdf_rect
from pdf_models import (
    ExtractedField,
    FieldKind,
    FieldTypeTag,
    MalformedRectError,
    PageGeometry,
    RawRect,
    WidgetAnnotation,
)

logger = logging.getLogger(__name__)

_DATE_NAME_RE = re.compile(r"date|dob", re.IGNORECASE)
_NON_ID_RE = re.compile(r"[^a-z0-9]+")


def has_widgets(annotations: Iterable[WidgetAnnotation]) -> bool:
    return any(a.is_widget for a in annotations)


def classify(annot: WidgetAnnotation) -> FieldKind:
    if annot.field_type is FieldTypeTag.SIGNATURE:
        return FieldKind.SIGNATURE
    if annot.field_type is FieldTypeTag.BUTTON:
        if annot.checkbox:
            return FieldKind.CHECKBOX
        if annot.radio:
            return FieldKind.RADIO
        return FieldKind.TEXT
    if annot.field_type is FieldTypeTag.TEXT and _DATE_NAME_RE.search(annot.field_name or ""):
        return FieldKind.DATE
    return FieldKind.TEXT


def humanize(name: str | None) -> str | None:
    """'owner_name' / 'ownerName' / 'Owner.Name' -> 'Owner Name'."""
    if not name:
        return None
    spaced = re.sub(r"[_\-.]+", " ", name)
    spaced = re.sub(r"([a-z])([A-Z])", r"\1 \2", spaced)
    words = spaced.split()
    return " ".join(w[:1].upper() + w[1:] for w in words) or None


def _slug(text: str) -> str:
    return _NON_ID_RE.sub("_", text.lower()).strip("_")


def _field_id(
    annot: WidgetAnnotation,
    kind: FieldKind,
    page_number: int,
    ordinal: int,
    taken: set[str],
) -> str:
    base = annot.field_name or f"field_{page_number}_{ordinal}"
    if base not in taken:
        return base
    if kind is FieldKind.RADIO and annot.export_value:
        candidate = f"{base}_{_slug(annot.export_value)}"
        if candidate not in taken:
            return candidate
    return f"{base}_{page_number}_{ordinal}"


def extract_annotations(
    annotations: Iterable[WidgetAnnotation],
    page: PageGeometry,
    page_number: int,
) -> list[ExtractedField]:
    """Turn a page's widget annotations into fields.

    Non-widget annotations (links, popups) are ignored. A widget whose
    rectangle cannot be read is skipped with a warning; the rest of the page
    still goes through. The humanized field name is looked up in the label
    table for the display label, the filling party (default admin) and
    whether a signature is required.
    """
    fields: list[ExtractedField] = []
    taken: set[str] = set()
    widgets = [a for a in annotations if a.is_widget]

    for ordinal, annot in enumerate(widgets):
        try:
            source_rect = RawRect.from_sequence(annot.rect)
        except MalformedRectError as exc:
            logger.warning(
                "page %d: skipping widget %r: %s", page_number, annot.field_name, exc
            )
            continue

        label = humanize(annot.field_name)
        pattern = match_label(label or "")
        kind = classify(annot)
        field_id = _field_id(annot, kind, page_number, ordinal, taken)
        taken.add(field_id)

        fields.append(
            ExtractedField(
                field_id=field_id,
                kind=kind,
                page=page_number,
                rect=from_pdf_rect(source_rect, page, WIDGET_BOUNDS),
                source_rect=source_rect,
                group=annot.field_name if kind is FieldKind.RADIO else None,
                value=annot.value,
                required=annot.required or (pattern is not None and pattern.required),
                label=pattern.label if pattern else label,
                filled_by=pattern.filled_by if pattern else "admin",
            )
        )

    logger.debug("page %d: %d widget fields", page_number, len(fields))
    return fields
