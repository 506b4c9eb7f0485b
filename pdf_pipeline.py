"""Extract fillable form fields from a loaded PDF document.

Two phases separated by a single barrier:
  A. annotations  – every page's widget annotations become fields; whether any
                    widget exists anywhere is OR-folded into ``has_acro_form``
  B. fallback     – every page's text runs are clustered into lines; pattern
                    detection runs only when phase A found no widget at all,
                    so one page with widgets disables inference everywhere

A document read only from text also gets a default signer and admin signature
pair on its last page when inference found none (``default_signatures``).

The merged fields are deduplicated by ``field_id`` (first occurrence wins).
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Sequence, TypeVar

from pdf_annotations import extract_annotations, has_widgets
from pdf_context import classify_document, detect, ensure_signatures
from pdf_extract import extract_lines, runs_from_items
from pdf_models import (
    DocumentTooLargeError,
    ExtractedField,
    ExtractionConfig,
    ExtractionResult,
    PageContent,
    TextLine,
)

logger = logging.getLogger(__name__)

_P = TypeVar("_P")
_R = TypeVar("_R")


def dedupe(fields: Iterable[ExtractedField]) -> list[ExtractedField]:
    seen: set[str] = set()
    unique: list[ExtractedField] = []
    for f in fields:
        if f.field_id in seen:
            continue
        seen.add(f.field_id)
        unique.append(f)
    return unique


def check_limits(pages: Sequence[PageContent], config: ExtractionConfig) -> None:
    if len(pages) > config.max_pages:
        raise DocumentTooLargeError("pages", len(pages), config.max_pages)
    runs = sum(len(p.text_items) for p in pages)
    if runs > config.max_text_runs:
        raise DocumentTooLargeError("text runs", runs, config.max_text_runs)


def _map_pages(fn: Callable[[_P], _R], pages: Sequence[_P], workers: int) -> list[_R]:
    if workers <= 1 or len(pages) <= 1:
        return [fn(p) for p in pages]
    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(fn, pages))


def _annotation_phase(page: PageContent) -> tuple[list[ExtractedField], bool]:
    fields = extract_annotations(page.annotations, page.geometry, page.number)
    return fields, has_widgets(page.annotations)


def _line_phase(page: PageContent, config: ExtractionConfig) -> list[TextLine]:
    runs = runs_from_items(page.text_items, page.number)
    return extract_lines(runs, page.geometry, config.line_tolerance)


def extract_document(
    pages: Sequence[PageContent],
    config: ExtractionConfig | None = None,
) -> ExtractionResult:
    config = config or ExtractionConfig()
    check_limits(pages, config)

    usable: list[PageContent] = []
    for page in pages:
        if page.geometry.is_valid:
            usable.append(page)
        else:
            logger.warning(
                "page %d: unusable geometry %sx%s, skipping",
                page.number, page.geometry.width, page.geometry.height,
            )

    annotated = _map_pages(_annotation_phase, usable, config.max_workers)
    has_acro_form = any(saw_widget for _, saw_widget in annotated)

    page_lines = _map_pages(lambda p: _line_phase(p, config), usable, config.max_workers)

    fields: list[ExtractedField] = [f for page_fields, _ in annotated for f in page_fields]
    taken: set[str] = set()
    if not has_acro_form:
        for page, lines in zip(usable, page_lines):
            fields.extend(detect(lines, page.geometry, config.checkbox_label_window, taken))

    text_lines = [(line.page, line) for lines in page_lines for line in lines]
    document_type = classify_document(line for _, line in text_lines)
    if not has_acro_form and text_lines and config.default_signatures:
        added = ensure_signatures(fields, usable[-1].number, document_type)
        if added:
            logger.info("added %d default signature fields on page %d", len(added), usable[-1].number)
        fields.extend(added)

    result = ExtractionResult(
        fields=dedupe(fields),
        text_lines=text_lines,
        page_count=len(pages),
        has_acro_form=has_acro_form,
        document_type=document_type,
    )
    logger.info(
        "extracted %d fields from %d pages (%d text lines), has_acro_form=%s",
        len(result.fields), result.page_count, len(text_lines), has_acro_form,
    )
    return result
