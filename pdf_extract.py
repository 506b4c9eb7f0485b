from __future__ import annotations

import math
from dataclasses import replace
from typing import Iterable

from pdf_geometry import from_pdf_rect
from pdf_models import PageGeometry, RawRect, RawTextItem, TextLine, TextRun

_LINE_TOLERANCE = 5.0
_DEFAULT_RUN_WIDTH = 50.0
_DEFAULT_RUN_HEIGHT = 12.0


def runs_from_items(items: Iterable[RawTextItem], page_number: int) -> list[TextRun]:
    """Convert parser text items into TextRuns, dropping blank ones.

    The transform is ``[a, b, c, d, e, f]``; ``(e, f)`` is the run origin and
    the length of ``(c, d)`` is the rendered font height.
    """
    runs: list[TextRun] = []
    for item in items:
        if not item.text or not item.text.strip():
            continue
        _, _, c, d, e, f = item.transform
        height = item.height or math.hypot(c, d) or _DEFAULT_RUN_HEIGHT
        width = item.width or _DEFAULT_RUN_WIDTH
        runs.append(
            TextRun(
                text=item.text,
                origin=(float(e), float(f)),
                width=float(width),
                height=float(height),
                page=page_number,
            )
        )
    return runs


def run_rect(run: TextRun) -> RawRect:
    x, y = run.origin
    return RawRect(x, y, x + run.width, y + run.height)


def extract_lines(
    runs: Iterable[TextRun],
    page: PageGeometry,
    tolerance: float = _LINE_TOLERANCE,
) -> list[TextLine]:
    """Group runs into visual lines, top of the page first.

    One sort by (page, -y, x) followed by a single walk: a run joins the
    current line while its y is within *tolerance* of the line's first run,
    otherwise it opens a new line.
    """
    placed = [replace(r, rect=from_pdf_rect(run_rect(r), page)) for r in runs]
    placed.sort(key=lambda r: (r.page, -r.origin[1], r.origin[0], r.text))

    lines: list[TextLine] = []
    per_page: dict[int, int] = {}
    current: list[TextRun] = []
    ref_y = 0.0
    ref_page = -1

    def flush() -> None:
        if current:
            row = tuple(sorted(current, key=lambda r: (r.origin[0], r.text)))
            index = per_page.get(ref_page, 0)
            per_page[ref_page] = index + 1
            lines.append(TextLine(page=ref_page, index=index, y=ref_y, runs=row))

    for run in placed:
        if current and run.page == ref_page and abs(ref_y - run.origin[1]) <= tolerance:
            current.append(run)
            continue
        flush()
        current = [run]
        ref_y = run.origin[1]
        ref_page = run.page
    flush()

    return lines
