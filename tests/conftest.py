from __future__ import annotations

import pytest

from pdf_extract import extract_lines
from pdf_models import PageGeometry, TextLine, TextRun

LETTER = PageGeometry(612.0, 792.0)


def run(text: str, x: float, y: float, width: float = 100.0, height: float = 12.0, page: int = 1) -> TextRun:
    return TextRun(text=text, origin=(x, y), width=width, height=height, page=page)


def lines_of(*runs: TextRun, page: PageGeometry = LETTER) -> list[TextLine]:
    return extract_lines(list(runs), page)


@pytest.fixture
def letter() -> PageGeometry:
    return LETTER
