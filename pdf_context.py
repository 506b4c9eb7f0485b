from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Iterable

from pdf_extract import run_rect
from pdf_geometry import WIDGET_BOUNDS, clamp_rect, from_pdf_rect
from pdf_models import ExtractedField, FieldKind, NormalizedRect, PageGeometry, RawRect, TextLine


@dataclass(frozen=True)
class LabelPattern:
    """One row of the label table: first pattern that matches a label wins."""

    regex: re.Pattern
    kind: FieldKind
    field_id: str
    label: str
    filled_by: str
    required: bool = False


def _p(
    pattern: str,
    kind: FieldKind,
    field_id: str,
    label: str,
    filled_by: str,
    required: bool = False,
) -> LabelPattern:
    return LabelPattern(re.compile(pattern, re.IGNORECASE), kind, field_id, label, filled_by, required)


_T, _D, _S = FieldKind.TEXT, FieldKind.DATE, FieldKind.SIGNATURE

LABEL_PATTERNS: tuple[LabelPattern, ...] = (
    _p(r"sign\w*\s+date|date\s+signed|date\s+of\s+signature", _D, "signature_date", "Signature Date", "guest"),
    _p(r"second\s+owner.*sign", _S, "second_owner_signature", "Second Owner Signature", "guest", True),
    _p(r"owner.*sign", _S, "owner_signature", "Owner Signature", "guest", True),
    _p(r"(tenant|lessee|renter).*sign", _S, "tenant_signature", "Tenant Signature", "tenant", True),
    _p(r"(landlord|lessor).*sign", _S, "landlord_signature", "Landlord Signature", "admin", True),
    _p(r"(manager|host|agent).*sign", _S, "manager_signature", "Manager Signature", "admin", True),
    _p(r"^\s*(signature|sign\s+here)\b", _S, "signature", "Signature", "guest", True),
    _p(r"effective\s+date|agreement\s+date", _D, "effective_date", "Effective Date", "admin"),
    _p(r"date\s+of\s+birth|birth\s*date|\bdob\b", _D, "date_of_birth", "Date of Birth", "tenant"),
    _p(r"lease\s+start|start\s+date|commencement", _D, "lease_start_date", "Lease Start Date", "admin"),
    _p(r"lease\s+end|end\s+date|expiration", _D, "lease_end_date", "Lease End Date", "admin"),
    _p(r"move[\s-]*in\s+date", _D, "move_in_date", "Move-In Date", "admin"),
    _p(r"property\s+address|rental\s+address|premises\s+address", _T, "property_address", "Property Address", "admin"),
    _p(r"second\s+owner", _T, "second_owner_name", "Second Owner Name", "guest"),
    _p(r"owner.*address|residing\s+at|^\s*address\b", _T, "owner_address", "Address", "guest"),
    _p(r"owner\s*\(\s*s\s*\)|owners?\s+name|^\s*owners?\s*$", _T, "owner_name", "Owner(s)", "guest"),
    _p(r"print(ed)?\s+name", _T, "print_name", "Print Name", "guest"),
    _p(r"(tenant|lessee|renter)s?\s+name", _T, "tenant_name", "Tenant Name", "admin"),
    _p(r"e-?mail", _T, "owner_email", "Email", "guest"),
    _p(r"phone|\btel\b", _T, "owner_phone", "Phone", "guest"),
    _p(r"monthly\s+rent|base\s+rent|rent\s+amount", _T, "monthly_rent", "Monthly Rent", "admin"),
    _p(r"security\s+deposit", _T, "security_deposit", "Security Deposit", "admin"),
    _p(r"^\s*date\b", _D, "date", "Date", "guest"),
)

CHECKBOX_GLYPHS = frozenset("☐□◯○◻▢")

_PACKAGE_PATTERNS: list[tuple[re.Pattern, str, str]] = [
    (re.compile(r"(?<!\d)(15|18|20|25)\s*%"), "package_{0}", "{0}% Package"),
    (re.compile(r"\btier\s*([123])\b", re.IGNORECASE), "package_tier_{0}", "Tier {0} Package"),
    (re.compile(r"\b(basic|standard|premium)\b", re.IGNORECASE), "package_{0}", "{1} Package"),
]
PACKAGE_GROUP = "package_selection"

_ROLE_RE = re.compile(r"(owner|tenant|landlord|manager|host|guest|agent)\s*:?", re.IGNORECASE)
_ROLE_FILLED_BY = {"owner": "guest", "guest": "guest", "tenant": "tenant"}

_CUE_RE = re.compile(r"(_{4,}|[☐□◯○◻▢]|\[\s*\])")
_UNDERLINE_RE = re.compile(r"_{4,}")
_BRACKET_BOX_RE = re.compile(r"\[\s*\]")
_PUNCT_ONLY_RE = re.compile(r"^[\s:.\-–]*$")
_NON_ID_RE = re.compile(r"[^a-z0-9]+")

_CHECKBOX_LABEL_WINDOW = 40.0
_CHECKBOX_SIZE = (4.0, 3.0)
_FIELD_HEIGHT = 3.0
_SIGNATURE_HEIGHT = 6.0
_COLON_FIELD_WIDTH = 30.0
_SIGNATURE_WIDTH = 35.0
_DATE_WIDTH = 20.0
_LABEL_GAP = 1.0
_MAX_LABEL_WORDS = 6

_GLYPH, _UNDERLINE, _TEXT = "glyph", "underline", "text"


@dataclass(frozen=True)
class _Segment:
    text: str
    cue: str
    rect: NormalizedRect


def match_label(text: str) -> LabelPattern | None:
    label = text.strip().rstrip(":").strip()
    if not label:
        return None
    for pattern in LABEL_PATTERNS:
        if pattern.regex.search(label):
            return pattern
    return None


def match_package(text: str) -> tuple[str, str] | None:
    """Return ``(field_id, label)`` when *text* names a package option."""
    for pattern, id_format, label_format in _PACKAGE_PATTERNS:
        m = pattern.search(text)
        if m:
            value = m.group(1).lower()
            return id_format.format(value), label_format.format(value, value.title())
    return None


def _slug(text: str, limit: int = 30) -> str:
    return _NON_ID_RE.sub("_", text.lower())[:limit].strip("_")


def _classify_piece(piece: str) -> str:
    if _UNDERLINE_RE.fullmatch(piece):
        return _UNDERLINE
    if piece in CHECKBOX_GLYPHS or _BRACKET_BOX_RE.fullmatch(piece):
        return _GLYPH
    return _TEXT


def split_segments(line: TextLine, page: PageGeometry) -> list[_Segment]:
    """Break each run on glyphs and underscore blanks, left to right.

    Segment rectangles are interpolated along the run by character offset.
    """
    segments: list[_Segment] = []
    for run in line.runs:
        text = run.text
        total = len(text)
        base = run_rect(run)
        offset = 0
        for piece in _CUE_RE.split(text):
            start, end = offset, offset + len(piece)
            offset = end
            stripped = piece.strip()
            if not stripped:
                continue
            lead = len(piece) - len(piece.lstrip())
            start += lead
            end = start + len(stripped)
            x0 = base.x1 + run.width * start / total
            x1 = base.x1 + run.width * end / total
            rect = from_pdf_rect(RawRect(x0, base.y1, x1, base.y2), page)
            segments.append(_Segment(stripped, _classify_piece(stripped), rect))
    return segments


def _checkbox_field(
    glyph: _Segment, label: str, page_number: int, ordinal: int
) -> ExtractedField:
    width, height = _CHECKBOX_SIZE
    rect = clamp_rect(glyph.rect.x, glyph.rect.y, width, height, WIDGET_BOUNDS)
    package = match_package(label)
    if package is not None:
        field_id, package_label = package
        return ExtractedField(
            field_id=field_id,
            kind=FieldKind.RADIO,
            page=page_number,
            rect=rect,
            group=PACKAGE_GROUP,
            required=True,
            label=package_label,
            filled_by="admin",
        )
    slug = _slug(label)
    return ExtractedField(
        field_id=f"checkbox_{slug}" if slug else f"checkbox_{page_number}_{ordinal}",
        kind=FieldKind.CHECKBOX,
        page=page_number,
        rect=rect,
        label=label[:50] or None,
        filled_by="admin",
    )


def _labelled_field(
    pattern: LabelPattern, page_number: int, x: float, y: float, width: float, height: float
) -> ExtractedField:
    return ExtractedField(
        field_id=pattern.field_id,
        kind=pattern.kind,
        page=page_number,
        rect=clamp_rect(x, y, width, height, WIDGET_BOUNDS),
        required=pattern.required,
        label=pattern.label,
        filled_by=pattern.filled_by,
    )


def _preceding_label(segments: list[_Segment], consumed: list[bool], i: int) -> int | None:
    j = i - 1
    while j >= 0:
        seg = segments[j]
        if seg.cue != _TEXT or consumed[j]:
            return None
        if not _PUNCT_ONLY_RE.match(seg.text):
            return j
        j -= 1
    return None


def _signature_block(line: TextLine, segments: list[_Segment], page_number: int) -> list[ExtractedField]:
    m = _ROLE_RE.fullmatch(" ".join(s.text for s in segments).strip())
    if m is None:
        return []
    role = m.group(1).lower()
    filled_by = _ROLE_FILLED_BY.get(role, "admin")
    first = segments[0].rect
    y = max(s.rect.bottom for s in segments) + _LABEL_GAP
    return [
        ExtractedField(
            field_id=f"{role}_signature",
            kind=FieldKind.SIGNATURE,
            page=page_number,
            rect=clamp_rect(first.x, y, _SIGNATURE_WIDTH, _SIGNATURE_HEIGHT, WIDGET_BOUNDS),
            required=True,
            label=f"{role.title()} Signature",
            filled_by=filled_by,
        ),
        ExtractedField(
            field_id=f"{role}_signature_date",
            kind=FieldKind.DATE,
            page=page_number,
            rect=clamp_rect(first.x + 40.0, y, _DATE_WIDTH, _FIELD_HEIGHT, WIDGET_BOUNDS),
            required=True,
            label=f"{role.title()} Signature Date",
            filled_by=filled_by,
        ),
    ]


def detect_line(
    line: TextLine,
    page: PageGeometry,
    checkbox_label_window: float = _CHECKBOX_LABEL_WINDOW,
    checkbox_ordinal: int = 0,
) -> list[ExtractedField]:
    """Apply the three cues to one line: glyphs, then underlines, then colon labels."""
    segments = split_segments(line, page)
    if not segments:
        return []
    consumed = [False] * len(segments)
    fields: list[ExtractedField] = []

    for i, seg in enumerate(segments):
        if seg.cue != _GLYPH:
            continue
        consumed[i] = True
        parts: list[str] = []
        for j in range(i + 1, len(segments)):
            nxt = segments[j]
            if nxt.cue != _TEXT or consumed[j] or nxt.rect.x > seg.rect.x + checkbox_label_window:
                break
            parts.append(nxt.text)
            consumed[j] = True
        fields.append(_checkbox_field(seg, " ".join(parts), line.page, checkbox_ordinal + len(fields)))

    for i, seg in enumerate(segments):
        if seg.cue != _UNDERLINE or consumed[i]:
            continue
        consumed[i] = True
        j = _preceding_label(segments, consumed, i)
        if j is None:
            continue
        consumed[j] = True
        pattern = match_label(segments[j].text)
        if pattern is None:
            continue
        height = _SIGNATURE_HEIGHT if pattern.kind is FieldKind.SIGNATURE else max(seg.rect.height, _FIELD_HEIGHT)
        fields.append(
            _labelled_field(pattern, line.page, seg.rect.x, seg.rect.bottom - height, seg.rect.width, height)
        )

    if not any(consumed):
        block = _signature_block(line, segments, line.page)
        if block:
            return block

    for i, seg in enumerate(segments):
        if seg.cue != _TEXT or consumed[i] or not seg.text.endswith(":"):
            continue
        if len(seg.text.split()) > _MAX_LABEL_WORDS:
            continue
        pattern = match_label(seg.text)
        if pattern is None:
            continue
        consumed[i] = True
        signature = pattern.kind is FieldKind.SIGNATURE
        width = _SIGNATURE_WIDTH if signature else _COLON_FIELD_WIDTH
        height = _SIGNATURE_HEIGHT if signature else max(seg.rect.height, _FIELD_HEIGHT)
        fields.append(
            _labelled_field(pattern, line.page, seg.rect.right + _LABEL_GAP, seg.rect.y, width, height)
        )

    return fields


def detect(
    lines: Iterable[TextLine],
    page: PageGeometry,
    checkbox_label_window: float = _CHECKBOX_LABEL_WINDOW,
    taken: set[str] | None = None,
) -> list[ExtractedField]:
    """Infer fields from a page's clustered lines.

    Only meaningful for documents without any AcroForm widgets; the caller
    owns that decision. *taken* holds the ids already handed out in the
    document; a repeated label such as a second ``Date:`` blank gets
    ``{id}_{page}_{ordinal}``. Checkbox ids are left alone, so a repeated
    checkbox label keeps only its first box after deduplication.
    """
    taken = set() if taken is None else taken
    fields: list[ExtractedField] = []
    checkboxes = 0
    for line in lines:
        for f in detect_line(line, page, checkbox_label_window, checkboxes):
            if f.kind in (FieldKind.CHECKBOX, FieldKind.RADIO):
                checkboxes += 1
            elif f.field_id in taken:
                f = replace(f, field_id=f"{f.field_id}_{f.page}_{len(fields)}")
            taken.add(f.field_id)
            fields.append(f)
    return fields


# ---------------------------------------------------------------------------
# Document type
# ---------------------------------------------------------------------------

_DOCUMENT_TYPES: list[tuple[str, tuple[str, ...], int]] = [
    ("rental_agreement", (
        "residential lease", "lease agreement", "rental agreement", "tenancy agreement",
        "landlord", "tenant", "monthly rent", "security deposit",
    ), 3),
    ("management_agreement", (
        "management agreement", "property management", "management fee", "owner agrees",
    ), 2),
    ("innkeeper_agreement", (
        "innkeeper", "transient occupancy", "guest registration", "check-in", "nightly rate",
    ), 2),
    ("co_hosting", ("co-host", "cohost", "co hosting", "vacation rental management"), 2),
]


def classify_document(lines: Iterable[TextLine]) -> str:
    text = " ".join(line.text.lower() for line in lines)
    for name, keywords, threshold in _DOCUMENT_TYPES:
        if sum(1 for k in keywords if k in text) >= threshold:
            return name
    return "other"


# ---------------------------------------------------------------------------
# Default signature blocks
# ---------------------------------------------------------------------------

_SIGNER_ROLES = ("guest", "tenant", "owner")
_SIGNATURE_ROW_Y = {"guest": 70.0, "admin": 85.0}


def _default_signer(document_type: str) -> tuple[str, str]:
    if document_type == "rental_agreement":
        return "tenant", "tenant"
    if document_type in ("management_agreement", "co_hosting"):
        return "owner", "guest"
    return "guest", "guest"


def _signature_pair(role: str, filled_by: str, page_number: int, y: float) -> list[ExtractedField]:
    return [
        ExtractedField(
            field_id=f"{role}_signature",
            kind=FieldKind.SIGNATURE,
            page=page_number,
            rect=clamp_rect(10.0, y, _SIGNATURE_WIDTH, _SIGNATURE_HEIGHT, WIDGET_BOUNDS),
            required=True,
            label=f"{role.title()} Signature",
            filled_by=filled_by,
        ),
        ExtractedField(
            field_id=f"{role}_signature_date",
            kind=FieldKind.DATE,
            page=page_number,
            rect=clamp_rect(50.0, y, _DATE_WIDTH, _FIELD_HEIGHT, WIDGET_BOUNDS),
            required=True,
            label=f"{role.title()} Signature Date",
            filled_by=filled_by,
        ),
    ]


def ensure_signatures(
    fields: list[ExtractedField], page_number: int, document_type: str
) -> list[ExtractedField]:
    """Signature and date fields to add on *page_number* when text inference found none.

    One pair for the signing party (tenant, owner or guest by document type)
    and one for the admin side (landlord or host). A pair is only proposed when
    no signature for that side exists and its id is still free.
    """
    taken = {f.field_id for f in fields}
    signatures = [f for f in fields if f.kind is FieldKind.SIGNATURE]
    has_signer = any(
        f.filled_by in ("guest", "tenant") or any(r in f.field_id for r in _SIGNER_ROLES)
        for f in signatures
    )
    has_admin = any(f.filled_by == "admin" for f in signatures)

    added: list[ExtractedField] = []
    if not has_signer:
        role, filled_by = _default_signer(document_type)
        if f"{role}_signature" not in taken:
            added += _signature_pair(role, filled_by, page_number, _SIGNATURE_ROW_Y["guest"])
    if not has_admin:
        role = "landlord" if document_type == "rental_agreement" else "host"
        if f"{role}_signature" not in taken:
            added += _signature_pair(role, "admin", page_number, _SIGNATURE_ROW_Y["admin"])
    return added
