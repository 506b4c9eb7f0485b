from __future__ import annotations

import logging

import pytest

from pdf_annotations import classify, extract_annotations, has_widgets, humanize
from pdf_models import FieldKind, FieldTypeTag, PageGeometry, RawRect, WidgetAnnotation

PAGE = PageGeometry(800.0, 1000.0)


def widget(name=None, field_type=FieldTypeTag.TEXT, rect=(100, 700, 300, 720), **kw) -> WidgetAnnotation:
    return WidgetAnnotation(subtype="Widget", rect=rect, field_type=field_type, field_name=name, **kw)


def test_single_text_widget():
    fields = extract_annotations([widget("owner_name")], PAGE, 1)

    assert len(fields) == 1
    f = fields[0]
    assert f.field_id == "owner_name"
    assert f.kind is FieldKind.TEXT
    assert f.page == 1
    assert f.rect.x == pytest.approx(12.5)
    assert f.rect.y == pytest.approx(28.0)
    assert f.rect.width == pytest.approx(25.0)
    assert f.rect.height == pytest.approx(2.0)
    assert f.source_rect == RawRect(100, 700, 300, 720)
    assert not f.is_inferred
    assert f.label == "Owner(s)"
    assert f.filled_by == "guest"


@pytest.mark.parametrize(
    "annot, kind",
    [
        (widget("sig1", FieldTypeTag.SIGNATURE), FieldKind.SIGNATURE),
        (widget("agree", FieldTypeTag.BUTTON, checkbox=True), FieldKind.CHECKBOX),
        (widget("plan", FieldTypeTag.BUTTON, radio=True), FieldKind.RADIO),
        (widget("Date_Signed"), FieldKind.DATE),
        (widget("tenant_DOB"), FieldKind.DATE),
        (widget("tenant_name"), FieldKind.TEXT),
        (widget("state", FieldTypeTag.CHOICE), FieldKind.TEXT),
        (widget("submit", FieldTypeTag.BUTTON), FieldKind.TEXT),
    ],
)
def test_classification(annot, kind):
    assert classify(annot) is kind


def test_date_hint_only_applies_to_text_fields():
    assert classify(widget("date_box", FieldTypeTag.BUTTON, checkbox=True)) is FieldKind.CHECKBOX


def test_non_widget_annotations_are_ignored():
    link = WidgetAnnotation(subtype="Link", rect=(0, 0, 10, 10))
    popup = WidgetAnnotation(subtype="Popup", rect=(0, 0, 10, 10))

    assert extract_annotations([link, popup], PAGE, 1) == []
    assert not has_widgets([link, popup])
    assert has_widgets([link, widget("x")])


def test_missing_name_gets_page_ordinal_id():
    fields = extract_annotations([widget("first"), widget(None)], PAGE, 3)
    assert [f.field_id for f in fields] == ["first", "field_3_1"]


def test_radio_siblings_share_group_with_distinct_ids():
    annots = [
        widget("package_selection", FieldTypeTag.BUTTON, radio=True, export_value="18"),
        widget("package_selection", FieldTypeTag.BUTTON, radio=True, export_value="20", rect=(100, 650, 120, 670)),
    ]
    fields = extract_annotations(annots, PAGE, 1)

    assert [f.kind for f in fields] == [FieldKind.RADIO, FieldKind.RADIO]
    assert {f.group for f in fields} == {"package_selection"}
    assert [f.field_id for f in fields] == ["package_selection", "package_selection_18"]


def test_radio_siblings_without_export_values():
    annots = [
        widget("package_selection", FieldTypeTag.BUTTON, radio=True),
        widget("package_selection", FieldTypeTag.BUTTON, radio=True),
    ]
    ids = [f.field_id for f in extract_annotations(annots, PAGE, 1)]
    assert ids == ["package_selection", "package_selection_1_1"]


def test_malformed_rect_is_skipped_with_warning(caplog):
    annots = [widget("broken", rect=(1, 2, 3)), widget("nothing", rect=None), widget("ok")]
    with caplog.at_level(logging.WARNING, logger="pdf_annotations"):
        fields = extract_annotations(annots, PAGE, 2)

    assert [f.field_id for f in fields] == ["ok"]
    assert "broken" in caplog.text
    assert "nothing" in caplog.text


def test_required_and_value_are_carried():
    f = extract_annotations([widget("email", required=True, value="a@b.c")], PAGE, 1)[0]
    assert f.required is True
    assert f.value == "a@b.c"
    assert extract_annotations([widget("email")], PAGE, 1)[0].required is False


def test_widget_boxes_are_clamped():
    f = extract_annotations([widget("huge", rect=(0, 0, 800, 1000))], PAGE, 1)[0]
    assert f.rect.width == 80
    assert f.rect.height == 20


def test_from_mapping_reads_pdfjs_shape():
    annot = WidgetAnnotation.from_mapping(
        {
            "subtype": "Widget",
            "rect": [1, 2, 3, 4],
            "fieldType": "Btn",
            "fieldName": "package_selection",
            "radioButton": True,
            "buttonValue": "25",
            "fieldValue": "",
        }
    )
    assert annot.is_widget
    assert annot.field_type is FieldTypeTag.BUTTON
    assert annot.radio and not annot.checkbox
    assert annot.export_value == "25"
    assert annot.value is None
    assert annot.rect == (1, 2, 3, 4)


@pytest.mark.parametrize(
    "name, label",
    [("owner_name", "Owner Name"), ("tenantEmail", "Tenant Email"), ("lease.start-date", "Lease Start Date"), (None, None)],
)
def test_humanize(name, label):
    assert humanize(name) == label


def test_widget_names_pick_up_label_table_roles():
    annots = [
        widget("tenant_signature", FieldTypeTag.SIGNATURE),
        widget("landlordSignature", FieldTypeTag.SIGNATURE, rect=(100, 600, 300, 620)),
        widget("unit_number", rect=(100, 500, 300, 520)),
    ]
    tenant, landlord, unit = extract_annotations(annots, PAGE, 1)

    assert (tenant.field_id, tenant.label, tenant.filled_by, tenant.required) == (
        "tenant_signature", "Tenant Signature", "tenant", True,
    )
    assert (landlord.field_id, landlord.filled_by, landlord.required) == ("landlordSignature", "admin", True)
    assert (unit.label, unit.filled_by, unit.required) == ("Unit Number", "admin", False)


def test_widget_required_flag_is_kept_without_a_table_match():
    (f,) = extract_annotations([widget("unit_number", required=True)], PAGE, 1)
    assert f.required
