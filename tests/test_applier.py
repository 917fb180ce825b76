"""
Tests for the mutation applier: whole-group writes that keep sibling values
"""
import asyncio

import pytest

from optimizer.catalog.errors import CatalogAuthError
from optimizer.catalog.items import CatalogItem
from optimizer.enums import Field
from optimizer.services.applier import FieldChange, MutationApplier, build_field_set

from tests.fakes import FakeCatalog, make_item

IMAGES = [
    {"id": "img-1", "url": "https://cdn.test/1.jpg", "alt_text": None},
    {"id": "img-2", "url": "https://cdn.test/2.jpg", "alt_text": "Existing alt text"},
]


def apply(catalog, item_id, changes, current=None):
    return asyncio.run(MutationApplier().apply(catalog, item_id, changes, current=current))


def test_title_write_carries_current_description():
    catalog = FakeCatalog([make_item("p1", seo_description="Keep this description")])
    current = asyncio.run(catalog.get_item("p1"))

    result = apply(catalog, "p1", [FieldChange(Field.TITLE, "New Title")], current=current)

    assert result.ok
    assert catalog.mutations == [("p1", {"seo": {"title": "New Title", "description": "Keep this description"}})]
    assert catalog.items["p1"]["seo"] == {"title": "New Title", "description": "Keep this description"}
    assert result.changes[0].old_value == ""
    assert result.changes[0].new_value == "New Title"


def test_item_is_reread_when_current_is_not_given():
    catalog = FakeCatalog([make_item("p1", seo_title="Old title")])

    result = apply(catalog, "p1", [FieldChange(Field.DESCRIPTION, "A description")])

    assert result.ok
    assert catalog.reads == ["p1"]
    assert catalog.items["p1"]["seo"] == {"title": "Old title", "description": "A description"}


def test_empty_value_clears_the_field():
    catalog = FakeCatalog([make_item("p1", seo_title="Generated", seo_description="Manual")])

    apply(catalog, "p1", [FieldChange(Field.TITLE, "")])

    assert catalog.mutations[0][1] == {"seo": {"title": None, "description": "Manual"}}


def test_alt_text_writes_only_the_targeted_image():
    catalog = FakeCatalog([make_item("p1", images=IMAGES)])

    result = apply(catalog, "p1", [FieldChange(Field.ALT_TEXT, "Blue mug on a shelf", "img-1")])

    assert result.ok
    assert catalog.mutations[0][1] == {"images": [{"id": "img-1", "alt_text": "Blue mug on a shelf"}]}
    assert [img["alt_text"] for img in catalog.items["p1"]["images"]] == ["Blue mug on a shelf", "Existing alt text"]
    assert result.changes[0].target_id == "img-1"


def test_unknown_image_is_reported_not_raised():
    catalog = FakeCatalog([make_item("p1", images=IMAGES)])

    result = apply(catalog, "p1", [FieldChange(Field.ALT_TEXT, "Blue mug on a shelf", "img-9")])

    assert not result.ok
    assert "img-9" in result.error
    assert catalog.mutations == []


def test_catalog_failure_is_reported_not_raised():
    catalog = FakeCatalog([make_item("p1")], fail_mutate=["p1"])

    result = apply(catalog, "p1", [FieldChange(Field.TITLE, "New Title")])

    assert not result.ok
    assert "500" in result.error


def test_auth_failure_propagates():
    catalog = FakeCatalog([make_item("p1")], auth_error=True)
    current = CatalogItem.from_payload(make_item("p1"))

    with pytest.raises(CatalogAuthError):
        apply(catalog, "p1", [FieldChange(Field.TITLE, "New Title")], current=current)


def test_no_changes_is_a_no_op():
    catalog = FakeCatalog([make_item("p1")])
    assert apply(catalog, "p1", []).ok
    assert catalog.mutations == []
    assert catalog.reads == []


def test_build_field_set_merges_both_seo_fields():
    current = CatalogItem.from_payload(make_item("p1", seo_title="T", seo_description="D"))
    field_set = build_field_set(current, [
        FieldChange(Field.TITLE, "New title"),
        FieldChange(Field.DESCRIPTION, "New description"),
    ])
    assert field_set == {"seo": {"title": "New title", "description": "New description"}}
