"""
Unit tests for tenant exclusion rules
"""
from types import SimpleNamespace

from optimizer.catalog.items import CatalogItem
from optimizer.services.exclusion import ExclusionRules, is_excluded, keep, parse_list

from tests.fakes import make_item


def item(tags=(), collections=()):
    return CatalogItem.from_payload(make_item("p1", tags=tags, collections=collections))


def test_blocked_tag_matches_case_insensitively():
    rules = ExclusionRules.build(tags=["NoSEO"])
    assert is_excluded(item(tags=["sale", "noseo"]), rules)
    assert is_excluded(item(tags=[" NOSEO "]), rules)
    assert keep(item(tags=["sale"]), rules)


def test_blocked_collection_excludes_item():
    rules = ExclusionRules.build(collections=["gift-cards"])
    assert is_excluded(item(collections=["summer", "gift-cards"]), rules)
    assert not is_excluded(item(collections=["summer"]), rules)


def test_empty_rules_keep_everything():
    rules = ExclusionRules.build()
    assert not rules
    assert keep(item(tags=["anything"], collections=["any"]), rules)


def test_rules_from_tenant_row():
    tenant = SimpleNamespace(excluded_tags=["Draft"], excluded_collections=None)
    rules = ExclusionRules.for_tenant(tenant)
    assert rules.tags == frozenset({"draft"})
    assert rules.collections == frozenset()


def test_parse_list_accepts_comma_separated_strings():
    assert parse_list("a, b,,c ,a") == ["a", "b", "c"]
    assert parse_list(["x", " ", "y"]) == ["x", "y"]
    assert parse_list(None) == []
