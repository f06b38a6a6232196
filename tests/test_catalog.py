"""Tests for state-id sanitizing, alias resolution, and snapshot files."""

from __future__ import annotations

import logging
import os
import re

import pytest

from tits_connector.catalog import (
    ITEMS,
    TRIGGERS,
    CatalogStore,
    first_field,
    sanitize_id,
)

_TOKEN_RE = re.compile(r"[A-Za-z0-9_-]{0,64}")


@pytest.mark.parametrize("name, expected", [
    ("Confetti", "Confetti"),
    ("Rubber Duck", "Rubber_Duck"),
    ("  !!Big   Egg!! ", "Big_Egg"),
    ("snake_case-name", "snake_case-name"),
    ("Café au lait", "Caf_au_lait"),
    ("***", ""),
    ("", ""),
    (None, ""),
])
def test_sanitize_id(name, expected):
    assert sanitize_id(name) == expected


@pytest.mark.parametrize("name", [
    "x" * 100,
    "a" * 63 + " b",
    "__leading and trailing__",
    "a:b/c\\d.e",
    "emoji 🎉 party",
    "tab\tand\nnewline",
])
def test_sanitize_id_shape_and_idempotence(name):
    token = sanitize_id(name)
    assert _TOKEN_RE.fullmatch(token)
    assert not token.startswith("_")
    assert not token.endswith("_")
    assert sanitize_id(token) == token


def test_first_field_skips_empty_values():
    record = {"itemName": "", "name": None, "id": 7}
    assert first_field(record, ("itemName", "name", "id")) == "7"
    assert first_field({}, ("itemName",)) == ""


def test_kind_field_orders():
    item = {"itemName": "Big Egg", "name": "egg", "id": "lower", "ID": "UPPER"}
    assert ITEMS.label(item) == "Big Egg"
    assert ITEMS.name(item) == "Big Egg"
    assert ITEMS.identifier(item) == "UPPER"
    assert ITEMS.state_id(item) == "Big_Egg"

    trigger = {"displayName": "Shown", "name": "Named", "id": "t1"}
    assert TRIGGERS.label(trigger) == "Shown"
    assert TRIGGERS.name(trigger) == "Named"
    assert TRIGGERS.identifier(trigger) == "t1"


def test_replace_drops_non_objects():
    store = CatalogStore()
    kept = store.replace_items([{"name": "Egg", "id": "1"}, "junk", 3, None])
    assert kept == [{"name": "Egg", "id": "1"}]
    assert store.items == kept


def test_replace_non_list_is_empty():
    store = CatalogStore()
    store.replace_items([{"name": "Egg", "id": "1"}])
    assert store.replace_items({"not": "a list"}) == []
    assert store.items == []


def test_replace_swaps_whole_collection():
    store = CatalogStore()
    first = store.replace_triggers([{"name": "A", "id": "1"}])
    second = store.replace_triggers([{"name": "B", "id": "2"}])
    assert store.triggers is second
    assert first == [{"name": "A", "id": "1"}]


def test_resolve_item_by_every_alias():
    item = {"name": "Egg", "itemName": "Golden Egg", "id": "egg-1", "ID": "EGG-1"}
    store = CatalogStore()
    store.replace_items([{"name": "Other", "id": "x"}, item])
    for token in ("Egg", "Golden Egg", "egg-1", "EGG-1"):
        assert store.resolve_item(token) is item


def test_resolve_trigger_by_every_alias():
    trigger = {"name": "boom", "displayName": "Boom!", "id": "t-1", "ID": "T-1"}
    store = CatalogStore()
    store.replace_triggers([trigger])
    for token in ("boom", "Boom!", "t-1", "T-1"):
        assert store.resolve_trigger(token) is trigger


def test_resolve_returns_first_match_and_none():
    a = {"name": "Dup", "id": "1"}
    b = {"name": "Dup", "id": "2"}
    store = CatalogStore()
    store.replace_items([a, b])
    assert store.resolve_item("Dup") is a
    assert store.resolve_item("missing") is None
    assert store.resolve_item("") is None


def test_resolve_does_not_cross_collections():
    store = CatalogStore()
    store.replace_items([{"name": "Egg", "id": "1"}])
    assert store.resolve_trigger("Egg") is None


def test_missing_snapshot_is_empty(tmp_path):
    store = CatalogStore(str(tmp_path))
    assert store.lookup_snapshot_tokens(ITEMS) == []
    assert store.lookup_snapshot_tokens(TRIGGERS) == []


def test_snapshot_round_trip(tmp_path):
    store = CatalogStore(str(tmp_path))
    records = [
        {"name": "Confetti", "id": "abc1"},
        {"itemName": "Rubber Duck", "ID": "abc3"},
        {"name": "Ratio: 2 to 1", "id": "abc4"},
    ]
    assert store.persist_snapshot(ITEMS, records)
    tokens = store.lookup_snapshot_tokens(ITEMS)
    assert tokens == [ITEMS.state_id(r) for r in records]
    assert tokens == ["Confetti", "Rubber_Duck", "Ratio_2_to_1"]


def test_snapshot_file_format(tmp_path):
    store = CatalogStore(str(tmp_path))
    store.persist_snapshot(TRIGGERS, [
        {"name": "Boom", "displayName": "Big Boom", "id": "t1"},
        {"displayName": "Only Display", "ID": "t2"},
    ])
    with open(tmp_path / "triggers_list.txt", encoding="utf-8") as f:
        assert f.read() == "Boom : t1\nOnly Display : t2"


def test_snapshot_skips_blank_and_unnamed_lines(tmp_path):
    (tmp_path / "items_list.txt").write_text(
        "Egg : 1\n\n   \n : 2\n!!! : 3\nLegacy line\nold:format\n",
        encoding="utf-8")
    store = CatalogStore(str(tmp_path))
    assert store.lookup_snapshot_tokens(ITEMS) == ["Egg", "Legacy_line", "old"]


def test_snapshot_write_failure_is_logged(tmp_path, caplog):
    store = CatalogStore(str(tmp_path / "does-not-exist"))
    store.replace_items([{"name": "Egg", "id": "1"}])
    with caplog.at_level(logging.ERROR, logger="tits_connector"):
        assert not store.persist_snapshot(ITEMS, store.items)
    assert "Failed to write" in caplog.text
    assert store.items == [{"name": "Egg", "id": "1"}]
    assert not os.path.exists(tmp_path / "does-not-exist")
