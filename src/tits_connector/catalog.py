"""Cached item/trigger collections and their on-disk snapshots."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)


_UNSAFE_RUN_RE = re.compile(r"[^\w\-]+", re.ASCII)
_STATE_ID_MAX = 64

Record = Mapping[str, Any]


def sanitize_id(name: Optional[str]) -> str:
    """Turn a display name into a state identifier token.

    Runs of characters outside ``[A-Za-z0-9_-]`` collapse to one underscore,
    surrounding underscores are trimmed, and the result is capped at 64
    characters.
    """
    if not name:
        return ""
    token = _UNSAFE_RUN_RE.sub("_", name).strip("_")
    return token[:_STATE_ID_MAX].rstrip("_")


def first_field(record: Record, fields: Sequence[str]) -> str:
    """Return the first non-empty value among ``fields`` as a string."""
    for key in fields:
        value = record.get(key)
        if value not in (None, ""):
            return str(value)
    return ""


@dataclass(frozen=True)
class CatalogKind:
    """Field layout and publishing details for one collection."""
    key: str
    label_fields: tuple[str, ...]
    name_fields: tuple[str, ...]
    id_fields: tuple[str, ...]
    alias_fields: tuple[str, ...]
    choice_id: str
    group: str
    snapshot_file: str

    def label(self, record: Record) -> str:
        """Name shown in choice lists and used for sorting."""
        return first_field(record, self.label_fields)

    def name(self, record: Record) -> str:
        """Name the state identifier and snapshot line derive from."""
        return first_field(record, self.name_fields)

    def identifier(self, record: Record) -> str:
        return first_field(record, self.id_fields)

    def state_id(self, record: Record) -> str:
        return sanitize_id(self.name(record))


ITEMS = CatalogKind(
    key="items",
    label_fields=("itemName", "name", "id"),
    name_fields=("itemName", "name", "id"),
    id_fields=("ID", "id"),
    alias_fields=("name", "itemName", "id", "ID"),
    choice_id="item",
    group="Throwables",
    snapshot_file="items_list.txt",
)

TRIGGERS = CatalogKind(
    key="triggers",
    label_fields=("displayName", "name", "id"),
    name_fields=("name", "displayName", "id"),
    id_fields=("id", "ID"),
    alias_fields=("name", "displayName", "id", "ID"),
    choice_id="trigger",
    group="Triggers",
    snapshot_file="triggers_list.txt",
)

KINDS: dict[str, CatalogKind] = {ITEMS.key: ITEMS, TRIGGERS.key: TRIGGERS}


def _coerce_records(records: Any) -> list[Record]:
    if not isinstance(records, list):
        return []
    kept = [r for r in records if isinstance(r, Mapping)]
    if len(kept) != len(records):
        logger.debug("Dropped %d non-object catalog entries",
                     len(records) - len(kept))
    return kept


def _snapshot_name(line: str) -> str:
    # Names may contain ':' themselves; the separator is the last " :".
    if " :" in line:
        return line.rsplit(" :", 1)[0].strip()
    return line.split(":", 1)[0].strip()


class CatalogStore:
    """Owns the live item/trigger collections and both snapshot files.

    Collections are swapped wholesale; readers always see either the old or
    the new list, never a mix.
    """

    def __init__(self, snapshot_dir: str = "."):
        self.snapshot_dir = snapshot_dir
        self._collections: dict[str, list[Record]] = {
            ITEMS.key: [],
            TRIGGERS.key: [],
        }

    # ─── Collections ─────────────────────────────────────────────────────

    @property
    def items(self) -> list[Record]:
        return self._collections[ITEMS.key]

    @property
    def triggers(self) -> list[Record]:
        return self._collections[TRIGGERS.key]

    def replace(self, kind: CatalogKind, records: Any) -> list[Record]:
        new = _coerce_records(records)
        self._collections[kind.key] = new
        return new

    def replace_items(self, records: Any) -> list[Record]:
        return self.replace(ITEMS, records)

    def replace_triggers(self, records: Any) -> list[Record]:
        return self.replace(TRIGGERS, records)

    def resolve(self, kind: CatalogKind, token: str) -> Optional[Record]:
        """Find the first entity whose alias fields contain ``token``."""
        if not token:
            return None
        for record in self._collections[kind.key]:
            for key in kind.alias_fields:
                value = record.get(key)
                if value not in (None, "") and str(value) == token:
                    return record
        return None

    def resolve_item(self, token: str) -> Optional[Record]:
        return self.resolve(ITEMS, token)

    def resolve_trigger(self, token: str) -> Optional[Record]:
        return self.resolve(TRIGGERS, token)

    # ─── Snapshots ───────────────────────────────────────────────────────

    def snapshot_path(self, kind: CatalogKind) -> str:
        return os.path.join(self.snapshot_dir, kind.snapshot_file)

    def lookup_snapshot_tokens(self, kind: CatalogKind) -> list[str]:
        """Tokens recorded by the last persisted snapshot, in file order.

        A missing or unreadable file means nothing was published yet.
        """
        path = self.snapshot_path(kind)
        try:
            with open(path, encoding="utf-8") as f:
                content = f.read()
        except OSError:
            return []

        tokens: list[str] = []
        for line in content.splitlines():
            line = line.strip()
            if not line:
                continue
            token = sanitize_id(_snapshot_name(line))
            if token:
                tokens.append(token)
        return tokens

    def persist_snapshot(self, kind: CatalogKind,
                         records: Sequence[Record]) -> bool:
        """Overwrite the snapshot with one ``name : id`` line per entity."""
        path = self.snapshot_path(kind)
        lines = [f"{kind.name(r)} : {kind.identifier(r)}" for r in records]
        try:
            with open(path, "w", encoding="utf-8") as f:
                f.write("\n".join(lines))
        except OSError as exc:
            logger.error("Failed to write %s: %s", path, exc)
            return False
        return True
