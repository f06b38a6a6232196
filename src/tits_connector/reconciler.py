"""Diff fresh catalog snapshots against what the Control Host already shows."""

from __future__ import annotations

import logging
from typing import Any, Callable

from tits_connector import protocol
from tits_connector.catalog import CatalogKind, CatalogStore, ITEMS, TRIGGERS

logger = logging.getLogger(__name__)


class Reconciler:
    """Publishes a collection to the Control Host, retracting stale states.

    Per pass: retract tokens that disappeared, push the full choice list,
    persist the new snapshot, then create/update one state per entity.
    """

    def __init__(self, store: CatalogStore, publish: Callable[[dict], Any]):
        self.store = store
        self.publish = publish

    def reconcile(self, kind: CatalogKind, records: Any) -> list[dict]:
        current = sorted(self.store.replace(kind, records),
                         key=lambda r: kind.label(r).lower())
        # Alias lookups take the first match, so the store holds sorted order.
        self.store.replace(kind, current)
        sent: list[dict] = []

        def emit(msg: dict) -> None:
            sent.append(msg)
            self.publish(msg)

        current_tokens = {t for t in (kind.state_id(r) for r in current) if t}
        previous = self.store.lookup_snapshot_tokens(kind)
        retracted: set[str] = set()
        for token in previous:
            if token in current_tokens or token in retracted:
                continue
            retracted.add(token)
            emit(protocol.remove_state(token))

        emit(protocol.choice_update(kind.choice_id,
                                    [kind.label(r) for r in current]))

        self.store.persist_snapshot(kind, current)

        for record in current:
            state_id = kind.state_id(record)
            identifier = kind.identifier(record)
            if not state_id or not identifier:
                continue
            emit(protocol.create_state(state_id, kind.name(record),
                                       identifier, kind.group))

        logger.debug("%s updated: %d entries, %d retracted",
                     kind.key.capitalize(), len(current), len(retracted))
        return sent

    def reconcile_items(self, records: Any) -> list[dict]:
        return self.reconcile(ITEMS, records)

    def reconcile_triggers(self, records: Any) -> list[dict]:
        return self.reconcile(TRIGGERS, records)
