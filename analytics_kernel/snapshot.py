"""
Module: analytics_kernel.snapshot
Responsibility: The immutable bundle of input records a single report is
    computed from, and the RecordStore protocol that supplies it.
Architecture position: Kernel.  Imports only from analytics_kernel.domain.
    Concrete SQL-backed stores live in analytics_kernel.selectors.

Invariants enforced:
    - A RecordSnapshot is frozen; every collection is a tuple.
    - A report reads from exactly one snapshot (the service calls
      ``RecordStore.snapshot()`` once per request), so no report can observe
      a half-applied upstream write.

Failure modes:
    - None at this layer; stores may raise their own I/O errors.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, runtime_checkable

from analytics_kernel.domain.clock import Clock, SystemClock
from analytics_kernel.domain.records import (
    AssetRecord,
    DocumentKind,
    EntityRecord,
    EntityRole,
    InventoryItemRecord,
    JournalLineRecord,
    LedgerDocument,
)


@dataclass(frozen=True, slots=True)
class RecordSnapshot:
    """
    Point-in-time view of every record the engines may read.

    Contract:
        Built once per report request; engines treat it as read-only.
    """

    taken_at: datetime
    entities: tuple[EntityRecord, ...] = field(default_factory=tuple)
    documents: tuple[LedgerDocument, ...] = field(default_factory=tuple)
    journal_lines: tuple[JournalLineRecord, ...] = field(default_factory=tuple)
    assets: tuple[AssetRecord, ...] = field(default_factory=tuple)
    items: tuple[InventoryItemRecord, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        for name in ("entities", "documents", "journal_lines", "assets", "items"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    def entities_for(self, role: EntityRole) -> tuple[EntityRecord, ...]:
        return tuple(e for e in self.entities if e.role == role)

    def entity(self, entity_id: str) -> EntityRecord | None:
        for entity in self.entities:
            if entity.entity_id == entity_id:
                return entity
        return None

    def documents_of(self, *kinds: DocumentKind) -> tuple[LedgerDocument, ...]:
        return tuple(d for d in self.documents if d.kind in kinds)

    def documents_for_entity(self, entity_id: str) -> tuple[LedgerDocument, ...]:
        return tuple(d for d in self.documents if d.entity_id == entity_id)


@runtime_checkable
class RecordStore(Protocol):
    """Source of record snapshots."""

    def snapshot(self) -> RecordSnapshot:
        ...


class InMemoryRecordStore:
    """
    RecordStore backed by Python collections.

    ``snapshot()`` copies the current collections into tuples, so later
    ``add_*`` calls never leak into a snapshot already handed out.
    """

    def __init__(
        self,
        entities: Iterable[EntityRecord] = (),
        documents: Iterable[LedgerDocument] = (),
        journal_lines: Iterable[JournalLineRecord] = (),
        assets: Iterable[AssetRecord] = (),
        items: Iterable[InventoryItemRecord] = (),
        clock: Clock | None = None,
    ):
        self._entities = list(entities)
        self._documents = list(documents)
        self._journal_lines = list(journal_lines)
        self._assets = list(assets)
        self._items = list(items)
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self.snapshot_count = 0

    def add_entities(self, *records: EntityRecord) -> None:
        with self._lock:
            self._entities.extend(records)

    def add_documents(self, *records: LedgerDocument) -> None:
        with self._lock:
            self._documents.extend(records)

    def add_journal_lines(self, *records: JournalLineRecord) -> None:
        with self._lock:
            self._journal_lines.extend(records)

    def add_assets(self, *records: AssetRecord) -> None:
        with self._lock:
            self._assets.extend(records)

    def add_items(self, *records: InventoryItemRecord) -> None:
        with self._lock:
            self._items.extend(records)

    def snapshot(self) -> RecordSnapshot:
        with self._lock:
            self.snapshot_count += 1
            return RecordSnapshot(
                taken_at=self._clock.now(),
                entities=tuple(self._entities),
                documents=tuple(self._documents),
                journal_lines=tuple(self._journal_lines),
                assets=tuple(self._assets),
                items=tuple(self._items),
            )
