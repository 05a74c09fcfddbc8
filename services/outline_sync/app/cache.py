"""Versioned optimistic cache for one book session."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID, uuid4

from coauthor_schemas.enums import MutationStatus
from coauthor_schemas.models.book import BookDetail, Outline

from .models import BookSnapshot, MutationResult

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _MutationRecord:
    mutation_id: UUID
    label: str
    version: int
    snapshot: BookSnapshot
    status: MutationStatus = MutationStatus.PENDING


def _normalise(detail: BookDetail) -> BookDetail:
    if detail.outline is None:
        return detail.model_copy(update={"outline": Outline(book_id=detail.book.id)})
    return detail


class OptimisticCache:
    """Holds the view the UI renders plus the last server-acknowledged view.

    ``apply`` is the only way local state changes. Each applied mutation is
    tracked as ``pending`` until it is confirmed (the server acknowledged it) or
    rejected (the view falls back to the last confirmed snapshot). Snapshots are
    immutable, so readers never observe a half-applied mutation.
    """

    def __init__(self, detail: BookDetail) -> None:
        snapshot = BookSnapshot(version=0, detail=_normalise(detail))
        self._current = snapshot
        self._confirmed = snapshot
        self._mutations: dict[UUID, _MutationRecord] = {}
        self._order: list[UUID] = []

    @property
    def snapshot(self) -> BookSnapshot:
        return self._current

    @property
    def confirmed(self) -> BookSnapshot:
        return self._confirmed

    @property
    def version(self) -> int:
        return self._current.version

    def status_of(self, mutation_id: UUID) -> Optional[MutationStatus]:
        record = self._mutations.get(mutation_id)
        return record.status if record else None

    def pending_ids(self) -> list[UUID]:
        return [
            mutation_id
            for mutation_id in self._order
            if self._mutations[mutation_id].status == MutationStatus.PENDING
        ]

    def apply(self, result: MutationResult, *, label: str = "mutation") -> UUID:
        """Install ``result.detail`` as the current view and start tracking it."""

        mutation_id = uuid4()
        snapshot = BookSnapshot(version=self._current.version + 1, detail=_normalise(result.detail))
        self._current = snapshot
        self._mutations[mutation_id] = _MutationRecord(
            mutation_id=mutation_id, label=label, version=snapshot.version, snapshot=snapshot
        )
        self._order.append(mutation_id)
        logger.debug(
            "Applied optimistic mutation",
            extra={"operation": label, "mutation_id": str(mutation_id), "version": snapshot.version},
        )
        return mutation_id

    def confirm(self, mutation_id: UUID) -> None:
        """Mark ``mutation_id`` and every earlier pending mutation as acknowledged.

        Earlier mutations are covered because every persisted payload carries the
        cumulative state up to the confirmed one.
        """

        record = self._mutations.get(mutation_id)
        if record is None or record.status != MutationStatus.PENDING:
            return
        for earlier_id in self._order:
            earlier = self._mutations[earlier_id]
            if earlier.version > record.version:
                break
            if earlier.status == MutationStatus.PENDING:
                earlier.status = MutationStatus.CONFIRMED
        if record.version > self._confirmed.version:
            self._confirmed = record.snapshot
        self._prune()

    def reject(self, mutation_id: UUID) -> BookSnapshot:
        """Discard ``mutation_id`` and everything applied after it.

        The view reverts to the last confirmed snapshot under a new version so
        readers can tell the revert apart from the original state.
        """

        record = self._mutations.get(mutation_id)
        if record is None or record.status != MutationStatus.PENDING:
            return self._current
        for later_id in self._order:
            later = self._mutations[later_id]
            if later.version >= record.version and later.status == MutationStatus.PENDING:
                later.status = MutationStatus.REJECTED
        self._current = BookSnapshot(
            version=self._current.version + 1, detail=self._confirmed.detail
        )
        logger.info(
            "Reverted optimistic mutation",
            extra={"operation": record.label, "mutation_id": str(mutation_id), "version": self.version},
        )
        self._prune()
        return self._current

    def revalidate(self, detail: BookDetail) -> BookSnapshot:
        """Adopt server truth as both the current and the confirmed view."""

        snapshot = BookSnapshot(version=self._current.version + 1, detail=_normalise(detail))
        self._current = snapshot
        self._confirmed = snapshot
        return snapshot

    def _prune(self) -> None:
        # Keep settled records for status lookups but drop them from the ordering list.
        self._order = [
            mutation_id
            for mutation_id in self._order
            if self._mutations[mutation_id].status == MutationStatus.PENDING
        ]
