"""
Snapshot store — the one current cart + keyed pending registry.

Every public mutating call publishes exactly one notification, in call
order, before it returns. Listeners therefore never see a half-applied
mutation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace

from cartsync._types import ResourceKey
from cartsync.snapshot._slice import extract, restore, sort_by_keys
from cartsync.snapshot._types import (
    Arrange,
    CartSnapshot,
    Change,
    ChangeKind,
    Listener,
    Mutator,
    PendingMutation,
    Slice,
    Unsubscribe,
)

logger = logging.getLogger(__name__)

type Fold = Callable[[CartSnapshot], CartSnapshot]


class SnapshotStore:
    """
    Holds exactly one CartSnapshot and broadcasts changes.

    Example:
        store = SnapshotStore()
        unsubscribe = store.on_change(lambda snap, change: render(snap))

        pending = store.apply_prediction(line("k1"), bump_quantity)
        ...
        store.confirm(pending, fold_server_numbers)   # or store.rollback(pending)
    """

    def __init__(self, initial: CartSnapshot | None = None) -> None:
        self._snapshot = initial if initial is not None else CartSnapshot()
        self._listeners: list[Listener] = []
        self._pending: dict[ResourceKey, PendingMutation] = {}
        self._latest: dict[ResourceKey, int] = {}
        self._ticket = 0
        self._arrange: Arrange | None = None

    # ───────────────────────────────────────────────────────────────────────
    # Reading
    # ───────────────────────────────────────────────────────────────────────

    @property
    def current(self) -> CartSnapshot:
        return self._snapshot

    @property
    def revision(self) -> int:
        return self._snapshot.revision

    @property
    def watermark(self) -> int:
        """Last ticket issued. Pass as `as_of` when absorbing a fetch."""
        return self._ticket

    def slice(self, resource: ResourceKey) -> Slice:
        return extract(self._snapshot, resource)

    def is_pending(self, resource: ResourceKey) -> bool:
        return resource in self._pending

    def pending(self, resource: ResourceKey) -> PendingMutation | None:
        return self._pending.get(resource)

    @property
    def pending_resources(self) -> frozenset[ResourceKey]:
        return frozenset(self._pending)

    def is_latest(self, pending: PendingMutation) -> bool:
        """False once a newer mutation was issued for the same resource."""
        return self._latest.get(pending.resource_key) == pending.ticket

    # ───────────────────────────────────────────────────────────────────────
    # Subscription
    # ───────────────────────────────────────────────────────────────────────

    def on_change(self, listener: Listener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set_arrangement(self, arrange: Arrange | None) -> None:
        """Install the visual ordering applied to absorbed snapshots."""
        self._arrange = arrange

    # ───────────────────────────────────────────────────────────────────────
    # Mutations
    # ───────────────────────────────────────────────────────────────────────

    def apply_prediction(self, resource: ResourceKey, mutator: Mutator) -> PendingMutation:
        """
        Predict a resource's next state and publish it immediately.

        Raises RuntimeError if the resource already has a pending mutation:
        callers serialize per resource before predicting.
        """
        if resource in self._pending:
            raise RuntimeError(f"Resource already pending: {resource}")

        previous = extract(self._snapshot, resource)
        predicted = mutator(previous)

        self._ticket += 1
        pending = PendingMutation(
            resource_key=resource,
            previous_state=previous,
            predicted_state=predicted,
            started_revision=self._snapshot.revision,
            ticket=self._ticket,
        )
        self._pending[resource] = pending
        self._latest[resource] = pending.ticket

        self._snapshot = restore(self._snapshot, predicted)
        self._publish(ChangeKind.PREDICTION, resource)
        return pending

    def begin(self, resource: ResourceKey) -> PendingMutation:
        """Open a pending mutation that predicts nothing (loading flag only)."""
        return self.apply_prediction(resource, lambda piece: piece)

    def confirm(
        self,
        pending: PendingMutation,
        fold: Fold | None = None,
    ) -> None:
        """
        Resolve a mutation successfully, folding authoritative numbers in.

        The prediction stays; fold replaces whatever the server reported.
        """
        self._drop(pending)
        if fold is not None:
            self._fold(fold)
        self._publish(ChangeKind.CONFIRMED, pending.resource_key)

    def merge(self, resource: ResourceKey | None, fold: Fold) -> None:
        """Fold authoritative numbers into current state outside any mutation."""
        self._fold(fold)
        self._publish(ChangeKind.CONFIRMED, resource)

    def rollback(self, pending: PendingMutation) -> bool:
        """
        Restore the pre-prediction slice and publish.

        Returns True when the snapshot is back exactly where it was. When
        anything else was predicted or absorbed in the meantime, the
        recorded totals are out of date: only the resource's own state is
        restored, its count delta is undone if no server numbers arrived,
        and False tells the caller totals need a refresh.
        """
        self._drop(pending)
        previous = pending.previous_state
        untouched = self._snapshot.revision == pending.started_revision
        exact = untouched and self._ticket == pending.ticket

        if exact:
            self._snapshot = restore(self._snapshot, previous)
        else:
            restored = restore(self._snapshot, previous, include_totals=False)
            if untouched:
                # Server counts never include this prediction
                delta = pending.predicted_state.count - previous.count
                restored = replace(restored, count=max(0, restored.count - delta))
            self._snapshot = restored
            logger.info("Partial rollback of %s, totals left to refresh", pending.resource_key)

        self._publish(ChangeKind.ROLLBACK, pending.resource_key)
        return exact

    def release(self, pending: PendingMutation) -> None:
        """Resolve without touching state (stale or fire-and-forget)."""
        self._drop(pending)
        self._publish(ChangeKind.RELEASED, pending.resource_key)

    resolve = release

    def absorb_authoritative(
        self,
        snapshot: CartSnapshot,
        as_of: int | None = None,
    ) -> CartSnapshot:
        """
        Replace state with server data and bump the revision.

        Resources with an open pending mutation keep their local value.
        With `as_of` (the watermark when the request was sent), resources
        mutated after the request keep their local value as well: the
        response is older than what the shopper already sees.
        Totals, count and every other resource come from the server.
        """
        protected = set(self._pending)
        if as_of is not None:
            protected |= {r for r, t in self._latest.items() if t > as_of}

        merged = snapshot
        for resource in sorted(protected):
            merged = restore(
                merged, extract(self._snapshot, resource), include_totals=False
            )
            logger.info("Kept local state of %s over server snapshot", resource)

        if self._arrange is not None:
            merged = replace(merged, items=self._arrange(merged.items))

        self._snapshot = replace(merged, revision=self._snapshot.revision + 1)
        self._publish(ChangeKind.AUTHORITATIVE, None)
        return self._snapshot

    def reorder(self, keys: tuple[str, ...]) -> None:
        """Apply a client-only item order."""
        self._snapshot = replace(
            self._snapshot, items=sort_by_keys(self._snapshot.items, keys)
        )
        self._publish(ChangeKind.REORDER, None)

    # ───────────────────────────────────────────────────────────────────────
    # Internals
    # ───────────────────────────────────────────────────────────────────────

    def _fold(self, fold: Fold) -> None:
        self._snapshot = replace(
            fold(self._snapshot), revision=self._snapshot.revision + 1
        )

    def _drop(self, pending: PendingMutation) -> None:
        current = self._pending.get(pending.resource_key)
        if current is not None and current.ticket == pending.ticket:
            del self._pending[pending.resource_key]

    def _publish(self, kind: ChangeKind, resource: ResourceKey | None) -> None:
        change = Change(kind=kind, resource=resource, revision=self._snapshot.revision)
        snapshot = self._snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot, change)
            except Exception:
                logger.exception("Listener failed on %s", change.kind.name)


__all__ = ("Fold", "SnapshotStore")
