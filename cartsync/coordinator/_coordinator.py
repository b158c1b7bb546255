"""
Optimistic mutation coordinator — predict, call, confirm or roll back.

One asyncio.Lock per resource key enforces single-flight: at most one
PendingMutation per key, later intents queue in FIFO order or bounce
with BUSY depending on the Policy.

    coordinator = Coordinator(store, notices=toasts.append)

    result = await coordinator.mutate(
        line("k1"),
        predict=bump,
        call=lambda: transport.set_quantity("k1", 3),
        merge=fold_totals,
        failure_message="Failed to update quantity",
        policy=Policy().with_on_busy(QUEUE),
    )
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import timedelta

from cartsync._types import Error, Ok, ResourceKey, Result
from cartsync.coordinator._policy import DEFAULT, OnBusy, Policy
from cartsync.coordinator._types import (
    Confirmed,
    MutationError,
    MutationErrorKind,
    Notice,
    NoticeLevel,
    NoticeSink,
)
from cartsync.snapshot import Fold, Mutator, PendingMutation, SnapshotStore
from cartsync.transport import SessionError, TransportError, describe

logger = logging.getLogger(__name__)

SESSION_EXPIRED = "Your session has expired. Please reload the page."

type Call[T] = Callable[[], Awaitable[Result[T, TransportError]]]
type Merge[T] = Callable[[T], Fold | None]


@dataclass(frozen=True, slots=True)
class _InFlight:
    task: asyncio.Future[Result[object, TransportError]]
    pending: PendingMutation


async def _await[T](awaitable: Awaitable[T]) -> T:
    return await awaitable


class Coordinator:
    """
    Turns intents into prediction + transport call + reconciliation.

    Never raises for platform failures: every outcome is a Result.
    A SessionError degrades the coordinator; every later mutation is
    refused with DEGRADED until recover() installs a fresh nonce.
    """

    def __init__(
        self,
        store: SnapshotStore,
        *,
        notices: NoticeSink | None = None,
        on_nonce: Callable[[str], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._notices = notices
        self._on_nonce = on_nonce
        self._clock = clock
        self._locks: dict[ResourceKey, asyncio.Lock] = {}
        self._accepted_at: dict[ResourceKey, float] = {}
        self._inflight: dict[ResourceKey, _InFlight] = {}
        # ticket -> whether the cancel rollback was exact
        self._cancelled: dict[int, bool] = {}
        self._degraded: SessionError | None = None

    @property
    def store(self) -> SnapshotStore:
        return self._store

    # ───────────────────────────────────────────────────────────────────────
    # Session
    # ───────────────────────────────────────────────────────────────────────

    @property
    def is_degraded(self) -> bool:
        return self._degraded is not None

    def degrade(self, error: SessionError) -> None:
        """Refuse further mutations until recover()."""
        if self._degraded is None:
            logger.error("Session rejected (%s), refusing mutations", error.message)
            self.notify(Notice(NoticeLevel.ERROR, SESSION_EXPIRED))
        self._degraded = error

    def recover(self, nonce: str) -> None:
        """Install a fresh anti-forgery token and accept mutations again."""
        if self._on_nonce is not None:
            self._on_nonce(nonce)
        if self._degraded is not None:
            logger.info("Session recovered")
        self._degraded = None

    def notify(self, notice: Notice) -> None:
        if self._notices is None:
            return
        try:
            self._notices(notice)
        except Exception:
            logger.exception("Notice sink failed")

    # ───────────────────────────────────────────────────────────────────────
    # Busy State
    # ───────────────────────────────────────────────────────────────────────

    def is_busy(self, resource: ResourceKey) -> bool:
        lock = self._locks.get(resource)
        return (lock is not None and lock.locked()) or self._store.is_pending(resource)

    def in_cooldown(self, resource: ResourceKey, window: timedelta | None) -> bool:
        if window is None:
            return False
        accepted = self._accepted_at.get(resource)
        if accepted is None:
            return False
        return self._clock() - accepted < window.total_seconds()

    # ───────────────────────────────────────────────────────────────────────
    # Mutate
    # ───────────────────────────────────────────────────────────────────────

    async def mutate[T](
        self,
        resource: ResourceKey,
        predict: Mutator,
        call: Call[T],
        merge: Merge[T] | None = None,
        failure_message: str = "Something went wrong. Please try again.",
        policy: Policy = DEFAULT,
    ) -> Result[Confirmed[T], MutationError]:
        """
        Predict, await the platform, then confirm or roll back.

        call is invoked synchronously right after the prediction is
        published; merge turns the platform's response into a fold over
        the current snapshot (None keeps the prediction as is).
        """
        if self._degraded is not None:
            return Error(MutationError(MutationErrorKind.DEGRADED, resource, SESSION_EXPIRED))

        if self.in_cooldown(resource, policy.cooldown):
            logger.debug("Intent on %s inside cooldown", resource)
            return Error(MutationError(MutationErrorKind.COOLDOWN, resource, "Too many requests"))

        if self.is_busy(resource) and policy.on_busy is OnBusy.REJECT:
            logger.debug("Rejected intent on busy %s", resource)
            return Error(MutationError(MutationErrorKind.BUSY, resource, "Already in progress"))

        self._accepted_at[resource] = self._clock()
        lock = self._locks.setdefault(resource, asyncio.Lock())
        async with lock:
            # Queued intents re-check: the session may have died while waiting
            if self._degraded is not None:
                return Error(
                    MutationError(MutationErrorKind.DEGRADED, resource, SESSION_EXPIRED)
                )
            if self._store.is_pending(resource):
                return Error(MutationError(MutationErrorKind.BUSY, resource, "Already in progress"))
            return await self._run(resource, predict, call, merge, failure_message, policy)

    async def _run[T](
        self,
        resource: ResourceKey,
        predict: Mutator,
        call: Call[T],
        merge: Merge[T] | None,
        failure_message: str,
        policy: Policy,
    ) -> Result[Confirmed[T], MutationError]:
        store = self._store
        pending = store.apply_prediction(resource, predict)
        logger.debug("Predicted %s (ticket %d)", resource, pending.ticket)

        task = asyncio.ensure_future(_await(call()))
        self._inflight[resource] = _InFlight(task=task, pending=pending)
        try:
            result = await task
        except asyncio.CancelledError:
            if pending.ticket in self._cancelled:
                exact = self._cancelled.pop(pending.ticket)
                return Error(
                    MutationError(
                        MutationErrorKind.CANCELLED, resource, "Cancelled", stale_totals=not exact
                    )
                )
            # The caller itself was cancelled
            if store.is_pending(resource):
                store.rollback(pending)
            raise
        finally:
            self._inflight.pop(resource, None)

        match result:
            case Ok(value):
                fold = merge(value) if merge is not None else None
                store.confirm(pending, fold)
                return Ok(Confirmed(resource=resource, value=value, revision=store.revision))
            case Error(e):
                return Error(self._fail(pending, e, failure_message, policy))

    def _fail(
        self,
        pending: PendingMutation,
        error: TransportError,
        failure_message: str,
        policy: Policy,
    ) -> MutationError:
        resource = pending.resource_key
        message = describe(error, failure_message)

        stale_totals = False
        if policy.rollback_on_failure:
            stale_totals = not self._store.rollback(pending)
            logger.warning("Rolled back %s: %r", resource, error)
            kind = MutationErrorKind.ROLLED_BACK
            level = NoticeLevel.ERROR
        else:
            self._store.release(pending)
            logger.warning("Could not persist %s, keeping local state: %r", resource, error)
            kind = MutationErrorKind.FAILED
            level = NoticeLevel.WARNING

        if isinstance(error, SessionError):
            self.degrade(error)
        else:
            self.notify(Notice(level, message, resource))
        return MutationError(kind, resource, message, cause=error, stale_totals=stale_totals)

    # ───────────────────────────────────────────────────────────────────────
    # Cancellation
    # ───────────────────────────────────────────────────────────────────────

    def cancel(self, resource: ResourceKey) -> bool:
        """
        Cancel the in-flight call for a resource and roll back now.

        The waiting mutate() returns CANCELLED. Returns False when
        nothing was in flight.
        """
        inflight = self._inflight.get(resource)
        if inflight is None or inflight.task.done():
            return False

        self._cancelled[inflight.pending.ticket] = self._store.rollback(inflight.pending)
        inflight.task.cancel()
        logger.info("Cancelled %s", resource)
        return True


__all__ = ("Coordinator", "SESSION_EXPIRED")
