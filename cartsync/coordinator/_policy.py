"""
Mutation policy — what to do when a resource is busy.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import timedelta
from enum import Enum, auto

# ═══════════════════════════════════════════════════════════════════════════════
# On Busy — Single-Flight Strategy
# ═══════════════════════════════════════════════════════════════════════════════


class OnBusy(Enum):
    """
    What to do when an intent targets a resource already in flight.

    QUEUE: wait in FIFO order, predict from the state the previous
           mutation left behind. Quantity buttons, shipping radios.

    REJECT: return BUSY immediately. Double-submit guards (coupon form,
            remove button, add to cart).
    """

    QUEUE = auto()
    REJECT = auto()


QUEUE = OnBusy.QUEUE
REJECT = OnBusy.REJECT


# ═══════════════════════════════════════════════════════════════════════════════
# Policy
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Policy:
    """
    Per-intent mutation configuration.

    Example:
        quantity = (
            Policy()
            .with_on_busy(QUEUE)
            .with_cooldown(seconds=0.3)
        )

        shipping = Policy().with_on_busy(QUEUE).without_rollback()

    Note: Immutable, each method returns a new Policy.
    """

    on_busy: OnBusy = OnBusy.REJECT
    cooldown: timedelta | None = None
    rollback_on_failure: bool = True

    def with_on_busy(self, strategy: OnBusy) -> Policy:
        return replace(self, on_busy=strategy)

    def with_cooldown(
        self,
        *,
        seconds: float | None = None,
        delta: timedelta | None = None,
    ) -> Policy:
        """
        Debounce window per resource, measured from the last accepted intent.

        Zero or None disables it.

        Example:
            .with_cooldown(seconds=0.3)
        """
        window = delta if delta is not None else timedelta(seconds=seconds or 0)
        return replace(self, cooldown=window if window > timedelta(0) else None)

    def without_rollback(self) -> Policy:
        """Keep the prediction when the platform refuses (warning notice only)."""
        return replace(self, rollback_on_failure=False)


DEFAULT = Policy()


__all__ = (
    "OnBusy",
    "QUEUE",
    "REJECT",
    "Policy",
    "DEFAULT",
)
