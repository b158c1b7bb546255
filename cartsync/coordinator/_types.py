"""
Coordinator types — outcomes and notices.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum, auto

from cartsync._types import ResourceKey
from cartsync.transport import TransportError, ValidationError

# ═══════════════════════════════════════════════════════════════════════════════
# Outcomes
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Confirmed[T]:
    """A mutation the platform accepted."""

    resource: ResourceKey
    value: T
    revision: int


class MutationErrorKind(Enum):
    """
    Why a mutation did not go through.

    BUSY: resource already in flight and the policy rejects.
    COOLDOWN: repeated intent inside the debounce window.
    DEGRADED: the session was rejected earlier; recover() first.
    VALIDATION: precondition failed, nothing was predicted.
    ROLLED_BACK: the platform refused, prediction undone.
    FAILED: the platform refused, nothing to undo (or kept on purpose).
    CANCELLED: cancelled or superseded before the response arrived.
    """

    BUSY = auto()
    COOLDOWN = auto()
    DEGRADED = auto()
    VALIDATION = auto()
    ROLLED_BACK = auto()
    FAILED = auto()
    CANCELLED = auto()


@dataclass(frozen=True, slots=True)
class MutationError:
    kind: MutationErrorKind
    resource: ResourceKey
    message: str
    cause: TransportError | ValidationError | None = None
    # Rolled back over newer data: cart totals must be fetched again
    stale_totals: bool = False


# ═══════════════════════════════════════════════════════════════════════════════
# Notices
# ═══════════════════════════════════════════════════════════════════════════════


class NoticeLevel(Enum):
    INFO = auto()
    WARNING = auto()
    ERROR = auto()


@dataclass(frozen=True, slots=True)
class Notice:
    """Non-blocking message for the shopper (toast, inline banner)."""

    level: NoticeLevel
    message: str
    resource: ResourceKey | None = None


type NoticeSink = Callable[[Notice], None]


__all__ = (
    "Confirmed",
    "MutationErrorKind",
    "MutationError",
    "NoticeLevel",
    "Notice",
    "NoticeSink",
)
