"""
Quantity state machine — per-line progress of a +/- click.

    IDLE → PREDICTING → AWAITING_SERVER → CONFIRMED   → IDLE
                                        → ROLLED_BACK → IDLE
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from enum import Enum, auto

logger = logging.getLogger(__name__)


class QuantityState(Enum):
    IDLE = auto()
    PREDICTING = auto()
    AWAITING_SERVER = auto()
    CONFIRMED = auto()
    ROLLED_BACK = auto()


_ALLOWED: dict[QuantityState, frozenset[QuantityState]] = {
    QuantityState.IDLE: frozenset({QuantityState.PREDICTING}),
    QuantityState.PREDICTING: frozenset({QuantityState.AWAITING_SERVER}),
    QuantityState.AWAITING_SERVER: frozenset(
        {QuantityState.CONFIRMED, QuantityState.ROLLED_BACK}
    ),
    QuantityState.CONFIRMED: frozenset({QuantityState.IDLE}),
    QuantityState.ROLLED_BACK: frozenset({QuantityState.IDLE}),
}


@dataclass(frozen=True, slots=True)
class Transition:
    key: str
    source: QuantityState
    target: QuantityState
    quantity: int


class QuantityTracker:
    """
    Records where each line's quantity change is.

    Illegal transitions raise RuntimeError: they mean the caller
    skipped a step, which is a bug, not a platform failure.
    Only the last history_limit transitions are kept.
    """

    def __init__(self, history_limit: int = 200) -> None:
        if history_limit < 1:
            raise ValueError("history_limit must be >= 1")
        self._states: dict[str, QuantityState] = {}
        self._history: deque[Transition] = deque(maxlen=history_limit)

    def state(self, key: str) -> QuantityState:
        return self._states.get(key, QuantityState.IDLE)

    def history(self, key: str | None = None) -> tuple[Transition, ...]:
        if key is None:
            return tuple(self._history)
        return tuple(t for t in self._history if t.key == key)

    def advance(self, key: str, target: QuantityState, quantity: int) -> None:
        source = self.state(key)
        if target not in _ALLOWED[source]:
            raise RuntimeError(f"Line {key}: {source.name} -> {target.name} not allowed")

        self._history.append(Transition(key, source, target, quantity))
        if target is QuantityState.IDLE:
            self._states.pop(key, None)
        else:
            self._states[key] = target
        logger.debug("Line %s: %s -> %s (qty %d)", key, source.name, target.name, quantity)

    def settle(self, key: str, confirmed: bool, quantity: int) -> None:
        """AWAITING_SERVER → CONFIRMED/ROLLED_BACK → IDLE."""
        outcome = QuantityState.CONFIRMED if confirmed else QuantityState.ROLLED_BACK
        self.advance(key, outcome, quantity)
        self.advance(key, QuantityState.IDLE, quantity)


__all__ = ("QuantityState", "Transition", "QuantityTracker")
