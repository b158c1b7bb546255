"""
Multi-step checkout — billing, review and payment inside the drawer.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from cartsync._types import CHECKOUT, Error, Ok, Result
from cartsync.config import CheckoutStepSettings
from cartsync.coordinator import CartActions, Confirmed, MutationError
from cartsync.snapshot import SnapshotStore
from cartsync.surfaces._base import Renderer, Surface
from cartsync.transport import CheckoutResult

logger = logging.getLogger(__name__)

BILLING = "billing"
REVIEW = "review"
PAYMENT = "payment"


@dataclass(frozen=True, slots=True)
class StepView:
    number: int
    kind: str
    label: str
    active: bool
    completed: bool


@dataclass(frozen=True, slots=True)
class CheckoutView:
    active: bool
    steps: tuple[StepView, ...]
    current: int
    progress: int
    fields: Mapping[str, str] = field(default_factory=dict)
    error: str | None = None
    error_field: str | None = None
    submitting: bool = False
    redirect: str | None = None

    @property
    def can_go_back(self) -> bool:
        return self.current > 0

    @property
    def is_last(self) -> bool:
        return self.current == len(self.steps) - 1


def progress_percent(current: int, total: int) -> int:
    """Width of the progress bar fill."""
    if total <= 1:
        return 100
    return round(current / (total - 1) * 100)


class MultiStepCheckout(Surface[CheckoutView]):
    """
    Step navigation over the enabled checkout steps.

    Leaving the billing step validates required fields locally, saves the
    address into the platform session and reloads the cart (rates depend
    on the destination). Submitting places the order once: a second
    submit while the first is in flight is rejected.

    Example:
        checkout = MultiStepCheckout(store, actions, settings.checkout_steps)
        checkout.show()
        checkout.set_fields(billing_first_name="Ada", ...)
        await checkout.next()
        ...
        match await checkout.submit():
            case Ok(confirmed):
                redirect_to(confirmed.value.redirect)
    """

    def __init__(
        self,
        store: SnapshotStore,
        actions: CartActions,
        steps: tuple[CheckoutStepSettings, ...],
        renderer: Renderer[CheckoutView] | None = None,
    ) -> None:
        self._actions = actions
        self._steps = tuple(step for step in steps if step.enabled)
        self._active = False
        self._current = 0
        self._fields: dict[str, str] = {}
        self._error: str | None = None
        self._error_field: str | None = None
        self._redirect: str | None = None
        super().__init__(store, renderer)

    @property
    def steps(self) -> tuple[CheckoutStepSettings, ...]:
        return self._steps

    @property
    def current_step(self) -> CheckoutStepSettings | None:
        if not self._steps:
            return None
        return self._steps[self._current]

    def view(self) -> CheckoutView:
        return CheckoutView(
            active=self._active,
            steps=tuple(
                StepView(
                    number=i + 1,
                    kind=step.kind,
                    label=step.label,
                    active=i == self._current,
                    completed=i < self._current,
                )
                for i, step in enumerate(self._steps)
            ),
            current=self._current,
            progress=progress_percent(self._current, len(self._steps)),
            fields=dict(self._fields),
            error=self._error,
            error_field=self._error_field,
            submitting=self._store.is_pending(CHECKOUT),
            redirect=self._redirect,
        )

    # ───────────────────────────────────────────────────────────────────────
    # Visibility
    # ───────────────────────────────────────────────────────────────────────

    def show(self) -> bool:
        """Enter checkout. False when every step is disabled."""
        if self._active or not self._steps:
            return False
        self._active = True
        self.rerender()
        return True

    def hide(self) -> None:
        """Back to the cart; entered fields and position are kept."""
        self._active = False
        self.rerender()

    # ───────────────────────────────────────────────────────────────────────
    # Fields
    # ───────────────────────────────────────────────────────────────────────

    def set_field(self, name: str, value: str) -> None:
        self._fields[name] = value
        if self._error_field == name:
            self._error = None
            self._error_field = None
        self.rerender()

    def set_fields(self, **values: str) -> None:
        for name, value in values.items():
            self._fields[name] = value
        self.rerender()

    # ───────────────────────────────────────────────────────────────────────
    # Navigation
    # ───────────────────────────────────────────────────────────────────────

    async def next(self) -> Result[int, MutationError]:
        """Advance one step; leaving billing saves the address first."""
        step = self.current_step
        if step is None or self._current >= len(self._steps) - 1:
            return Ok(self._current)

        if step.kind == BILLING:
            match await self._actions.request_save_address(self._fields):
                case Ok(_):
                    pass
                case Error(e):
                    self._error = e.message
                    self._error_field = getattr(e.cause, "field", None)
                    self.rerender()
                    return Error(e)

        self._current += 1
        self._error = None
        self._error_field = None
        self.rerender()
        return Ok(self._current)

    def previous(self) -> int:
        if self._current > 0:
            self._current -= 1
            self.rerender()
        return self._current

    async def submit(self) -> Result[Confirmed[CheckoutResult], MutationError]:
        result = await self._actions.request_checkout(self._fields)
        match result:
            case Ok(confirmed):
                self._redirect = confirmed.value.redirect
                self._error = None
                logger.info("Order placed, redirecting")
            case Error(e):
                self._error = e.message
                self._error_field = getattr(e.cause, "field", None)
        self.rerender()
        return result


__all__ = (
    "BILLING",
    "REVIEW",
    "PAYMENT",
    "StepView",
    "CheckoutView",
    "progress_percent",
    "MultiStepCheckout",
)
