"""
Surfaces — view models rendered on change.

    from cartsync import surfaces as V

    panel = V.CartPanel(store, actions, renderer=draw_panel)
    badge = V.ToggleBadge(store, actions, panel, renderer=draw_badge)

    badge.click()                 # opens the panel
    await panel.increment("k1")   # predicted row renders before the response
"""

from __future__ import annotations

from cartsync.surfaces._base import Renderer, Surface
from cartsync.surfaces._panel import (
    RowView,
    CouponInput,
    PanelView,
    CartPanel,
)
from cartsync.surfaces._popup import (
    SELECT_OPTIONS,
    POPUP_DISABLED,
    LOAD_FAILED,
    attribute_field,
    match_variation,
    PopupView,
    VariationPopup,
)
from cartsync.surfaces._badge import (
    BADGE_LIMIT,
    badge_label,
    BadgeView,
    ToggleBadge,
)
from cartsync.surfaces._checkout import (
    BILLING,
    REVIEW,
    PAYMENT,
    StepView,
    CheckoutView,
    progress_percent,
    MultiStepCheckout,
)

__all__ = (
    # Base
    "Renderer",
    "Surface",
    # Panel
    "RowView",
    "CouponInput",
    "PanelView",
    "CartPanel",
    # Variation popup
    "SELECT_OPTIONS",
    "POPUP_DISABLED",
    "LOAD_FAILED",
    "attribute_field",
    "match_variation",
    "PopupView",
    "VariationPopup",
    # Badge
    "BADGE_LIMIT",
    "badge_label",
    "BadgeView",
    "ToggleBadge",
    # Checkout
    "BILLING",
    "REVIEW",
    "PAYMENT",
    "StepView",
    "CheckoutView",
    "progress_percent",
    "MultiStepCheckout",
)
