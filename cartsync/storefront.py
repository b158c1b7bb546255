"""
Storefront — composition root.

Builds one store, coordinator, action set and surface tree per page and
hands each piece its collaborators explicitly.

    async with connect("https://shop.example", settings) as storefront:
        await storefront.start()
        storefront.badge.click()
        await storefront.panel.increment("k1")
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import httpx

from cartsync._types import Result
from cartsync.catalog import Catalog
from cartsync.config import Settings
from cartsync.coordinator import (
    CartActions,
    Coordinator,
    MutationError,
    Notice,
    NoticeSink,
)
from cartsync.reorder import ReorderController
from cartsync.snapshot import CartSnapshot, SnapshotStore
from cartsync.surfaces import (
    BadgeView,
    CartPanel,
    CheckoutView,
    MultiStepCheckout,
    PanelView,
    PopupView,
    Renderer,
    ToggleBadge,
    VariationPopup,
)
from cartsync.transport import HttpTransport, Transport

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Renderers:
    """Optional render callbacks, one per surface."""

    panel: Renderer[PanelView] | None = None
    badge: Renderer[BadgeView] | None = None
    popup: Renderer[PopupView] | None = None
    checkout: Renderer[CheckoutView] | None = None


@dataclass(slots=True)
class Storefront:
    settings: Settings
    transport: Transport
    store: SnapshotStore
    coordinator: Coordinator
    actions: CartActions
    catalog: Catalog
    reorder: ReorderController
    panel: CartPanel
    popup: VariationPopup
    badge: ToggleBadge
    checkout: MultiStepCheckout
    notices: list[Notice] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        transport: Transport,
        settings: Settings | None = None,
        *,
        renderers: Renderers | None = None,
        on_notice: NoticeSink | None = None,
    ) -> Storefront:
        """
        Wire everything against one transport.

        Notices are collected on storefront.notices and forwarded to
        on_notice when given.
        """
        settings = settings if settings is not None else Settings()
        renderers = renderers if renderers is not None else Renderers()
        notices: list[Notice] = []

        def publish(notice: Notice) -> None:
            notices.append(notice)
            if on_notice is not None:
                on_notice(notice)

        store = SnapshotStore()
        coordinator = Coordinator(store, notices=publish, on_nonce=transport.set_nonce)
        actions = CartActions(store, coordinator, transport, settings)
        catalog = Catalog(transport)
        reorder = ReorderController(store)

        panel = CartPanel(store, actions, renderer=renderers.panel)
        popup = VariationPopup(
            store,
            actions,
            catalog,
            enabled=settings.enable_variation_popup,
            renderer=renderers.popup,
        )
        badge = ToggleBadge(
            store,
            actions,
            panel,
            popup=popup,
            show_badge=settings.show_badge,
            renderer=renderers.badge,
        )
        checkout = MultiStepCheckout(
            store, actions, settings.checkout_steps, renderer=renderers.checkout
        )

        return cls(
            settings=settings,
            transport=transport,
            store=store,
            coordinator=coordinator,
            actions=actions,
            catalog=catalog,
            reorder=reorder,
            panel=panel,
            popup=popup,
            badge=badge,
            checkout=checkout,
            notices=notices,
        )

    async def start(self) -> Result[CartSnapshot, MutationError]:
        """Load the cart for the first render."""
        logger.info("Loading cart")
        return await self.actions.refresh()

    def close(self) -> None:
        for surface in (self.panel, self.popup, self.badge, self.checkout):
            surface.detach()
        self.reorder.detach()


@asynccontextmanager
async def connect(
    base_url: str,
    settings: Settings | None = None,
    *,
    renderers: Renderers | None = None,
    on_notice: NoticeSink | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[Storefront]:
    """
    Storefront over a fresh httpx client bound to the shop's base URL.

    Settings default to Settings.from_env(). http_transport replaces the
    network layer (httpx.MockTransport in tests).
    """
    settings = settings if settings is not None else Settings.from_env()
    async with httpx.AsyncClient(base_url=base_url, transport=http_transport) as client:
        storefront = Storefront.build(
            HttpTransport(client, settings),
            settings,
            renderers=renderers,
            on_notice=on_notice,
        )
        try:
            yield storefront
        finally:
            storefront.close()


__all__ = ("Renderers", "Storefront", "connect")
