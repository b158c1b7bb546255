"""
Variation popup — choose options of a variable product and add it.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field

from cartsync._types import Error, Ok, Result, add_product
from cartsync.catalog import Catalog
from cartsync.coordinator import CartActions, Confirmed, MutationError, MutationErrorKind
from cartsync.snapshot import SnapshotStore
from cartsync.surfaces._base import Renderer, Surface
from cartsync.transport import (
    AddedToCart,
    ProductVariation,
    TransportError,
    ValidationError,
    VariableProduct,
    describe,
)

logger = logging.getLogger(__name__)

SELECT_OPTIONS = "Please select product options"
POPUP_DISABLED = "Variation popup is disabled"
LOAD_FAILED = "Failed to load product options"


def attribute_field(name: str) -> str:
    """Form field of an attribute: "pa_color" -> "attribute_pa_color"."""
    return "attribute_" + name.strip().lower().replace(" ", "-")


def match_variation(
    product: VariableProduct,
    choices: Mapping[str, str],
) -> ProductVariation | None:
    """
    The in-stock variation matching every chosen attribute.

    None until every attribute has a choice. A variation attribute with
    an empty value accepts any choice.
    """
    if any(not choices.get(name) for name in product.attributes):
        return None
    for variation in product.variations:
        if not variation.in_stock:
            continue
        if all(
            variation.attributes.get(attribute_field(name), "") in ("", choices[name])
            for name in product.attributes
        ):
            return variation
    return None


@dataclass(frozen=True, slots=True)
class PopupView:
    open: bool = False
    loading: bool = False
    product: VariableProduct | None = None
    choices: Mapping[str, str] = field(default_factory=dict)
    variation: ProductVariation | None = None
    price_display: str = ""
    adding: bool = False
    error: str | None = None


class VariationPopup(Surface[PopupView]):
    """
    Modal for variable products.

    Example:
        popup = VariationPopup(store, actions, catalog, enabled=True)
        await popup.open(42)
        popup.choose("pa_color", "blue")
        popup.choose("pa_size", "m")
        await popup.add_to_cart()
    """

    def __init__(
        self,
        store: SnapshotStore,
        actions: CartActions,
        catalog: Catalog,
        *,
        enabled: bool = True,
        renderer: Renderer[PopupView] | None = None,
    ) -> None:
        self._actions = actions
        self._catalog = catalog
        self._enabled = enabled
        self._open = False
        self._loading = False
        self._product: VariableProduct | None = None
        self._choices: dict[str, str] = {}
        self._error: str | None = None
        super().__init__(store, renderer)

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def variation(self) -> ProductVariation | None:
        if self._product is None:
            return None
        return match_variation(self._product, self._choices)

    def view(self) -> PopupView:
        product = self._product
        variation = self.variation
        if variation is not None:
            price = variation.price_display
        else:
            price = product.price_display if product is not None else ""
        adding = product is not None and self._store.is_pending(add_product(product.id))
        return PopupView(
            open=self._open,
            loading=self._loading,
            product=product,
            choices=dict(self._choices),
            variation=variation,
            price_display=price,
            adding=adding,
            error=self._error,
        )

    async def open(self, product_id: int) -> Result[VariableProduct, TransportError | ValidationError]:
        if not self._enabled:
            return Error(ValidationError(POPUP_DISABLED))

        self._open = True
        self._loading = True
        self._product = None
        self._choices = {}
        self._error = None
        self.rerender()

        result = await self._catalog.variable_product(product_id)
        self._loading = False
        match result:
            case Ok(product):
                self._product = product
            case Error(e):
                logger.warning("Could not load variable product %d: %r", product_id, e)
                self._error = describe(e, LOAD_FAILED)
        self.rerender()
        return result

    def close(self) -> None:
        self._open = False
        self._product = None
        self._choices = {}
        self._error = None
        self.rerender()

    def choose(self, attribute: str, value: str) -> None:
        """Pick (or with an empty value, clear) one attribute."""
        if self._product is None or attribute not in self._product.attributes:
            raise KeyError(attribute)
        if value:
            self._choices[attribute] = value
        else:
            self._choices.pop(attribute, None)
        self._error = None
        self.rerender()

    async def add_to_cart(self, quantity: int = 1) -> Result[Confirmed[AddedToCart], MutationError]:
        product = self._product
        variation = self.variation
        if product is None or variation is None:
            self._error = SELECT_OPTIONS
            self.rerender()
            resource = add_product(product.id) if product is not None else add_product(0)
            return Error(
                MutationError(
                    MutationErrorKind.VALIDATION,
                    resource,
                    SELECT_OPTIONS,
                    cause=ValidationError(SELECT_OPTIONS, field="variation_id"),
                )
            )

        attributes = {attribute_field(name): value for name, value in self._choices.items()}
        result = await self._actions.request_add_to_cart(
            product.id,
            quantity=quantity,
            variation_id=variation.variation_id,
            attributes=attributes,
        )
        match result:
            case Ok(_):
                self.close()
            case Error(e):
                self._error = e.message
                self.rerender()
        return result


__all__ = (
    "SELECT_OPTIONS",
    "POPUP_DISABLED",
    "LOAD_FAILED",
    "attribute_field",
    "match_variation",
    "PopupView",
    "VariationPopup",
)
