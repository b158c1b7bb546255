"""
Settings — environment-driven configuration.

    from cartsync.config import Settings

    settings = Settings.from_env()          # reads .env + CARTSYNC_* vars
    settings = Settings(ajax_url="...", nonce="...")  # explicit, for tests
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from cartsync._money import CurrencyPosition, PriceFormat

PREFIX = "CARTSYNC_"


def _get_env(*keys: str, default: str | None = None) -> str | None:
    for k in keys:
        v = os.getenv(PREFIX + k)
        if v is not None and str(v).strip() != "":
            return v.strip()
    return default


def _get_int(*keys: str, default: int) -> int:
    v = _get_env(*keys)
    if v is None:
        return default
    return int(v)


def _get_float(*keys: str, default: float) -> float:
    v = _get_env(*keys)
    if v is None:
        return default
    return float(v)


def _get_bool(*keys: str, default: bool) -> bool:
    v = _get_env(*keys)
    if v is None:
        return default
    return v.lower() in ("1", "true", "yes", "on")


# ═══════════════════════════════════════════════════════════════════════════════
# Checkout Steps
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class CheckoutStepSettings:
    """One checkout step toggle + label."""

    kind: str
    label: str
    enabled: bool = True


def _default_steps() -> tuple[CheckoutStepSettings, ...]:
    return (
        CheckoutStepSettings("billing", "Billing & Shipping"),
        CheckoutStepSettings("review", "Order Review"),
        CheckoutStepSettings("payment", "Payment"),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Storefront settings.

    Note: nonce is the anti-forgery token every mutating call carries.
    It is replaced (not mutated) on session recovery.
    """

    ajax_url: str = "/wp-admin/admin-ajax.php"
    rest_url: str = "/wp-json/quick-cart-shopping/v2"
    nonce: str = ""
    request_timeout: float = 10.0
    quantity_cooldown: float = 0.3
    price_format: PriceFormat = field(default_factory=PriceFormat)
    checkout_steps: tuple[CheckoutStepSettings, ...] = field(
        default_factory=_default_steps
    )
    required_checkout_fields: tuple[str, ...] = (
        "billing_first_name",
        "billing_last_name",
        "billing_email",
    )
    show_badge: bool = True
    enable_variation_popup: bool = True
    log_level: str = "INFO"
    log_format: str = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

    @classmethod
    def from_env(cls, dotenv_path: str | Path | None = None) -> Settings:
        """
        Load settings from the environment (and a .env file if present).

        Raises ValueError on malformed numeric values.
        """
        load_dotenv(dotenv_path=dotenv_path)

        defaults = cls()
        position = _get_env("CURRENCY_POSITION", default="left") or "left"
        price_format = PriceFormat(
            symbol=_get_env("CURRENCY_SYMBOL", default="$") or "$",
            position=CurrencyPosition(position),
            decimals=_get_int("DECIMALS", default=2),
            thousand_separator=_get_env("THOUSAND_SEPARATOR", default=",") or "",
            decimal_separator=_get_env("DECIMAL_SEPARATOR", default=".") or ".",
        )

        steps = tuple(
            CheckoutStepSettings(
                kind=step.kind,
                label=_get_env(f"CHECKOUT_STEP{i}_LABEL", default=step.label)
                or step.label,
                enabled=_get_bool(f"CHECKOUT_STEP{i}_ENABLED", default=True),
            )
            for i, step in enumerate(_default_steps(), start=1)
        )

        timeout = _get_float("REQUEST_TIMEOUT", default=defaults.request_timeout)
        cooldown = _get_float("QUANTITY_COOLDOWN", default=defaults.quantity_cooldown)
        if timeout <= 0:
            raise ValueError("CARTSYNC_REQUEST_TIMEOUT must be positive")
        if cooldown < 0:
            raise ValueError("CARTSYNC_QUANTITY_COOLDOWN must not be negative")

        return cls(
            ajax_url=_get_env("AJAX_URL", default=defaults.ajax_url) or defaults.ajax_url,
            rest_url=_get_env("REST_URL", default=defaults.rest_url) or defaults.rest_url,
            nonce=_get_env("NONCE", default="") or "",
            request_timeout=timeout,
            quantity_cooldown=cooldown,
            price_format=price_format,
            checkout_steps=steps,
            show_badge=_get_bool("SHOW_BADGE", default=True),
            enable_variation_popup=_get_bool("ENABLE_VARIATION_POPUP", default=True),
            log_level=_get_env("LOG_LEVEL", default=defaults.log_level) or "INFO",
            log_format=_get_env("LOG_FORMAT", default=defaults.log_format)
            or defaults.log_format,
        )

    def with_nonce(self, nonce: str) -> Settings:
        """Copy with a refreshed anti-forgery token."""
        return Settings(
            ajax_url=self.ajax_url,
            rest_url=self.rest_url,
            nonce=nonce,
            request_timeout=self.request_timeout,
            quantity_cooldown=self.quantity_cooldown,
            price_format=self.price_format,
            checkout_steps=self.checkout_steps,
            required_checkout_fields=self.required_checkout_fields,
            show_badge=self.show_badge,
            enable_variation_popup=self.enable_variation_popup,
            log_level=self.log_level,
            log_format=self.log_format,
        )


__all__ = ("CheckoutStepSettings", "Settings", "PREFIX")
