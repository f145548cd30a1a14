"""Typed configuration for boletera.

Reads a single ``BOLETERA`` dict from Django settings and exposes it as
composed, frozen dataclasses with sensible defaults.

Usage::

    from boletera.settings import get_config

    config = get_config()
    config.paypal.client_id
    config.altcha.hmac_key
    config.default_currency
"""

import functools
from collections.abc import Mapping
from dataclasses import dataclass, field

from django.conf import settings
from django.test.signals import setting_changed

PAYPAL_SANDBOX_URL = "https://api-m.sandbox.paypal.com"
PAYPAL_LIVE_URL = "https://api-m.paypal.com"


@dataclass(frozen=True, slots=True)
class PayPalConfig:
    """PayPal REST API configuration.

    Events may carry their own credentials; these values are the fallback.
    """

    client_id: str | None = None
    client_secret: str | None = None
    sandbox: bool = True
    merchant_email: str = ""
    brand_name: str = "Boletera"
    timeout: int = 30
    return_url: str = ""
    cancel_url: str = ""

    @property
    def base_url(self) -> str:
        """Return the API host for the configured environment."""
        return PAYPAL_SANDBOX_URL if self.sandbox else PAYPAL_LIVE_URL


@dataclass(frozen=True, slots=True)
class AltchaConfig:
    """Proof-of-work challenge configuration for the preregistration gate."""

    hmac_key: str | None = None
    max_number: int = 100_000
    expires_seconds: int = 600


@dataclass(frozen=True, slots=True)
class FeaturesConfig:
    """Feature toggles for enabling/disabling boletera modules.

    All features are enabled by default. Set to ``False`` in
    ``BOLETERA['features']`` to disable.
    """

    purchase_enabled: bool = True
    preregistration_enabled: bool = True
    support_enabled: bool = True
    scanner_enabled: bool = True


@dataclass(frozen=True, slots=True)
class BoleteraConfig:
    """Top-level boletera configuration."""

    paypal: PayPalConfig = field(default_factory=PayPalConfig)
    altcha: AltchaConfig = field(default_factory=AltchaConfig)
    features: FeaturesConfig = field(default_factory=FeaturesConfig)
    default_currency: str = "MXN"
    default_limit_per_user: int = 10
    max_courtesy_quantity: int = 10
    order_reference_prefix: str = "BOL"
    login_token_max_age: int = 300
    api_token_max_age: int = 86_400
    checkin_undo_minutes: int = 5
    orphan_recovery_days: int = 30
    orphan_list_limit: int = 100
    user_search_min_length: int = 3
    user_search_limit: int = 10
    email_lookup_debounce_ms: int = 500
    app_url: str = "http://localhost:8000"
    from_email: str | None = None


@functools.lru_cache(maxsize=1)
def get_config() -> BoleteraConfig:
    """Build and return the boletera configuration.

    Reads ``settings.BOLETERA`` (a plain dict) and returns a frozen
    :class:`BoleteraConfig`.  The result is cached; the cache is cleared
    automatically when Django's ``setting_changed`` signal fires (e.g. inside
    ``override_settings``).
    """
    raw = getattr(settings, "BOLETERA", {})
    if not isinstance(raw, Mapping):
        msg = "BOLETERA must be a mapping (dict-like object)"
        raise TypeError(msg)
    raw_data = dict(raw)

    sections = {}
    for name in ("paypal", "altcha", "features"):
        data = raw_data.pop(name, {})
        if not isinstance(data, Mapping):
            msg = f"BOLETERA['{name}'] must be a mapping (dict-like object)"
            raise TypeError(msg)
        sections[name] = dict(data)

    config = BoleteraConfig(
        paypal=PayPalConfig(**sections["paypal"]),
        altcha=AltchaConfig(**sections["altcha"]),
        features=FeaturesConfig(**sections["features"]),
        **raw_data,
    )
    _validate_config(config)
    return config


def _validate_config(config: BoleteraConfig) -> None:
    """Validate high-impact configuration values with clear error messages."""
    positive_ints = (
        "default_limit_per_user",
        "max_courtesy_quantity",
        "login_token_max_age",
        "api_token_max_age",
        "checkin_undo_minutes",
        "orphan_recovery_days",
        "orphan_list_limit",
        "user_search_min_length",
        "user_search_limit",
    )
    for name in positive_ints:
        value = getattr(config, name)
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            msg = f"BOLETERA['{name}'] must be a positive integer"
            raise ValueError(msg)
    if not isinstance(config.default_currency, str) or len(config.default_currency.strip()) != 3:  # noqa: PLR2004
        msg = "BOLETERA['default_currency'] must be a three-letter currency code"
        raise ValueError(msg)
    if not isinstance(config.order_reference_prefix, str) or not config.order_reference_prefix.strip():
        msg = "BOLETERA['order_reference_prefix'] must be a non-empty string"
        raise ValueError(msg)
    if not isinstance(config.paypal.sandbox, bool):
        msg = "BOLETERA['paypal']['sandbox'] must be a boolean"
        raise TypeError(msg)
    if not isinstance(config.altcha.max_number, int) or config.altcha.max_number <= 0:
        msg = "BOLETERA['altcha']['max_number'] must be a positive integer"
        raise ValueError(msg)
    if not isinstance(config.altcha.expires_seconds, int) or config.altcha.expires_seconds <= 0:
        msg = "BOLETERA['altcha']['expires_seconds'] must be a positive integer"
        raise ValueError(msg)


def _clear_config_cache(*, setting: str, **kwargs: object) -> None:  # noqa: ARG001
    """Clear the cached config when Django settings change during tests."""
    if setting == "BOLETERA":
        get_config.cache_clear()


setting_changed.connect(_clear_config_cache, dispatch_uid="boletera.settings.clear_config_cache")
