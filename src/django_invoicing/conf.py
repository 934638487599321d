"""Configuration helpers for django-invoicing."""

from decimal import Decimal

from django.conf import settings


DEFAULTS = {
    "DEFAULT_CURRENCY": "XOF",
    "NUMBER_PREFIXES": {"invoice": "FAC", "quote": "DEV"},
    "NUMBER_PAD_WIDTH": 4,
    "PAYMENT_TOLERANCE": Decimal("0.01"),
    "CACHE_INVALIDATION": True,
    "CACHE_TIMEOUT": 300,
    "DEFAULT_PAGE_SIZE": 20,
    "OUTBOX_MAX_ATTEMPTS": 5,
}


def get_setting(name: str, default=None):
    """Get a setting with INVOICING_ prefix, falling back to DEFAULTS."""
    if default is None:
        default = DEFAULTS.get(name)
    return getattr(settings, f"INVOICING_{name}", default)


def get_number_prefix(kind: str) -> str:
    """Prefix for a document kind's numbers, e.g. 'FAC' for invoices."""
    prefixes = {**DEFAULTS["NUMBER_PREFIXES"], **get_setting("NUMBER_PREFIXES")}
    return prefixes[kind]


def get_payment_tolerance() -> Decimal:
    """Tolerance absorbing rounding when comparing paid totals to invoice totals."""
    return Decimal(str(get_setting("PAYMENT_TOLERANCE")))
