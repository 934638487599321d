"""Django Invoicing - Quotes, invoices and payment reconciliation for Django."""

__version__ = "0.1.0"

__all__ = [
    # Value objects
    "Money",
    "round2",
    # Calculator
    "compute_line",
    "compute_document",
    # Status machine
    "InvoiceStatus",
    "QuoteStatus",
    "DocumentKind",
    "can_transition",
    # Result boundary
    "ActionResult",
]


def __getattr__(name):
    """Lazy import to avoid AppRegistryNotReady errors."""
    if name in ("Money", "round2"):
        from django_invoicing import money
        return getattr(money, name)
    if name in ("compute_line", "compute_document"):
        from django_invoicing import calculator
        return getattr(calculator, name)
    if name in ("InvoiceStatus", "QuoteStatus", "DocumentKind", "can_transition"):
        from django_invoicing import status
        return getattr(status, name)
    if name == "ActionResult":
        from django_invoicing import api
        return getattr(api, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
