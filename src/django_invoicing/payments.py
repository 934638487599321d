"""Payment recording and invoice status reconciliation.

Recording or removing a payment always recomputes the invoice's status
from the sum of its payments. These derived changes are not requests: they
may move an invoice along edges the transition table does not offer to
callers (e.g. PAID back to SENT when a payment is removed).
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Sum

from .conf import get_payment_tolerance
from .exceptions import (
    AmountExceedsBalanceError,
    DocumentNotFoundError,
    InvoiceClosedError,
)
from .forms import clean_payment_input
from .invalidation import DocumentChange, announce_change
from .models import Invoice, Payment
from .status import CLOSED_INVOICE_STATUSES, DocumentKind, InvoiceStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentOutcome:
    """Result of recording a payment."""

    payment: Payment
    status: str
    paid_total: Decimal


def paid_total_for(invoice) -> Decimal:
    """Sum of the payments recorded against an invoice."""
    total = invoice.payments.aggregate(total=Sum("amount"))["total"]
    return total if total is not None else Decimal("0.00")


def derive_status_after_payment(current, paid_total, total, tolerance=None):
    """Invoice status once ``paid_total`` has been received.

    PAID when the total is covered (within tolerance), PARTIAL when
    anything has been paid, otherwise unchanged.
    """
    if tolerance is None:
        tolerance = get_payment_tolerance()
    if paid_total >= total - tolerance:
        return InvoiceStatus.PAID
    if paid_total > 0:
        return InvoiceStatus.PARTIAL
    return current


def derive_status_after_removal(current, remaining, total, tolerance=None):
    """Invoice status once a payment has been removed.

    ``remaining`` is the sum of the payments still recorded. With nothing
    left, a PAID or PARTIAL invoice goes back to SENT; OVERDUE and
    CANCELLED are kept.
    """
    if tolerance is None:
        tolerance = get_payment_tolerance()
    if remaining <= 0:
        if current in (InvoiceStatus.PAID, InvoiceStatus.PARTIAL):
            return InvoiceStatus.SENT
        return current
    if remaining < total - tolerance:
        return InvoiceStatus.PARTIAL
    return current


def _lock_invoice(organization_id: str, invoice_id) -> Invoice:
    try:
        return Invoice.objects.select_for_update().get(pk=invoice_id, organization_id=organization_id)
    except (Invoice.DoesNotExist, ValueError, DjangoValidationError):
        raise DocumentNotFoundError(DocumentKind.INVOICE, invoice_id)


@transaction.atomic
def apply_payment(organization_id: str, invoice_id, data: dict) -> PaymentOutcome:
    """Record a payment against an invoice and update its status.

    Args:
        organization_id: Owning organization
        invoice_id: Invoice being paid
        data: Raw input with amount, method, paid_at and optional note

    Returns:
        PaymentOutcome with the payment, the invoice's new status and the
        paid total including this payment

    Raises:
        DocumentValidationError: Invalid payment input
        DocumentNotFoundError: Invoice not found in this organization
        InvoiceClosedError: Invoice is PAID or CANCELLED
        AmountExceedsBalanceError: Amount larger than the remaining balance
    """
    cleaned = clean_payment_input(data)
    invoice = _lock_invoice(organization_id, invoice_id)

    if invoice.status in CLOSED_INVOICE_STATUSES:
        raise InvoiceClosedError(invoice.status)

    tolerance = get_payment_tolerance()
    prior = paid_total_for(invoice)
    remaining = invoice.total_amount - prior
    if cleaned.amount > remaining + tolerance:
        raise AmountExceedsBalanceError(cleaned.amount, remaining)

    payment = Payment.objects.create(
        invoice=invoice,
        amount=cleaned.amount,
        method=cleaned.method,
        paid_at=cleaned.paid_at,
        note=cleaned.note,
    )

    paid_total = prior + cleaned.amount
    new_status = derive_status_after_payment(invoice.status, paid_total, invoice.total_amount, tolerance)
    if new_status != invoice.status:
        invoice.status = new_status
        invoice.save(update_fields=["status", "updated_at"])

    announce_change(DocumentChange(organization_id, DocumentKind.INVOICE, str(invoice.pk), "payment_applied"))
    logger.info(
        "Recorded payment %s of %s on invoice %s (status %s)",
        payment.pk, cleaned.amount, invoice.number, invoice.status,
    )
    return PaymentOutcome(payment=payment, status=invoice.status, paid_total=paid_total)


@transaction.atomic
def remove_payment(organization_id: str, payment_id) -> Invoice:
    """Delete a payment and recompute its invoice's status.

    Raises:
        DocumentNotFoundError: Payment not found, or its invoice belongs to
            another organization
    """
    try:
        payment = Payment.objects.select_related("invoice").get(
            pk=payment_id,
            invoice__organization_id=organization_id,
        )
    except (Payment.DoesNotExist, ValueError, DjangoValidationError):
        raise DocumentNotFoundError("payment", payment_id)

    invoice = _lock_invoice(organization_id, payment.invoice_id)
    payment.delete()

    remaining = paid_total_for(invoice)
    new_status = derive_status_after_removal(invoice.status, remaining, invoice.total_amount)
    if new_status != invoice.status:
        invoice.status = new_status
        invoice.save(update_fields=["status", "updated_at"])

    announce_change(DocumentChange(organization_id, DocumentKind.INVOICE, str(invoice.pk), "payment_removed"))
    logger.info("Removed payment %s from invoice %s (status %s)", payment_id, invoice.number, invoice.status)
    return invoice
