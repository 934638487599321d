"""Quote to invoice conversion."""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from .exceptions import DocumentNotFoundError, InvalidStateError
from .invalidation import DocumentChange, announce_change
from .models import Invoice, InvoiceItem, Quote
from .sequences import next_document_number
from .services import save_new_document
from .status import CONVERTIBLE_QUOTE_STATUSES, DocumentKind, InvoiceStatus, QuoteStatus

logger = logging.getLogger(__name__)

COPIED_ITEM_FIELDS = (
    "position",
    "name",
    "description",
    "quantity",
    "unit_price_amount",
    "tax_rate",
    "is_service",
    "product_ref",
    "tax_rate_ref",
    "net_amount",
    "tax_amount",
    "line_total_amount",
)


@transaction.atomic
def convert_quote_to_invoice(organization_id: str, quote_id) -> Invoice:
    """Create a draft invoice from a sent or accepted quote.

    The quote's amounts and lines are copied as stored, not recomputed.
    The new invoice is issued today with no due date, and the quote is
    marked ACCEPTED. A quote may be converted more than once.

    Raises:
        DocumentNotFoundError: Quote not found in this organization
        InvalidStateError: Quote is not SENT or ACCEPTED
    """
    try:
        quote = Quote.objects.select_for_update().get(pk=quote_id, organization_id=organization_id)
    except (Quote.DoesNotExist, ValueError, DjangoValidationError):
        raise DocumentNotFoundError(DocumentKind.QUOTE, quote_id)

    if quote.status not in CONVERTIBLE_QUOTE_STATUSES:
        raise InvalidStateError(DocumentKind.QUOTE, quote.status, CONVERTIBLE_QUOTE_STATUSES)

    invoice = Invoice(
        organization_id=organization_id,
        client_id=quote.client_id,
        number=next_document_number(organization_id, DocumentKind.INVOICE),
        status=InvoiceStatus.DRAFT,
        issue_date=timezone.localdate(),
        due_date=None,
        currency_code=quote.currency_code,
        exchange_rate=quote.exchange_rate,
        subtotal_amount=quote.subtotal_amount,
        tax_amount=quote.tax_amount,
        total_amount=quote.total_amount,
        notes=quote.notes,
        terms=quote.terms,
        internal_notes=quote.internal_notes,
        origin_quote=quote,
    )
    save_new_document(invoice)

    InvoiceItem.objects.bulk_create([
        InvoiceItem(invoice=invoice, **{field: getattr(item, field) for field in COPIED_ITEM_FIELDS})
        for item in quote.items.all()
    ])

    if quote.status != QuoteStatus.ACCEPTED:
        quote.status = QuoteStatus.ACCEPTED
        quote.save(update_fields=["status", "updated_at"])

    announce_change(DocumentChange(
        organization_id,
        DocumentKind.INVOICE,
        str(invoice.pk),
        "converted",
        related=((DocumentKind.QUOTE, str(quote.pk)),),
    ))
    logger.info("Converted quote %s into invoice %s", quote.number, invoice.number)
    return invoice
