"""Document mutation services.

Create, update, delete and status changes for invoices and quotes. Every
function runs in one transaction: the inline client, header and line items
are written together or not at all. Totals are always recomputed from the
line items.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction

from .calculator import compute_document
from .clients import resolve_client
from .exceptions import (
    DocumentLockedError,
    DocumentNotFoundError,
    DocumentValidationError,
    NotDraftError,
    NumberCollisionError,
)
from .forms import DocumentInput, clean_document_input
from .invalidation import DocumentChange, announce_change
from .models import ITEM_MODELS, OutboxEvent, Quote, get_document_model
from .sequences import next_document_number
from .status import DocumentKind, is_content_locked, request_transition

logger = logging.getLogger(__name__)


def get_document_for_update(organization_id: str, kind: str, document_id):
    """Fetch and lock a document of this organization.

    Raises:
        DocumentNotFoundError: Unknown id, or the document belongs to another organization
    """
    model = get_document_model(kind)
    try:
        return model.objects.select_for_update().get(pk=document_id, organization_id=organization_id)
    except (model.DoesNotExist, ValueError, DjangoValidationError):
        raise DocumentNotFoundError(kind, document_id)


def _resolve_origin_quote(organization_id: str, quote_id):
    try:
        return Quote.objects.get(pk=quote_id, organization_id=organization_id)
    except Quote.DoesNotExist:
        raise DocumentValidationError("Origin quote not found", field="origin_quote_id")


def _apply_header(document, data: DocumentInput, totals) -> None:
    document.issue_date = data.issue_date
    document.currency_code = data.currency_code
    document.exchange_rate = data.exchange_rate
    document.notes = data.notes
    document.terms = data.terms
    document.internal_notes = data.internal_notes
    document.subtotal_amount = totals.subtotal
    document.tax_amount = totals.tax_total
    document.total_amount = totals.total
    if document.kind == DocumentKind.INVOICE:
        document.due_date = data.due_date
    else:
        document.expiry_date = data.expiry_date


def _insert_items(document, data: DocumentInput, totals) -> None:
    item_model = ITEM_MODELS[document.kind]
    parent_field = str(document.kind)
    item_model.objects.bulk_create([
        item_model(
            **{parent_field: document},
            position=position,
            name=item.name,
            description=item.description,
            quantity=item.quantity,
            unit_price_amount=item.unit_price,
            tax_rate=item.tax_rate,
            is_service=item.is_service,
            product_ref=item.product_id,
            tax_rate_ref=item.tax_rate_id,
            net_amount=amounts.ht,
            tax_amount=amounts.tva,
            line_total_amount=amounts.total,
        )
        for position, (item, amounts) in enumerate(zip(data.items, totals.lines))
    ])


def save_new_document(document) -> None:
    """Insert a new header, mapping a duplicate number to NumberCollisionError."""
    try:
        with transaction.atomic():
            document.save(force_insert=True)
    except IntegrityError as e:
        model = type(document)
        if model.objects.filter(
            organization_id=document.organization_id,
            number=document.number,
        ).exists():
            raise NumberCollisionError(document.number) from e
        raise


@transaction.atomic
def create_document(organization_id: str, kind: str, data: dict):
    """Create an invoice or quote with its line items.

    Args:
        organization_id: Owning organization
        kind: 'invoice' or 'quote'
        data: Raw input (see ``django_invoicing.forms``)

    Returns:
        The created Invoice or Quote

    Raises:
        DocumentValidationError: Invalid input, unknown client or origin quote
        NoClientError: No client given
        EmptyItemsError: No line item given
        NumberCollisionError: Allocated number already in use (retryable)
    """
    kind = DocumentKind(kind)

    # 1. Validate input
    cleaned = clean_document_input(kind, data)

    # 2. Resolve (or create) the client
    client = resolve_client(organization_id, cleaned.client_id, cleaned.new_client)

    origin_quote = None
    if kind == DocumentKind.INVOICE and cleaned.origin_quote_id:
        origin_quote = _resolve_origin_quote(organization_id, cleaned.origin_quote_id)

    # 3. Compute totals
    totals = compute_document(cleaned.items)

    # 4. Insert header with a freshly allocated number
    model = get_document_model(kind)
    document = model(
        organization_id=organization_id,
        client=client,
        number=next_document_number(organization_id, kind),
        status=cleaned.status,
    )
    _apply_header(document, cleaned, totals)
    if origin_quote is not None:
        document.origin_quote = origin_quote
    save_new_document(document)

    # 5. Insert line items
    _insert_items(document, cleaned, totals)

    # 6. Queue acceptance of the origin quote for after commit
    if origin_quote is not None:
        _queue_origin_quote_acceptance(organization_id, document, origin_quote)

    announce_change(DocumentChange(organization_id, kind, str(document.pk), "created"))
    logger.info("Created %s %s (%s) for organization %s", kind, document.number, document.pk, organization_id)
    return document


def _queue_origin_quote_acceptance(organization_id: str, invoice, quote) -> None:
    from .outbox import process_event

    event = OutboxEvent.objects.create(
        organization_id=organization_id,
        action=OutboxEvent.Action.ACCEPT_ORIGIN_QUOTE,
        payload={"quote_id": str(quote.pk), "invoice_id": str(invoice.pk)},
    )
    transaction.on_commit(lambda: process_event(event.pk))


@transaction.atomic
def update_document(organization_id: str, kind: str, document_id, data: dict):
    """Replace a document's content: header fields and all line items.

    Status, number and origin quote are left unchanged.

    Raises:
        DocumentNotFoundError: Not found in this organization
        DocumentLockedError: Status forbids content edits
        DocumentValidationError / NoClientError / EmptyItemsError: Invalid input
    """
    kind = DocumentKind(kind)
    document = get_document_for_update(organization_id, kind, document_id)

    if is_content_locked(kind, document.status):
        raise DocumentLockedError(kind, document.status)

    cleaned = clean_document_input(kind, data)
    document.client = resolve_client(organization_id, cleaned.client_id, cleaned.new_client)

    totals = compute_document(cleaned.items)
    _apply_header(document, cleaned, totals)
    document.save()

    document.items.all().delete()
    _insert_items(document, cleaned, totals)

    announce_change(DocumentChange(organization_id, kind, str(document.pk), "updated"))
    logger.info("Updated %s %s (%s)", kind, document.number, document.pk)
    return document


@transaction.atomic
def delete_document(organization_id: str, kind: str, document_id) -> None:
    """Hard-delete a draft document and its line items.

    Raises:
        DocumentNotFoundError: Not found in this organization
        NotDraftError: Document is not a draft
    """
    kind = DocumentKind(kind)
    document = get_document_for_update(organization_id, kind, document_id)

    if document.status != "draft":
        raise NotDraftError(kind, document.status)

    pk, number = str(document.pk), document.number
    document.delete()

    announce_change(DocumentChange(organization_id, kind, pk, "deleted"))
    logger.info("Deleted %s %s (%s)", kind, number, pk)


@transaction.atomic
def change_status(organization_id: str, kind: str, document_id, status):
    """Move a document to ``status`` if the transition table allows it.

    Requesting the current status is a no-op: nothing is saved and no
    change is announced.

    Raises:
        DocumentNotFoundError: Not found in this organization
        DocumentLockedError: Current status is terminal
        InvalidTransition: Target not reachable from the current status
    """
    kind = DocumentKind(kind)
    document = get_document_for_update(organization_id, kind, document_id)

    target = request_transition(document, status)
    if target == document.status:
        return document

    previous = document.status
    document.status = target
    document.save(update_fields=["status", "updated_at"])

    announce_change(DocumentChange(organization_id, kind, str(document.pk), "status_changed"))
    logger.info("%s %s status %s -> %s", kind.capitalize(), document.number, previous, target)
    return document
