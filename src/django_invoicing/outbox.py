"""Outbox for side effects that must not roll back the primary write.

Events are written in the same transaction as the document that caused
them and processed after commit. A failed event keeps its error and is
retried by the ``process_invoicing_outbox`` management command.
"""

import logging

from django.db import DatabaseError, transaction
from django.utils import timezone

from .conf import get_setting
from .exceptions import DocumentNotFoundError, InvoicingError
from .invalidation import DocumentChange, announce_change
from .models import OutboxEvent, Quote
from .status import DocumentKind, QuoteStatus

logger = logging.getLogger(__name__)


def accept_origin_quote(event: OutboxEvent) -> None:
    """Mark the quote an invoice was created from as ACCEPTED."""
    quote_id = event.payload["quote_id"]
    try:
        quote = Quote.objects.select_for_update().get(pk=quote_id, organization_id=event.organization_id)
    except Quote.DoesNotExist:
        raise DocumentNotFoundError(DocumentKind.QUOTE, quote_id)

    if quote.status == QuoteStatus.ACCEPTED:
        return
    quote.status = QuoteStatus.ACCEPTED
    quote.save(update_fields=["status", "updated_at"])
    announce_change(DocumentChange(event.organization_id, DocumentKind.QUOTE, str(quote.pk), "accepted"))


HANDLERS = {
    OutboxEvent.Action.ACCEPT_ORIGIN_QUOTE: accept_origin_quote,
}


def process_event(event_id) -> bool:
    """Run one event's handler. Returns True if the event succeeded.

    Failures are recorded on the event (state, attempts, last_error) and
    logged; they never propagate to the caller.
    """
    event = OutboxEvent.objects.get(pk=event_id)
    if event.state == OutboxEvent.State.SUCCEEDED:
        return True

    event.attempts += 1
    try:
        with transaction.atomic():
            HANDLERS[event.action](event)
    except (InvoicingError, DatabaseError) as e:
        event.state = OutboxEvent.State.FAILED
        event.last_error = str(e)
        event.save(update_fields=["state", "attempts", "last_error"])
        logger.warning(
            "Outbox event %s (%s) failed on attempt %d: %s",
            event.pk, event.action, event.attempts, e,
        )
        return False

    event.state = OutboxEvent.State.SUCCEEDED
    event.last_error = ""
    event.processed_at = timezone.now()
    event.save(update_fields=["state", "attempts", "last_error", "processed_at"])
    logger.info("Outbox event %s (%s) succeeded", event.pk, event.action)
    return True


def pending_events(max_attempts: int = None):
    """Events still to be processed: pending, or failed with attempts left."""
    if max_attempts is None:
        max_attempts = get_setting("OUTBOX_MAX_ATTEMPTS")
    return OutboxEvent.objects.filter(
        state__in=[OutboxEvent.State.PENDING, OutboxEvent.State.FAILED],
        attempts__lt=max_attempts,
    ).order_by("created_at")


def process_pending_events(max_attempts: int = None):
    """Process every pending event. Returns (succeeded, failed) counts."""
    succeeded = failed = 0
    for event_id in list(pending_events(max_attempts).values_list("pk", flat=True)):
        if process_event(event_id):
            succeeded += 1
        else:
            failed += 1
    return succeeded, failed
