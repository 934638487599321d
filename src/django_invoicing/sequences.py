"""Sequential document numbering.

Numbers look like ``FAC-2026-0001`` (invoices) or ``DEV-2026-0001``
(quotes): prefix, issue year, then a counter that restarts every year and
is scoped to one organization.
"""

import logging

from django.db import IntegrityError, transaction
from django.utils import timezone

from .conf import get_number_prefix, get_setting
from .models import DocumentSequence, get_document_model
from .status import DocumentKind

logger = logging.getLogger(__name__)


def highest_issued_value(organization_id: str, kind: str, prefix: str, year: int) -> int:
    """Largest counter value already used by a document number in this scope.

    Used to seed a new counter row so numbers issued before the counter
    existed (imports, fixtures) are never reissued.
    """
    stem = f"{prefix}-{year}-"
    numbers = (
        get_document_model(kind)
        .objects.filter(organization_id=organization_id, number__startswith=stem)
        .values_list("number", flat=True)
    )
    highest = 0
    for number in numbers:
        suffix = number[len(stem):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest


def next_document_number(organization_id: str, kind: str, year: int = None) -> str:
    """Allocate the next document number atomically.

    Uses select_for_update() on the counter row so concurrent requests in
    the same organization never draw the same value.

    Args:
        organization_id: Owning organization
        kind: 'invoice' or 'quote'
        year: Numbering year (defaults to the current local year)

    Returns:
        The formatted number, e.g. "FAC-2026-0001"
    """
    kind = DocumentKind(kind)
    if year is None:
        year = timezone.localdate().year

    with transaction.atomic():
        scope = {"organization_id": organization_id, "kind": kind, "year": year}
        try:
            seq = DocumentSequence.objects.select_for_update().get(**scope)
        except DocumentSequence.DoesNotExist:
            prefix = get_number_prefix(kind)
            try:
                # Savepoint: a concurrent request may create the same row first.
                with transaction.atomic():
                    DocumentSequence.objects.create(
                        prefix=prefix,
                        current_value=highest_issued_value(organization_id, kind, prefix, year),
                        pad_width=get_setting("NUMBER_PAD_WIDTH"),
                        **scope,
                    )
            except IntegrityError:
                logger.info("Counter %s/%s/%s created concurrently, reusing it", organization_id, kind, year)
            seq = DocumentSequence.objects.select_for_update().get(**scope)

        seq.current_value += 1
        seq.save(update_fields=["current_value", "updated_at"])

        return seq.formatted_value
