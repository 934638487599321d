"""Read-only document queries.

Detail and list projections for invoices and quotes. The summary and
status-count projections are cached and dropped by the default
``document_changed`` receiver.
"""

from dataclasses import dataclass
from typing import List, Optional

from django.core.cache import cache
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.paginator import Paginator
from django.db.models import Count, Prefetch, Q

from .conf import get_setting
from .exceptions import DocumentNotFoundError
from .invalidation import document_cache_key, document_list_cache_key
from .models import ITEM_MODELS, Invoice, Quote, get_document_model
from .money import Money
from .payments import paid_total_for
from .status import CONVERTIBLE_QUOTE_STATUSES, STATUS_ENUMS, DocumentKind, status_display

CONVERTIBLE_QUOTES_LIMIT = 20


@dataclass(frozen=True)
class Page:
    """One page of a document list."""

    items: List
    total_count: int
    page: int
    page_size: int
    num_pages: int

    @property
    def has_next(self) -> bool:
        return self.page < self.num_pages


@dataclass(frozen=True)
class InvoiceBalance:
    total: Money
    paid: Money
    remaining: Money


def get_document(organization_id: str, kind: str, document_id):
    """Fetch a document with its client and ordered items.

    Raises:
        DocumentNotFoundError: Not found in this organization
    """
    kind = DocumentKind(kind)
    model = get_document_model(kind)
    queryset = model.objects.select_related("client").prefetch_related(
        Prefetch("items", queryset=ITEM_MODELS[kind].objects.order_by("position"))
    )
    if kind == DocumentKind.INVOICE:
        queryset = queryset.select_related("origin_quote").prefetch_related("payments")
    try:
        return queryset.get(pk=document_id, organization_id=organization_id)
    except (model.DoesNotExist, ValueError, DjangoValidationError):
        raise DocumentNotFoundError(kind, document_id)


def list_documents(
    organization_id: str,
    kind: str,
    *,
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: int = 1,
    page_size: Optional[int] = None,
) -> Page:
    """List an organization's documents, newest first.

    Args:
        status: Only documents in this status
        search: Case-insensitive match on number or client name
        page: 1-based page number; out-of-range values are clamped
        page_size: Defaults to INVOICING_DEFAULT_PAGE_SIZE
    """
    model = get_document_model(kind)
    queryset = model.objects.filter(organization_id=organization_id).select_related("client")
    if status:
        queryset = queryset.filter(status=status)
    if search:
        queryset = queryset.filter(Q(number__icontains=search) | Q(client__name__icontains=search))

    paginator = Paginator(queryset.order_by("-created_at"), page_size or get_setting("DEFAULT_PAGE_SIZE"))
    current = paginator.get_page(page)
    return Page(
        items=list(current.object_list),
        total_count=paginator.count,
        page=current.number,
        page_size=paginator.per_page,
        num_pages=paginator.num_pages,
    )


def get_invoice_balance(organization_id: str, invoice_id) -> InvoiceBalance:
    """Total, paid and remaining amounts of an invoice."""
    invoice = get_document(organization_id, DocumentKind.INVOICE, invoice_id)
    total = invoice.total
    paid = Money(paid_total_for(invoice), invoice.currency_code)
    return InvoiceBalance(total=total, paid=paid, remaining=total - paid)


def convertible_quotes(organization_id: str, limit: int = CONVERTIBLE_QUOTES_LIMIT):
    """Quotes that can still become an invoice: SENT or ACCEPTED, never converted."""
    return list(
        Quote.objects.filter(
            organization_id=organization_id,
            status__in=CONVERTIBLE_QUOTE_STATUSES,
            invoices__isnull=True,
        )
        .select_related("client")
        .order_by("-created_at")[:limit]
    )


def get_document_summary(organization_id: str, kind: str, document_id) -> dict:
    """Cached header summary of a document (number, client, status, amounts)."""
    kind = DocumentKind(kind)
    key = document_cache_key(organization_id, kind, document_id)
    summary = cache.get(key)
    if summary is not None:
        return summary

    document = get_document(organization_id, kind, document_id)
    display = status_display(kind, document.status)
    summary = {
        "id": str(document.pk),
        "number": document.number,
        "client": document.client.name if document.client else None,
        "status": document.status,
        "status_label": str(display.label),
        "status_tone": display.tone,
        "currency_code": document.currency_code,
        "subtotal": document.subtotal_amount,
        "tax": document.tax_amount,
        "total": document.total_amount,
    }
    if isinstance(document, Invoice):
        paid = paid_total_for(document)
        summary["paid"] = paid
        summary["remaining"] = document.total_amount - paid

    cache.set(key, summary, get_setting("CACHE_TIMEOUT"))
    return summary


def document_status_counts(organization_id: str, kind: str) -> dict:
    """Cached number of documents per status, every status included."""
    kind = DocumentKind(kind)
    key = document_list_cache_key(organization_id, kind)
    counts = cache.get(key)
    if counts is not None:
        return counts

    counts = {status.value: 0 for status in STATUS_ENUMS[kind]}
    rows = (
        get_document_model(kind)
        .objects.filter(organization_id=organization_id)
        .order_by()
        .values("status")
        .annotate(count=Count("pk"))
    )
    for row in rows:
        counts[row["status"]] = row["count"]

    cache.set(key, counts, get_setting("CACHE_TIMEOUT"))
    return counts
