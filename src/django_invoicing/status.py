"""Document status machine.

Provides:
- InvoiceStatus / QuoteStatus / DocumentKind enums
- can_transition: pure lookup in the allowed-transition tables
- get_allowed_transitions: valid next statuses
- validate_transition / request_transition: checked status changes
- is_content_locked / is_terminal: edit and status gates
- status_display: label and tone for each status
"""

from dataclasses import dataclass

from django.db import models

from .exceptions import DocumentLockedError, InvalidTransition


class DocumentKind(models.TextChoices):
    INVOICE = "invoice", "Invoice"
    QUOTE = "quote", "Quote"


class InvoiceStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    SENT = "sent", "Sent"
    PAID = "paid", "Paid"
    PARTIAL = "partial", "Partially paid"
    OVERDUE = "overdue", "Overdue"
    CANCELLED = "cancelled", "Cancelled"


class QuoteStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    SENT = "sent", "Sent"
    ACCEPTED = "accepted", "Accepted"
    REJECTED = "rejected", "Rejected"
    EXPIRED = "expired", "Expired"


STATUS_ENUMS = {
    DocumentKind.INVOICE: InvoiceStatus,
    DocumentKind.QUOTE: QuoteStatus,
}

TRANSITIONS = {
    DocumentKind.INVOICE: {
        InvoiceStatus.DRAFT: frozenset({InvoiceStatus.SENT, InvoiceStatus.CANCELLED}),
        InvoiceStatus.SENT: frozenset({
            InvoiceStatus.PAID,
            InvoiceStatus.PARTIAL,
            InvoiceStatus.OVERDUE,
            InvoiceStatus.CANCELLED,
        }),
        InvoiceStatus.PARTIAL: frozenset({
            InvoiceStatus.PAID,
            InvoiceStatus.OVERDUE,
            InvoiceStatus.CANCELLED,
        }),
        InvoiceStatus.OVERDUE: frozenset({
            InvoiceStatus.PAID,
            InvoiceStatus.PARTIAL,
            InvoiceStatus.CANCELLED,
        }),
        InvoiceStatus.PAID: frozenset(),
        InvoiceStatus.CANCELLED: frozenset(),
    },
    DocumentKind.QUOTE: {
        QuoteStatus.DRAFT: frozenset({QuoteStatus.SENT, QuoteStatus.EXPIRED}),
        QuoteStatus.SENT: frozenset({
            QuoteStatus.ACCEPTED,
            QuoteStatus.REJECTED,
            QuoteStatus.EXPIRED,
        }),
        QuoteStatus.REJECTED: frozenset({QuoteStatus.SENT}),
        QuoteStatus.ACCEPTED: frozenset(),
        QuoteStatus.EXPIRED: frozenset(),
    },
}

TERMINAL_STATUSES = {
    DocumentKind.INVOICE: frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED}),
    DocumentKind.QUOTE: frozenset({QuoteStatus.ACCEPTED, QuoteStatus.EXPIRED}),
}

# Narrower than "terminal" for quotes: a rejected quote can be re-sent but not edited.
CONTENT_LOCKED_STATUSES = {
    DocumentKind.INVOICE: frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED}),
    DocumentKind.QUOTE: frozenset({
        QuoteStatus.ACCEPTED,
        QuoteStatus.REJECTED,
        QuoteStatus.EXPIRED,
    }),
}

# Statuses a newly created document may start in.
INITIAL_STATUSES = ("draft", "sent")

# Quotes in these statuses can be converted into an invoice.
CONVERTIBLE_QUOTE_STATUSES = frozenset({QuoteStatus.SENT, QuoteStatus.ACCEPTED})

# Invoices in these statuses accept no further payments.
CLOSED_INVOICE_STATUSES = frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED})


@dataclass(frozen=True)
class StatusDisplay:
    """Presentation metadata for a status."""

    label: str
    tone: str


STATUS_DISPLAY = {
    DocumentKind.INVOICE: {
        InvoiceStatus.DRAFT: StatusDisplay(InvoiceStatus.DRAFT.label, "neutral"),
        InvoiceStatus.SENT: StatusDisplay(InvoiceStatus.SENT.label, "info"),
        InvoiceStatus.PAID: StatusDisplay(InvoiceStatus.PAID.label, "success"),
        InvoiceStatus.PARTIAL: StatusDisplay(InvoiceStatus.PARTIAL.label, "warning"),
        InvoiceStatus.OVERDUE: StatusDisplay(InvoiceStatus.OVERDUE.label, "danger"),
        InvoiceStatus.CANCELLED: StatusDisplay(InvoiceStatus.CANCELLED.label, "muted"),
    },
    DocumentKind.QUOTE: {
        QuoteStatus.DRAFT: StatusDisplay(QuoteStatus.DRAFT.label, "neutral"),
        QuoteStatus.SENT: StatusDisplay(QuoteStatus.SENT.label, "info"),
        QuoteStatus.ACCEPTED: StatusDisplay(QuoteStatus.ACCEPTED.label, "success"),
        QuoteStatus.REJECTED: StatusDisplay(QuoteStatus.REJECTED.label, "danger"),
        QuoteStatus.EXPIRED: StatusDisplay(QuoteStatus.EXPIRED.label, "muted"),
    },
}


def coerce_status(kind: str, status):
    """Return the enum member for ``status`` or None if it is not a status of ``kind``."""
    try:
        return STATUS_ENUMS[DocumentKind(kind)](status)
    except ValueError:
        return None


def status_display(kind: str, status) -> StatusDisplay:
    """Label and tone for a status of the given kind."""
    member = coerce_status(kind, status)
    if member is None:
        raise ValueError(f"Unknown {kind} status '{status}'")
    return STATUS_DISPLAY[DocumentKind(kind)][member]


def get_allowed_transitions(kind: str, current) -> frozenset:
    """Statuses reachable from ``current`` by an explicit request."""
    member = coerce_status(kind, current)
    if member is None:
        return frozenset()
    return TRANSITIONS[DocumentKind(kind)][member]


def can_transition(kind: str, from_status, to_status) -> bool:
    """True if the table allows ``from_status`` -> ``to_status``. No self-loops."""
    target = coerce_status(kind, to_status)
    return target is not None and target in get_allowed_transitions(kind, from_status)


def is_terminal(kind: str, status) -> bool:
    return coerce_status(kind, status) in TERMINAL_STATUSES[DocumentKind(kind)]


def is_content_locked(kind: str, status) -> bool:
    """True if a document in ``status`` can no longer have its content edited."""
    return coerce_status(kind, status) in CONTENT_LOCKED_STATUSES[DocumentKind(kind)]


def validate_transition(kind: str, current, target):
    """Check a requested status change and return the target status.

    Requesting the current status is an idempotent no-op and is accepted
    in every state, terminal ones included.

    Raises:
        DocumentLockedError: If ``current`` is terminal
        InvalidTransition: If ``target`` is unknown or not allowed from ``current``
    """
    target_member = coerce_status(kind, target)
    if target_member is None:
        raise InvalidTransition(kind, str(current), str(target))

    if target_member == current:
        return target_member

    if is_terminal(kind, current):
        raise DocumentLockedError(
            kind,
            current,
            f"A {kind} with status '{current}' cannot change status",
        )

    if not can_transition(kind, current, target_member):
        raise InvalidTransition(kind, str(current), target_member.value)

    return target_member


def request_transition(document, target):
    """Validate a status change for a document instance. Does not save."""
    return validate_transition(document.kind, document.status, target)
