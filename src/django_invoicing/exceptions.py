"""Exceptions for django-invoicing.

Every business failure has its own class with a stable ``code``. Services
raise these; ``django_invoicing.api`` turns them into failed results.
"""


class InvoicingError(Exception):
    """Base exception for invoicing errors."""

    code = "invoicing_error"
    field = None
    retryable = False


class DocumentValidationError(InvoicingError):
    """Input failed validation. ``field`` is the offending path (e.g. ``items.0.quantity``)."""

    code = "validation_error"

    def __init__(self, message: str, field: str = None, errors: dict = None):
        self.field = field
        self.errors = errors or ({field: [message]} if field else {})
        super().__init__(message)


class DocumentNotFoundError(InvoicingError):
    """Document, payment or quote does not exist in the requesting organization."""

    code = "not_found"

    def __init__(self, kind: str, object_id):
        self.kind = kind
        self.object_id = object_id
        super().__init__(f"{kind.capitalize()} not found")


class DocumentLockedError(InvoicingError):
    """Document status forbids the requested change."""

    code = "document_locked"

    def __init__(self, kind: str, status: str, reason: str = None):
        self.kind = kind
        self.status = status
        super().__init__(
            reason or f"A {kind} with status '{status}' can no longer be modified"
        )


class NotDraftError(InvoicingError):
    """Only draft documents can be deleted."""

    code = "not_draft"

    def __init__(self, kind: str, status: str):
        self.kind = kind
        self.status = status
        super().__init__(
            f"Only draft {kind}s can be deleted (current status: '{status}')"
        )


class InvoiceClosedError(InvoicingError):
    """Payments cannot be recorded against paid or cancelled invoices."""

    code = "invoice_closed"

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Cannot record a payment on an invoice with status '{status}'")


class InvalidStateError(InvoicingError):
    """Operation not available in the document's current status."""

    code = "invalid_state"

    def __init__(self, kind: str, status: str, allowed):
        self.kind = kind
        self.status = status
        self.allowed = sorted(str(status) for status in allowed)
        super().__init__(
            f"{kind.capitalize()} status '{status}' does not allow this operation "
            f"(expected one of {self.allowed})"
        )


class InvalidTransition(InvoicingError):
    """Requested status change is not in the allowed transition table."""

    code = "invalid_transition"

    def __init__(self, kind: str, from_status: str, to_status: str):
        self.kind = kind
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Cannot move {kind} from '{from_status}' to '{to_status}'"
        )


class NoClientError(InvoicingError):
    """Neither an existing client nor an inline client was supplied."""

    code = "no_client"
    field = "client_id"

    def __init__(self):
        super().__init__("Select an existing client or create a new one")


class EmptyItemsError(InvoicingError):
    """No line item left once blank rows are dropped."""

    code = "empty_items"
    field = "items"

    def __init__(self):
        super().__init__("Add at least one line item")


class AmountExceedsBalanceError(InvoicingError):
    """Payment amount is larger than the invoice's remaining balance."""

    code = "amount_exceeds_balance"
    field = "amount"

    def __init__(self, amount, remaining):
        self.amount = amount
        self.remaining = remaining
        super().__init__(
            f"Payment amount {amount} exceeds the remaining balance {remaining:.2f}"
        )


class NumberCollisionError(InvoicingError):
    """Generated document number already exists. Retry the whole operation."""

    code = "number_collision"
    retryable = True

    def __init__(self, number: str):
        self.number = number
        super().__init__("Document numbering conflict, please try again")


class TransactionFailureError(InvoicingError):
    """Opaque persistence failure surfaced to callers."""

    code = "transaction_failure"

    def __init__(self):
        super().__init__("The operation could not be completed, please try again")


class CurrencyMismatchError(ValueError):
    """Raised when combining Money values in different currencies."""
    pass
