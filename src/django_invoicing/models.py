"""Models for django-invoicing.

Provides:
- Client: billed party, scoped to an organization
- Invoice / InvoiceItem and Quote / QuoteItem: documents and their lines
- Payment: money received against an invoice
- DocumentSequence: per-organization, per-kind, per-year number counter
- OutboxEvent: side effects applied after the primary transaction commits
"""

import uuid
from decimal import Decimal

from django.db import models
from django.db.models import Q

from .money import Money
from .status import DocumentKind, InvoiceStatus, QuoteStatus


class Client(models.Model):
    """A billed party. Created directly or inline while saving a document."""

    class Type(models.TextChoices):
        INDIVIDUAL = "individual", "Individual"
        COMPANY = "company", "Company"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="ID of the owning organization (CharField for UUID support)",
    )
    type = models.CharField(max_length=20, choices=Type.choices, default=Type.INDIVIDUAL)
    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    address = models.CharField(max_length=500, blank=True)
    city = models.CharField(max_length=100, blank=True)
    country = models.CharField(max_length=100, blank=True)
    tax_id = models.CharField(max_length=100, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]

    def __str__(self):
        return self.name


class Document(models.Model):
    """Shared header for invoices and quotes.

    Totals are denormalized and always recomputed server-side from the
    line items; they are never taken from caller input.
    """

    kind = None

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization_id = models.CharField(
        max_length=255,
        db_index=True,
        help_text="ID of the owning organization (CharField for UUID support)",
    )
    client = models.ForeignKey(
        Client,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="%(class)ss",
    )

    number = models.CharField(
        max_length=50,
        help_text="Human-readable number, e.g. FAC-2026-0001",
    )
    issue_date = models.DateField()

    currency_code = models.CharField(max_length=3, default="XOF")
    exchange_rate = models.DecimalField(
        max_digits=18,
        decimal_places=6,
        null=True,
        blank=True,
        help_text="Stored as entered; no conversion is performed",
    )

    subtotal_amount = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        default=Decimal("0"),
        help_text="Sum of line HT amounts",
    )
    tax_amount = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        default=Decimal("0"),
        help_text="Sum of line TVA amounts",
    )
    total_amount = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        default=Decimal("0"),
        help_text="Sum of line totals (subtotal + tax)",
    )

    notes = models.TextField(blank=True)
    terms = models.TextField(blank=True)
    internal_notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["organization_id", "number"],
                name="%(app_label)s_%(class)s_number_per_org",
            ),
            models.CheckConstraint(
                condition=Q(subtotal_amount__gte=0),
                name="%(app_label)s_%(class)s_subtotal_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(total_amount__gte=0),
                name="%(app_label)s_%(class)s_total_non_negative",
            ),
        ]

    def __str__(self):
        return f"{self.number} - {self.total} ({self.status})"

    @property
    def subtotal(self) -> Money:
        return Money(self.subtotal_amount, self.currency_code)

    @property
    def tax(self) -> Money:
        return Money(self.tax_amount, self.currency_code)

    @property
    def total(self) -> Money:
        return Money(self.total_amount, self.currency_code)


class Invoice(Document):
    """Invoice issued by an organization to a client."""

    kind = DocumentKind.INVOICE

    status = models.CharField(
        max_length=20,
        choices=InvoiceStatus.choices,
        default=InvoiceStatus.DRAFT,
        db_index=True,
    )
    due_date = models.DateField(null=True, blank=True)
    origin_quote = models.ForeignKey(
        "Quote",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="invoices",
        help_text="Quote this invoice was created from, if any",
    )

    class Meta(Document.Meta):
        pass


class Quote(Document):
    """Quote (estimate) sent to a client; may be converted into invoices."""

    kind = DocumentKind.QUOTE

    status = models.CharField(
        max_length=20,
        choices=QuoteStatus.choices,
        default=QuoteStatus.DRAFT,
        db_index=True,
    )
    expiry_date = models.DateField(null=True, blank=True)

    class Meta(Document.Meta):
        pass


class DocumentItem(models.Model):
    """Line item snapshot with its computed amounts."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    position = models.PositiveIntegerField(default=0)

    name = models.CharField(max_length=255)
    description = models.CharField(max_length=1000, blank=True)
    quantity = models.DecimalField(max_digits=12, decimal_places=3)
    unit_price_amount = models.DecimalField(max_digits=15, decimal_places=4)
    tax_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal("0"),
        help_text="Tax rate as a percentage (18 = 18%)",
    )
    is_service = models.BooleanField(default=False)

    # References into an external catalog, stored verbatim
    product_ref = models.UUIDField(null=True, blank=True)
    tax_rate_ref = models.UUIDField(null=True, blank=True)

    net_amount = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        help_text="HT: round2(quantity * unit_price)",
    )
    tax_amount = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        help_text="TVA: round2(net * tax_rate / 100)",
    )
    line_total_amount = models.DecimalField(
        max_digits=19,
        decimal_places=2,
        help_text="net + tax",
    )

    class Meta:
        abstract = True
        ordering = ["position"]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gt=0),
                name="%(app_label)s_%(class)s_quantity_positive",
            ),
            models.CheckConstraint(
                condition=Q(unit_price_amount__gte=0),
                name="%(app_label)s_%(class)s_unit_price_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(tax_rate__gte=0) & Q(tax_rate__lte=100),
                name="%(app_label)s_%(class)s_tax_rate_percent",
            ),
        ]

    def __str__(self):
        return f"{self.name} x{self.quantity} = {self.line_total_amount}"


class InvoiceItem(DocumentItem):
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="items")

    class Meta(DocumentItem.Meta):
        pass


class QuoteItem(DocumentItem):
    quote = models.ForeignKey(Quote, on_delete=models.CASCADE, related_name="items")

    class Meta(DocumentItem.Meta):
        pass


class Payment(models.Model):
    """Payment received against an invoice."""

    class Method(models.TextChoices):
        CASH = "cash", "Cash"
        BANK_TRANSFER = "bank_transfer", "Bank transfer"
        MOBILE_MONEY = "mobile_money", "Mobile money"
        CARD = "card", "Card"
        CHECK = "check", "Check"
        OTHER = "other", "Other"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="payments")
    amount = models.DecimalField(max_digits=19, decimal_places=2)
    method = models.CharField(max_length=20, choices=Method.choices)
    paid_at = models.DateField()
    note = models.CharField(max_length=500, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["paid_at", "created_at"]
        constraints = [
            models.CheckConstraint(
                condition=Q(amount__gt=0),
                name="payment_amount_positive",
            ),
        ]

    def __str__(self):
        return f"{self.amount} ({self.method}) on {self.paid_at}"


class DocumentSequence(models.Model):
    """Counter for sequential document numbers.

    One row per (organization, kind, year); incremented under a row lock so
    concurrent creations never draw the same value.
    """

    organization_id = models.CharField(max_length=255)
    kind = models.CharField(max_length=20, choices=DocumentKind.choices)
    year = models.PositiveSmallIntegerField()
    prefix = models.CharField(max_length=20)
    current_value = models.PositiveBigIntegerField(default=0)
    pad_width = models.PositiveSmallIntegerField(default=4)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["organization_id", "kind", "year"],
                name="documentsequence_unique_scope",
            ),
        ]

    def __str__(self):
        return f"{self.kind} {self.year} (org:{self.organization_id}): {self.current_value}"

    @property
    def formatted_value(self) -> str:
        """Current value formatted, e.g. 'FAC-2026-0007'."""
        return f"{self.prefix}-{self.year}-{str(self.current_value).zfill(self.pad_width)}"


class OutboxEvent(models.Model):
    """Side effect recorded with a primary write and applied after commit.

    State machine: pending -> succeeded | failed (failed events are retried
    by the process_invoicing_outbox command).
    """

    class Action(models.TextChoices):
        ACCEPT_ORIGIN_QUOTE = "accept_origin_quote", "Accept origin quote"

    class State(models.TextChoices):
        PENDING = "pending", "Pending"
        SUCCEEDED = "succeeded", "Succeeded"
        FAILED = "failed", "Failed"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization_id = models.CharField(max_length=255)
    action = models.CharField(max_length=50, choices=Action.choices)
    payload = models.JSONField(default=dict)

    state = models.CharField(
        max_length=20,
        choices=State.choices,
        default=State.PENDING,
        db_index=True,
    )
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    processed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.action} ({self.state})"


DOCUMENT_MODELS = {
    DocumentKind.INVOICE: Invoice,
    DocumentKind.QUOTE: Quote,
}

ITEM_MODELS = {
    DocumentKind.INVOICE: InvoiceItem,
    DocumentKind.QUOTE: QuoteItem,
}


def get_document_model(kind: str):
    """Return the concrete document model for a kind ('invoice' or 'quote')."""
    return DOCUMENT_MODELS[DocumentKind(kind)]
