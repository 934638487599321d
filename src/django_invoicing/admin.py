"""Django admin configuration for invoicing.

Documents are read-only here: amounts, numbers and statuses are only
changed through ``django_invoicing.services`` and ``payments``.
"""

from django.contrib import admin

from .models import Client, Invoice, InvoiceItem, OutboxEvent, Payment, Quote, QuoteItem

ITEM_FIELDS = [
    "position",
    "name",
    "description",
    "quantity",
    "unit_price_amount",
    "tax_rate",
    "is_service",
    "net_amount",
    "tax_amount",
    "line_total_amount",
]

DOCUMENT_READONLY_FIELDS = [
    "id",
    "organization_id",
    "number",
    "status",
    "client",
    "subtotal_amount",
    "tax_amount",
    "total_amount",
    "currency_code",
    "exchange_rate",
    "created_at",
    "updated_at",
]


class ReadOnlyInline(admin.TabularInline):
    extra = 0
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


class InvoiceItemInline(ReadOnlyInline):
    model = InvoiceItem
    fields = ITEM_FIELDS
    readonly_fields = ITEM_FIELDS


class QuoteItemInline(ReadOnlyInline):
    model = QuoteItem
    fields = ITEM_FIELDS
    readonly_fields = ITEM_FIELDS


class PaymentInline(ReadOnlyInline):
    model = Payment
    fields = ["amount", "method", "paid_at", "note", "created_at"]
    readonly_fields = fields


class DocumentAdmin(admin.ModelAdmin):
    list_display = [
        "number",
        "status",
        "client",
        "total_display",
        "issue_date",
        "created_at",
    ]
    list_filter = ["status", "currency_code", "issue_date"]
    search_fields = ["number", "client__name", "organization_id"]
    readonly_fields = DOCUMENT_READONLY_FIELDS

    @admin.display(description="Total")
    def total_display(self, obj):
        return str(obj.total)


@admin.register(Invoice)
class InvoiceAdmin(DocumentAdmin):
    """Admin for Invoice model."""

    readonly_fields = DOCUMENT_READONLY_FIELDS + ["origin_quote"]
    inlines = [InvoiceItemInline, PaymentInline]


@admin.register(Quote)
class QuoteAdmin(DocumentAdmin):
    """Admin for Quote model."""

    inlines = [QuoteItemInline]


@admin.register(Client)
class ClientAdmin(admin.ModelAdmin):
    list_display = ["name", "type", "email", "phone", "city", "organization_id"]
    list_filter = ["type", "country"]
    search_fields = ["name", "email", "tax_id"]


@admin.register(OutboxEvent)
class OutboxEventAdmin(admin.ModelAdmin):
    list_display = ["action", "state", "attempts", "organization_id", "created_at", "processed_at"]
    list_filter = ["action", "state"]
    readonly_fields = [
        "id",
        "organization_id",
        "action",
        "payload",
        "state",
        "attempts",
        "last_error",
        "created_at",
        "processed_at",
    ]
