"""Input validation for documents and payments.

Caller data (a plain dict, as decoded from a request) goes through Django
forms and comes out as frozen input objects. Field errors are reported
with dotted paths, e.g. ``items.0.quantity`` or ``new_client.name``.
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Tuple
from uuid import UUID

from django import forms
from django.utils.translation import gettext_lazy as _

from .conf import get_setting
from .exceptions import DocumentValidationError, EmptyItemsError, NoClientError
from .models import Client, Payment
from .status import INITIAL_STATUSES, DocumentKind, InvoiceStatus


DATE_INPUT_FORMATS = ["%Y-%m-%d"]
TEXT_MAX_LENGTH = 2000
INITIAL_STATUS_CHOICES = [(value, InvoiceStatus(value).label) for value in INITIAL_STATUSES]


@dataclass(frozen=True)
class LineItemInput:
    """A validated line item."""

    name: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Decimal = Decimal("0")
    description: str = ""
    is_service: bool = False
    product_id: Optional[UUID] = None
    tax_rate_id: Optional[UUID] = None


@dataclass(frozen=True)
class DocumentInput:
    """Validated input for creating or updating an invoice or quote."""

    issue_date: date
    currency_code: str
    items: Tuple[LineItemInput, ...]
    client_id: Optional[UUID] = None
    new_client: Optional[dict] = None
    due_date: Optional[date] = None
    expiry_date: Optional[date] = None
    origin_quote_id: Optional[UUID] = None
    exchange_rate: Optional[Decimal] = None
    notes: str = ""
    terms: str = ""
    internal_notes: str = ""
    status: str = InvoiceStatus.DRAFT


@dataclass(frozen=True)
class PaymentInput:
    """A validated payment."""

    amount: Decimal
    method: str
    paid_at: date
    note: str = ""


class LineItemForm(forms.Form):
    """One line of a document."""

    name = forms.CharField(max_length=255)
    description = forms.CharField(max_length=1000, required=False)
    quantity = forms.DecimalField(max_digits=12, decimal_places=3)
    unit_price = forms.DecimalField(max_digits=15, decimal_places=4, min_value=Decimal("0"))
    tax_rate = forms.DecimalField(
        max_digits=5,
        decimal_places=2,
        required=False,
        min_value=Decimal("0"),
        max_value=Decimal("100"),
    )
    is_service = forms.BooleanField(required=False)
    product_id = forms.UUIDField(required=False)
    tax_rate_id = forms.UUIDField(required=False)

    def clean_quantity(self):
        quantity = self.cleaned_data["quantity"]
        if quantity <= 0:
            raise forms.ValidationError(_("Quantity must be positive"))
        return quantity

    def clean_tax_rate(self):
        tax_rate = self.cleaned_data.get("tax_rate")
        return Decimal("0") if tax_rate is None else tax_rate

    def to_input(self) -> LineItemInput:
        data = self.cleaned_data
        return LineItemInput(
            name=data["name"],
            description=data["description"],
            quantity=data["quantity"],
            unit_price=data["unit_price"],
            tax_rate=data["tax_rate"],
            is_service=data["is_service"],
            product_id=data["product_id"],
            tax_rate_id=data["tax_rate_id"],
        )


class NewClientForm(forms.ModelForm):
    """Client created inline while saving a document."""

    class Meta:
        model = Client
        fields = ["type", "name", "email", "phone", "address", "city", "country", "tax_id"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["type"].required = False

    def clean_type(self):
        return self.cleaned_data.get("type") or Client.Type.INDIVIDUAL


class DocumentForm(forms.Form):
    """Header fields shared by invoices and quotes."""

    client_id = forms.UUIDField(required=False)
    issue_date = forms.DateField(input_formats=DATE_INPUT_FORMATS)
    currency_code = forms.CharField(min_length=3, max_length=3, required=False)
    exchange_rate = forms.DecimalField(max_digits=18, decimal_places=6, required=False)
    notes = forms.CharField(max_length=TEXT_MAX_LENGTH, required=False)
    terms = forms.CharField(max_length=TEXT_MAX_LENGTH, required=False)
    internal_notes = forms.CharField(max_length=TEXT_MAX_LENGTH, required=False)

    def clean_currency_code(self):
        code = self.cleaned_data.get("currency_code")
        if not code:
            return get_setting("DEFAULT_CURRENCY")
        return code.upper()

    def clean_exchange_rate(self):
        rate = self.cleaned_data.get("exchange_rate")
        if rate is not None and rate <= 0:
            raise forms.ValidationError(_("Exchange rate must be positive"))
        return rate


class InvoiceForm(DocumentForm):
    due_date = forms.DateField(input_formats=DATE_INPUT_FORMATS, required=False)
    origin_quote_id = forms.UUIDField(required=False)
    status = forms.ChoiceField(
        choices=INITIAL_STATUS_CHOICES,
        required=False,
    )


class QuoteForm(DocumentForm):
    expiry_date = forms.DateField(input_formats=DATE_INPUT_FORMATS, required=False)
    status = forms.ChoiceField(
        choices=INITIAL_STATUS_CHOICES,
        required=False,
    )


class PaymentForm(forms.Form):
    amount = forms.DecimalField(max_digits=19, decimal_places=2, min_value=Decimal("0.01"))
    method = forms.ChoiceField(choices=Payment.Method.choices)
    paid_at = forms.DateField(input_formats=DATE_INPUT_FORMATS)
    note = forms.CharField(max_length=500, required=False)


HEADER_FORMS = {
    DocumentKind.INVOICE: InvoiceForm,
    DocumentKind.QUOTE: QuoteForm,
}


def _add_errors(errors: dict, form, prefix: str = "") -> None:
    for name, messages in form.errors.items():
        errors[f"{prefix}{name}"] = [str(message) for message in messages]


def _raise_if_errors(errors: dict) -> None:
    if errors:
        field = next(iter(errors))
        raise DocumentValidationError(errors[field][0], field=field, errors=errors)


def _is_blank_row(row) -> bool:
    return not str(row.get("name") or "").strip()


def _require_mapping(data) -> None:
    if not isinstance(data, dict):
        raise DocumentValidationError(str(_("Expected an object")), field="__all__")


def clean_document_input(kind: str, data: dict) -> DocumentInput:
    """Validate raw document data.

    Item rows whose name is blank are dropped before validation; the
    remaining rows keep their submitted index in error paths. A missing
    currency defaults to INVOICING_DEFAULT_CURRENCY on create and update.

    Raises:
        DocumentValidationError: Field-level errors, first one in ``field``
        NoClientError: Neither ``client_id`` nor ``new_client`` given
        EmptyItemsError: No item left after dropping blank rows
    """
    kind = DocumentKind(kind)
    _require_mapping(data)
    errors = {}

    header = HEADER_FORMS[kind](data)
    _add_errors(errors, header)

    new_client_data = data.get("new_client") or None
    client_form = None
    if new_client_data is not None:
        if isinstance(new_client_data, dict):
            client_form = NewClientForm(new_client_data)
            _add_errors(errors, client_form, "new_client.")
        else:
            errors["new_client"] = [str(_("Expected an object"))]

    rows = data.get("items") or []
    if not isinstance(rows, list):
        errors["items"] = [str(_("Expected a list of items"))]
        rows = []

    item_forms = []
    for index, row in enumerate(rows):
        if not isinstance(row, dict):
            errors[f"items.{index}"] = [str(_("Expected an object"))]
            continue
        if _is_blank_row(row):
            continue
        item_form = LineItemForm(row)
        _add_errors(errors, item_form, f"items.{index}.")
        item_forms.append(item_form)

    _raise_if_errors(errors)

    cleaned = header.cleaned_data
    if not cleaned.get("client_id") and client_form is None:
        raise NoClientError()
    if not item_forms:
        raise EmptyItemsError()

    return DocumentInput(
        client_id=cleaned.get("client_id"),
        new_client=dict(client_form.cleaned_data) if client_form is not None else None,
        issue_date=cleaned["issue_date"],
        due_date=cleaned.get("due_date"),
        expiry_date=cleaned.get("expiry_date"),
        origin_quote_id=cleaned.get("origin_quote_id"),
        currency_code=cleaned["currency_code"],
        exchange_rate=cleaned.get("exchange_rate"),
        items=tuple(form.to_input() for form in item_forms),
        notes=cleaned["notes"],
        terms=cleaned["terms"],
        internal_notes=cleaned["internal_notes"],
        status=cleaned.get("status") or INITIAL_STATUSES[0],
    )


def clean_payment_input(data: dict) -> PaymentInput:
    """Validate raw payment data.

    Raises:
        DocumentValidationError: If any field is invalid
    """
    _require_mapping(data)
    form = PaymentForm(data)
    errors = {}
    _add_errors(errors, form)
    _raise_if_errors(errors)

    cleaned = form.cleaned_data
    return PaymentInput(
        amount=cleaned["amount"],
        method=cleaned["method"],
        paid_at=cleaned["paid_at"],
        note=cleaned["note"],
    )
