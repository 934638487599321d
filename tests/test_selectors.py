"""Tests for read projections."""

import uuid
from decimal import Decimal

import pytest

from django_invoicing.conversion import convert_quote_to_invoice
from django_invoicing.exceptions import DocumentNotFoundError
from django_invoicing.models import Client
from django_invoicing.payments import apply_payment
from django_invoicing.selectors import (
    convertible_quotes,
    document_status_counts,
    get_document,
    get_document_summary,
    get_invoice_balance,
    list_documents,
)


@pytest.mark.django_db
class TestGetDocument:

    def test_items_in_position_order(self, org_id, make_invoice):
        invoice = make_invoice(items=[
            {"name": "B", "quantity": "1", "unit_price": "1"},
            {"name": "A", "quantity": "1", "unit_price": "1"},
        ])

        document = get_document(org_id, "invoice", invoice.pk)

        assert [item.name for item in document.items.all()] == ["B", "A"]

    def test_scoped_to_organization(self, other_org_id, make_invoice):
        invoice = make_invoice()

        with pytest.raises(DocumentNotFoundError):
            get_document(other_org_id, "invoice", invoice.pk)


@pytest.mark.django_db
class TestListDocuments:
    """Test suite for list_documents."""

    @pytest.fixture
    def invoices(self, org_id, make_invoice):
        other_client = Client.objects.create(organization_id=org_id, name="Société Bamba")
        return [
            make_invoice(),
            make_invoice(status="sent"),
            make_invoice(client_id=str(other_client.pk), status="sent"),
        ]

    def test_filters_by_status(self, org_id, invoices):
        page = list_documents(org_id, "invoice", status="sent")

        assert page.total_count == 2

    def test_search_by_client_name(self, org_id, invoices):
        page = list_documents(org_id, "invoice", search="bamba")

        assert [doc.pk for doc in page.items] == [invoices[2].pk]

    def test_search_by_number(self, org_id, invoices):
        page = list_documents(org_id, "invoice", search=invoices[0].number)

        assert page.items == [invoices[0]]

    def test_paginates(self, org_id, invoices):
        first = list_documents(org_id, "invoice", page=1, page_size=2)
        second = list_documents(org_id, "invoice", page=2, page_size=2)

        assert len(first.items) == 2
        assert first.has_next
        assert len(second.items) == 1
        assert second.num_pages == 2

    def test_out_of_range_page_is_clamped(self, org_id, invoices):
        assert list_documents(org_id, "invoice", page=99).page == 1

    def test_other_org_sees_nothing(self, other_org_id, invoices):
        assert list_documents(other_org_id, "invoice").total_count == 0


@pytest.mark.django_db
class TestBalanceAndSummaries:

    def test_invoice_balance(self, org_id, make_invoice, payment_data):
        invoice = make_invoice(status="sent")
        apply_payment(org_id, invoice.pk, payment_data("90000"))

        balance = get_invoice_balance(org_id, invoice.pk)

        assert balance.total.amount == Decimal("590000.00")
        assert balance.paid.amount == Decimal("90000.00")
        assert balance.remaining.amount == Decimal("500000.00")

    def test_summary_includes_display_and_balance(self, org_id, make_invoice):
        invoice = make_invoice(status="sent")

        summary = get_document_summary(org_id, "invoice", invoice.pk)

        assert summary["number"] == invoice.number
        assert summary["status_tone"] == "info"
        assert summary["remaining"] == Decimal("590000.00")

    def test_summary_unknown_document(self, org_id):
        with pytest.raises(DocumentNotFoundError):
            get_document_summary(org_id, "quote", uuid.uuid4())

    def test_status_counts_include_every_status(self, org_id, make_quote):
        make_quote()
        make_quote(status="sent")

        counts = document_status_counts(org_id, "quote")

        assert counts == {"draft": 1, "sent": 1, "accepted": 0, "rejected": 0, "expired": 0}


@pytest.mark.django_db
class TestConvertibleQuotes:

    def test_only_unconverted_sent_or_accepted(self, org_id, make_quote, set_status):
        draft = make_quote()
        sent = make_quote(status="sent")
        accepted = set_status(make_quote(), "accepted")
        converted = make_quote(status="sent")
        convert_quote_to_invoice(org_id, converted.pk)

        pks = {quote.pk for quote in convertible_quotes(org_id)}

        assert pks == {sent.pk, accepted.pk}
        assert draft.pk not in pks

    def test_limit(self, org_id, make_quote):
        for _ in range(3):
            make_quote(status="sent")

        assert len(convertible_quotes(org_id, limit=2)) == 2
