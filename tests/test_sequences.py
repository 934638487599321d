"""Tests for document numbering."""

from datetime import date

import pytest
from django.db.models.query import QuerySet
from freezegun import freeze_time

from django_invoicing.models import DocumentSequence, Invoice
from django_invoicing.sequences import next_document_number


@pytest.mark.django_db
class TestNextDocumentNumber:
    """Test suite for next_document_number."""

    @freeze_time("2026-05-10")
    def test_sequential_per_kind(self, org_id):
        assert next_document_number(org_id, "invoice") == "FAC-2026-0001"
        assert next_document_number(org_id, "invoice") == "FAC-2026-0002"
        assert next_document_number(org_id, "quote") == "DEV-2026-0001"

    def test_scoped_per_organization(self, org_id, other_org_id):
        assert next_document_number(org_id, "invoice", 2026) == "FAC-2026-0001"
        assert next_document_number(other_org_id, "invoice", 2026) == "FAC-2026-0001"

    def test_restarts_each_year(self, org_id):
        with freeze_time("2025-12-31"):
            next_document_number(org_id, "invoice")
            assert next_document_number(org_id, "invoice") == "FAC-2025-0002"
        with freeze_time("2026-01-01"):
            assert next_document_number(org_id, "invoice") == "FAC-2026-0001"

    def test_counter_row_tracks_value(self, org_id):
        next_document_number(org_id, "quote", 2026)
        next_document_number(org_id, "quote", 2026)

        seq = DocumentSequence.objects.get(organization_id=org_id, kind="quote", year=2026)
        assert seq.current_value == 2
        assert seq.formatted_value == "DEV-2026-0002"

    def test_new_counter_seeded_from_existing_numbers(self, org_id):
        Invoice.objects.create(organization_id=org_id, number="FAC-2026-0041", issue_date=date(2026, 1, 5))
        Invoice.objects.create(organization_id=org_id, number="FAC-2025-0099", issue_date=date(2025, 1, 5))

        assert next_document_number(org_id, "invoice", 2026) == "FAC-2026-0042"

    def test_custom_prefix_and_width(self, org_id, settings):
        settings.INVOICING_NUMBER_PREFIXES = {"invoice": "INV"}
        settings.INVOICING_NUMBER_PAD_WIDTH = 6

        assert next_document_number(org_id, "invoice", 2026) == "INV-2026-000001"
        assert next_document_number(org_id, "quote", 2026) == "DEV-2026-000001"

    def test_grows_past_pad_width(self, org_id):
        DocumentSequence.objects.create(
            organization_id=org_id, kind="invoice", year=2026, prefix="FAC", current_value=9999,
        )

        assert next_document_number(org_id, "invoice", 2026) == "FAC-2026-10000"

    def test_counter_created_concurrently_is_reused(self, org_id, monkeypatch):
        # Another request creates the row between our lookup and our insert.
        DocumentSequence.objects.create(
            organization_id=org_id, kind="invoice", year=2026, prefix="FAC", current_value=4,
        )
        real_get = QuerySet.get
        missed = []

        def get_missing_once(queryset, *args, **kwargs):
            if queryset.model is DocumentSequence and not missed:
                missed.append(True)
                raise DocumentSequence.DoesNotExist
            return real_get(queryset, *args, **kwargs)

        monkeypatch.setattr(QuerySet, "get", get_missing_once)

        assert next_document_number(org_id, "invoice", 2026) == "FAC-2026-0005"
        assert missed == [True]
        assert DocumentSequence.objects.filter(organization_id=org_id, kind="invoice").count() == 1
