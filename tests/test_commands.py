"""Tests for the invoicing management commands."""

from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from django_invoicing.models import Invoice, OutboxEvent, Quote


@pytest.mark.django_db
class TestFlagOverdueDocumentsCommand:
    """Test suite for flag_overdue_documents command."""

    def test_flags_past_due_invoices(self, make_invoice):
        late = make_invoice(status="sent", due_date="2026-03-31")
        on_time = make_invoice(status="sent", due_date="2026-04-30")
        draft = make_invoice(due_date="2026-03-31")

        out = StringIO()
        call_command('flag_overdue_documents', '--date=2026-04-15', stdout=out)

        assert Invoice.objects.get(pk=late.pk).status == "overdue"
        assert Invoice.objects.get(pk=on_time.pk).status == "sent"
        assert Invoice.objects.get(pk=draft.pk).status == "draft"
        assert "Flagged 1 invoices as overdue" in out.getvalue()

    def test_flags_partial_invoices(self, make_invoice, set_status):
        partial = set_status(make_invoice(due_date="2026-03-31"), "partial")

        call_command('flag_overdue_documents', '--date=2026-04-15', stdout=StringIO())

        assert Invoice.objects.get(pk=partial.pk).status == "overdue"

    def test_expires_past_quotes(self, make_quote, set_status):
        draft = make_quote(expiry_date="2026-03-31")
        sent = make_quote(status="sent", expiry_date="2026-03-31")
        rejected = set_status(make_quote(expiry_date="2026-03-31"), "rejected")

        call_command('flag_overdue_documents', '--date=2026-04-15', stdout=StringIO())

        assert Quote.objects.get(pk=draft.pk).status == "expired"
        assert Quote.objects.get(pk=sent.pk).status == "expired"
        assert Quote.objects.get(pk=rejected.pk).status == "rejected"

    def test_dry_run_does_not_change(self, make_invoice):
        late = make_invoice(status="sent", due_date="2026-03-31")

        out = StringIO()
        call_command('flag_overdue_documents', '--date=2026-04-15', '--dry-run', stdout=out)

        assert Invoice.objects.get(pk=late.pk).status == "sent"
        assert "Would flag 1 invoices as overdue" in out.getvalue()

    def test_invalid_date(self):
        with pytest.raises(CommandError):
            call_command('flag_overdue_documents', '--date=15/04/2026', stdout=StringIO())


@pytest.mark.django_db
class TestProcessInvoicingOutboxCommand:
    """Test suite for process_invoicing_outbox command."""

    def test_processes_pending_events(self, org_id, make_quote):
        quote = make_quote(status="sent")
        OutboxEvent.objects.create(
            organization_id=org_id,
            action=OutboxEvent.Action.ACCEPT_ORIGIN_QUOTE,
            payload={"quote_id": str(quote.pk)},
        )

        out = StringIO()
        call_command('process_invoicing_outbox', stdout=out)

        assert Quote.objects.get(pk=quote.pk).status == "accepted"
        assert "1 succeeded, 0 failed" in out.getvalue()

    def test_dry_run_shows_breakdown(self, org_id):
        OutboxEvent.objects.create(
            organization_id=org_id,
            action=OutboxEvent.Action.ACCEPT_ORIGIN_QUOTE,
            payload={"quote_id": "6f1c1f7e-4f39-4a8e-9a55-1f0d3c2b7a11"},
            state=OutboxEvent.State.FAILED,
            attempts=1,
        )

        out = StringIO()
        call_command('process_invoicing_outbox', '--dry-run', stdout=out)

        output = out.getvalue()
        assert "Would process 1 outbox events" in output
        assert "Failed: 1" in output
        assert OutboxEvent.objects.get().attempts == 1
