"""Tests for change notifications and cache invalidation."""

import pytest
from django.core.cache import cache
from django.db import DatabaseError

from django_invoicing import api, invalidation, services
from django_invoicing.conversion import convert_quote_to_invoice
from django_invoicing.invalidation import (
    DocumentChange,
    connect_default_receivers,
    document_cache_key,
    document_changed,
    document_list_cache_key,
    invalidate_cached_documents,
)
from django_invoicing.models import Invoice
from django_invoicing.payments import apply_payment, remove_payment
from django_invoicing.selectors import document_status_counts, get_document_summary


@pytest.fixture
def changes():
    """Collect every DocumentChange sent while the test runs."""
    received = []

    def receiver(sender, change, **kwargs):
        received.append(change)

    document_changed.connect(receiver, dispatch_uid="test-collector")
    yield received
    document_changed.disconnect(dispatch_uid="test-collector")


@pytest.mark.django_db
class TestDocumentChanged:
    """One signal per successful mutation, after commit."""

    def test_create_sends_once_on_commit(self, org_id, make_invoice, changes, django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=False) as callbacks:
            invoice = make_invoice()
        assert changes == []

        for callback in callbacks:
            callback()

        assert changes == [DocumentChange(org_id, "invoice", str(invoice.pk), "created")]

    def test_failed_mutation_sends_nothing(self, org_id, document_data, changes, monkeypatch,
                                           django_capture_on_commit_callbacks):
        def fail(*args, **kwargs):
            raise DatabaseError("boom")

        monkeypatch.setattr(services, "_insert_items", fail)

        with django_capture_on_commit_callbacks(execute=True) as callbacks:
            with pytest.raises(DatabaseError):
                services.create_document(org_id, "invoice", document_data())

        assert callbacks == []
        assert changes == []

    def test_noop_status_change_sends_nothing(self, org_id, make_invoice, changes,
                                              django_capture_on_commit_callbacks):
        invoice = make_invoice()

        with django_capture_on_commit_callbacks(execute=True):
            services.change_status(org_id, "invoice", invoice.pk, "draft")

        assert changes == []

    def test_each_operation_sends_one_change(self, org_id, make_invoice, payment_data, changes,
                                             django_capture_on_commit_callbacks):
        with django_capture_on_commit_callbacks(execute=True):
            invoice = make_invoice()
            services.change_status(org_id, "invoice", invoice.pk, "sent")
            outcome = apply_payment(org_id, invoice.pk, payment_data("100"))
            remove_payment(org_id, outcome.payment.pk)

        assert [change.action for change in changes] == [
            "created", "status_changed", "payment_applied", "payment_removed",
        ]

    def test_conversion_names_the_quote(self, org_id, make_quote, changes, django_capture_on_commit_callbacks):
        quote = make_quote(status="sent")

        with django_capture_on_commit_callbacks(execute=True):
            invoice = convert_quote_to_invoice(org_id, quote.pk)

        assert len(changes) == 1
        assert changes[0].document_id == str(invoice.pk)
        assert changes[0].related == (("quote", str(quote.pk)),)


@pytest.mark.django_db
class TestCacheInvalidation:
    """The default receiver drops cached projections."""

    def test_change_deletes_detail_and_list_keys(self, org_id):
        cache.set(document_cache_key(org_id, "invoice", "abc"), "stale")
        cache.set(document_list_cache_key(org_id, "invoice"), "stale")
        cache.set(document_list_cache_key(org_id, "quote"), "kept")

        invalidate_cached_documents(DocumentChange, DocumentChange(org_id, "invoice", "abc", "updated"))

        assert cache.get(document_cache_key(org_id, "invoice", "abc")) is None
        assert cache.get(document_list_cache_key(org_id, "invoice")) is None
        assert cache.get(document_list_cache_key(org_id, "quote")) == "kept"

    def test_related_keys_are_deleted(self, org_id):
        cache.set(document_cache_key(org_id, "quote", "q1"), "stale")

        invalidate_cached_documents(
            DocumentChange,
            DocumentChange(org_id, "invoice", "i1", "converted", related=(("quote", "q1"),)),
        )

        assert cache.get(document_cache_key(org_id, "quote", "q1")) is None

    def test_cached_summary_refreshes_after_status_change(self, org_id, make_invoice,
                                                          django_capture_on_commit_callbacks):
        connect_default_receivers()
        invoice = make_invoice()
        assert get_document_summary(org_id, "invoice", invoice.pk)["status"] == "draft"
        assert document_status_counts(org_id, "invoice")["draft"] == 1

        with django_capture_on_commit_callbacks(execute=True):
            services.change_status(org_id, "invoice", invoice.pk, "sent")

        assert get_document_summary(org_id, "invoice", invoice.pk)["status"] == "sent"
        assert document_status_counts(org_id, "invoice")["sent"] == 1


class UnreachableCache:
    def delete_many(self, keys):
        raise ConnectionError("cache unreachable")


@pytest.mark.django_db(transaction=True)
class TestReceiverFailures:
    """A receiver failing after commit leaves the committed write and its result intact."""

    @pytest.fixture(autouse=True)
    def unreachable_cache(self, monkeypatch):
        connect_default_receivers()
        monkeypatch.setattr(invalidation, "cache", UnreachableCache())

    def test_api_result_survives_cache_failure(self, org_id, document_data, changes, caplog):
        result = api.create_document(org_id, "invoice", document_data())

        assert result.success is True
        assert Invoice.objects.filter(pk=result.data["id"]).count() == 1
        assert "cache unreachable" in caplog.text

    def test_other_receivers_still_notified(self, org_id, make_invoice, changes):
        invoice = make_invoice()

        assert [change.document_id for change in changes] == [str(invoice.pk)]
