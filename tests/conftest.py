import uuid
from datetime import date

import django
import pytest
from django.conf import settings


def pytest_configure():
    if not settings.configured:
        settings.configure(
            DEBUG=True,
            DATABASES={
                "default": {
                    "ENGINE": "django.db.backends.sqlite3",
                    "NAME": ":memory:",
                }
            },
            INSTALLED_APPS=[
                "django.contrib.contenttypes",
                "django.contrib.auth",
                "django.contrib.sessions",
                "django.contrib.messages",
                "django.contrib.admin",
                "django_invoicing",
            ],
            CACHES={
                "default": {
                    "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
                }
            },
            DEFAULT_AUTO_FIELD="django.db.models.BigAutoField",
            USE_TZ=True,
            TIME_ZONE="UTC",
            SECRET_KEY="test-secret-key-for-invoicing",
        )
    django.setup()


@pytest.fixture(autouse=True)
def clear_cache():
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def org_id():
    return "org-" + uuid.uuid4().hex[:8]


@pytest.fixture
def other_org_id():
    return "org-" + uuid.uuid4().hex[:8]


@pytest.fixture
def client_obj(db, org_id):
    """An existing client of the test organization."""
    from django_invoicing.models import Client
    return Client.objects.create(organization_id=org_id, name="Awa Traoré", email="awa@example.com")


@pytest.fixture
def document_data(client_obj):
    """Build valid raw document input; keyword arguments override fields."""

    def build(**overrides):
        data = {
            "client_id": str(client_obj.pk),
            "issue_date": "2026-03-01",
            "currency_code": "XOF",
            "items": [
                {"name": "Consulting", "quantity": "10", "unit_price": "50000", "tax_rate": "18"},
            ],
        }
        data.update(overrides)
        return data

    return build


@pytest.fixture
def make_invoice(org_id, document_data):
    """Create an invoice through the service; keyword arguments override input fields."""
    from django_invoicing.services import create_document

    def make(**overrides):
        return create_document(org_id, "invoice", document_data(**overrides))

    return make


@pytest.fixture
def make_quote(org_id, document_data):
    """Create a quote through the service; keyword arguments override input fields."""
    from django_invoicing.services import create_document

    def make(**overrides):
        return create_document(org_id, "quote", document_data(**overrides))

    return make


@pytest.fixture
def payment_data():
    def build(amount, **overrides):
        data = {
            "amount": str(amount),
            "method": "cash",
            "paid_at": date(2026, 3, 15).isoformat(),
        }
        data.update(overrides)
        return data

    return build


@pytest.fixture
def set_status():
    """Force a document's stored status, bypassing the transition table."""

    def apply(document, status):
        type(document).objects.filter(pk=document.pk).update(status=status)
        document.refresh_from_db()
        return document

    return apply

