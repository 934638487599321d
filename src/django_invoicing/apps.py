"""Django app configuration for django-invoicing."""

from django.apps import AppConfig


class DjangoInvoicingConfig(AppConfig):
    """App configuration for django-invoicing."""

    name = "django_invoicing"
    verbose_name = "Invoicing"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        from django_invoicing import invalidation

        invalidation.connect_default_receivers()
