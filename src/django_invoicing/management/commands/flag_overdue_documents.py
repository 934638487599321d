"""Management command to flag overdue invoices and expired quotes."""

from datetime import date

from django.core.management.base import BaseCommand, CommandError
from django.utils import timezone

from django_invoicing.models import Invoice, Quote
from django_invoicing.services import change_status
from django_invoicing.status import DocumentKind, InvoiceStatus, QuoteStatus


class Command(BaseCommand):
    help = 'Move invoices past their due date to overdue and quotes past their expiry date to expired'

    def add_arguments(self, parser):
        parser.add_argument(
            '--date',
            help='Reference date as YYYY-MM-DD (default: today)'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would change without saving'
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        if options['date']:
            try:
                today = date.fromisoformat(options['date'])
            except ValueError:
                raise CommandError(f"Invalid --date '{options['date']}', expected YYYY-MM-DD")
        else:
            today = timezone.localdate()

        invoices = Invoice.objects.filter(
            status__in=[InvoiceStatus.SENT, InvoiceStatus.PARTIAL],
            due_date__lt=today,
        )
        quotes = Quote.objects.filter(
            status__in=[QuoteStatus.DRAFT, QuoteStatus.SENT],
            expiry_date__lt=today,
        )

        if dry_run:
            self.stdout.write(f'Would flag {invoices.count()} invoices as overdue')
            self.stdout.write(f'Would flag {quotes.count()} quotes as expired')
            return

        flagged_invoices = 0
        for invoice in invoices:
            change_status(invoice.organization_id, DocumentKind.INVOICE, invoice.pk, InvoiceStatus.OVERDUE)
            flagged_invoices += 1

        flagged_quotes = 0
        for quote in quotes:
            change_status(quote.organization_id, DocumentKind.QUOTE, quote.pk, QuoteStatus.EXPIRED)
            flagged_quotes += 1

        self.stdout.write(
            self.style.SUCCESS(
                f'Flagged {flagged_invoices} invoices as overdue and {flagged_quotes} quotes as expired'
            )
        )
