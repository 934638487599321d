"""Management command to retry pending invoicing outbox events."""

from django.core.management.base import BaseCommand

from django_invoicing.conf import get_setting
from django_invoicing.models import OutboxEvent
from django_invoicing.outbox import pending_events, process_pending_events


class Command(BaseCommand):
    help = 'Process pending and failed invoicing outbox events'

    def add_arguments(self, parser):
        parser.add_argument(
            '--max-attempts',
            type=int,
            default=None,
            help='Skip events that already failed this many times (default: INVOICING_OUTBOX_MAX_ATTEMPTS)'
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show count of events that would be processed without processing them'
        )

    def handle(self, *args, **options):
        max_attempts = options['max_attempts'] or get_setting('OUTBOX_MAX_ATTEMPTS')
        qs = pending_events(max_attempts)

        if options['dry_run']:
            self.stdout.write(f'Would process {qs.count()} outbox events')
            for state in (OutboxEvent.State.PENDING, OutboxEvent.State.FAILED):
                state_count = qs.filter(state=state).count()
                if state_count > 0:
                    self.stdout.write(f'  - {state.label}: {state_count}')
            return

        succeeded, failed = process_pending_events(max_attempts)
        self.stdout.write(
            self.style.SUCCESS(f'Processed {succeeded + failed} outbox events: {succeeded} succeeded, {failed} failed')
        )
