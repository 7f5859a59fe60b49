from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand

from earnings.services import SettlementOrchestrator
from payments.reconciliation import ReconciliationService

User = get_user_model()


class Command(BaseCommand):
    help = "Resolves payments stuck in flight by re-issuing their processor calls. Optionally retries pending settlements."

    def add_arguments(self, parser):
        parser.add_argument('--older-than', type=int, default=None,
                            help='Only resume payments untouched for this many minutes')
        parser.add_argument('--retry-settlements', action='store_true',
                            help='Also retry settlement of pending earnings')
        parser.add_argument('--email', type=str, help='Limit settlement retries to the worker with this email')

    def handle(self, *args, **options):
        older_than = options['older_than']
        summary = ReconciliationService().sweep_ambiguous(
            older_than=timedelta(minutes=older_than) if older_than is not None else None,
        )
        self.stdout.write(self.style.SUCCESS(
            f"Checked {summary['checked']} in-flight payments, resolved {summary['resolved']}."
        ))

        if not options['retry_settlements']:
            return

        worker_id = None
        email = options['email']
        if email:
            try:
                worker_id = User.objects.get(email=email).id
            except User.DoesNotExist:
                self.stdout.write(self.style.ERROR(f"User with email {email} does not exist."))
                return

        results = SettlementOrchestrator().retry_pending_settlements(worker_id=worker_id)
        settled = sum(1 for res in results if res.is_settled)
        self.stdout.write(self.style.SUCCESS(f"Retried {len(results)} pending settlements, {settled} settled."))
