# apps/payments/management/commands/reconcile_payments.py

from django.core.management.base import BaseCommand

from apps.payments.services import reconcile_pending_payments


class Command(BaseCommand):
    help = "Check pending payments against the gateway and settle them"

    def add_arguments(self, parser):
        parser.add_argument(
            "--older-than-minutes",
            type=int,
            default=None,
            help="Only check payments created more than this many minutes ago",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report what the gateway says without changing any payment",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        summary = reconcile_pending_payments(
            older_than_minutes=options["older_than_minutes"], dry_run=dry_run
        )

        prefix = "DRY RUN: " if dry_run else ""
        for key in ("completed", "failed", "pending", "errors"):
            payment_ids = summary[key]
            self.stdout.write(f"{prefix}{key}: {len(payment_ids)}")
            for payment_id in payment_ids:
                self.stdout.write(f"  {payment_id}")

        if summary["errors"]:
            self.stdout.write(
                self.style.WARNING(f"{len(summary['errors'])} payments could not be checked")
            )
        self.stdout.write(self.style.SUCCESS("Payment reconciliation finished"))
