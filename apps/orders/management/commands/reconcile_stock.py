# apps/orders/management/commands/reconcile_stock.py

from django.core.management.base import BaseCommand

from apps.orders.services import reconcile_order_stock


class Command(BaseCommand):
    help = "Commit or release stock for orders whose placement was interrupted"

    def add_arguments(self, parser):
        parser.add_argument(
            "--grace-minutes",
            type=int,
            default=None,
            help="Only touch orders older than this many minutes",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be reconciled without changing stock",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        summary = reconcile_order_stock(
            grace_minutes=options["grace_minutes"], dry_run=dry_run
        )

        prefix = "DRY RUN: would have " if dry_run else ""
        for label, key in (
            ("committed stock for", "committed"),
            ("cancelled", "cancelled"),
            ("released stock for", "released"),
            ("skipped", "skipped"),
        ):
            numbers = summary[key]
            self.stdout.write(f"{prefix}{label} {len(numbers)} orders")
            for order_number in numbers:
                self.stdout.write(f"  {order_number}")

        self.stdout.write(self.style.SUCCESS("Stock reconciliation finished"))
