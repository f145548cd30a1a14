"""Management command to expire stale orphan recovery records.

Usage::

    # Expire pending recoveries older than the configured window
    manage.py expire_orphan_recoveries

    # Use a custom cutoff
    manage.py expire_orphan_recoveries --days 14
"""

from typing import TYPE_CHECKING

from django.core.management.base import BaseCommand, CommandError

from boletera.support.services.orphans import OrphanService

if TYPE_CHECKING:
    import argparse


class Command(BaseCommand):
    """Mark pending orphan recoveries past the cutoff as expired."""

    help = "Expire pending orphan ticket recoveries older than the given number of days"

    def add_arguments(self, parser: "argparse.ArgumentParser") -> None:
        """Register command-line arguments."""
        parser.add_argument(
            "--days",
            type=int,
            default=None,
            help="Age in days after which a pending recovery expires (default: orphan_recovery_days).",
        )

    def handle(self, **options: object) -> None:
        """Execute the expiry."""
        days = options["days"]
        if days is not None and days < 1:
            msg = "--days must be a positive number"
            raise CommandError(msg)
        expired = OrphanService.expire_stale(days)
        self.stdout.write(self.style.SUCCESS(f"Expired {expired} orphan recovery record(s)"))
