from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from core.services.audit import cleanup


class Command(BaseCommand):
    help = "Delete audit rows older than the retention window (default AUDIT_RETENTION_DAYS)."

    def add_arguments(self, parser):
        parser.add_argument("--days", type=int, default=None)

    def handle(self, *args, **opts):
        days = opts["days"] if opts["days"] is not None else int(getattr(settings, "AUDIT_RETENTION_DAYS", 365))
        if days < 1:
            raise CommandError("--days must be at least 1")
        deleted = cleanup(days)
        self.stdout.write(self.style.SUCCESS(f"Deleted {deleted} audit rows older than {days} days"))
