import logging

from django.core.management.base import BaseCommand
from django.utils import timezone

from core.models import User
from core.realtime.broadcast import broadcast_refresh
from core.services import dashboard

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Warm dashboard caches for every active scope; broadcast WebSocket refresh event."

    def handle(self, *args, **options):
        now = timezone.now()
        users = User.objects.filter(is_active=True).select_related('hospital', 'county')
        keys_refreshed = dashboard.warm(users)
        broadcast_refresh(keys_refreshed)
        logger.info("Refreshed %s dashboard scopes", len(keys_refreshed))
        self.stdout.write(self.style.SUCCESS(f"Refreshed {len(keys_refreshed)} keys at {now}"))
