from django.conf import settings
from django.core.cache import cache
from django.core.management.base import BaseCommand
from django.utils import timezone
from channels.layers import get_channel_layer
from asgiref.sync import async_to_sync

from wards.services.notify import STATS_CACHE_KEY, UPDATES_GROUP
from wards.services.stats import compute_occupancy_stats


class Command(BaseCommand):
    help = "Recompute the cached occupancy stats and tell dashboards to refresh."

    def handle(self, *args, **options):
        now = timezone.now()
        stats = compute_occupancy_stats()
        cache.set(STATS_CACHE_KEY, stats, settings.OCCUPANCY_STATS_TTL)

        channel_layer = get_channel_layer()
        if channel_layer is not None:
            event = {"type": "beds.changed", "action": "refresh", "bedIds": [], "occupancyId": None, "ts": now.isoformat()}
            async_to_sync(channel_layer.group_send)(UPDATES_GROUP, event)

        self.stdout.write(self.style.SUCCESS(
            f"Occupancy stats refreshed at {now}: {stats['occupiedBeds']}/{stats['totalBeds']} beds occupied"
        ))
