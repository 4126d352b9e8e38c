"""
Post-commit side effects of bed and occupancy mutations.

Cached dashboard stats are dropped and connected dashboards are told
which beds changed.  Both happen only once the surrounding transaction
has committed, so a rolled back allocation never reaches a client.
"""
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.cache import cache
from django.db import transaction
from django.utils import timezone

logger = logging.getLogger(__name__)

STATS_CACHE_KEY = 'occupancy:stats'
UPDATES_GROUP = 'ward-updates'


def _broadcast(event: dict) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return
    async_to_sync(channel_layer.group_send)(UPDATES_GROUP, event)


def beds_changed(action: str, *, bed_ids, occupancy_id=None) -> None:
    bed_ids = [b for b in bed_ids if b is not None]
    cache.delete(STATS_CACHE_KEY)

    def _after_commit():
        # a reader may have re-cached pre-commit numbers in between
        cache.delete(STATS_CACHE_KEY)
        event = {
            'type': 'beds.changed',
            'action': action,
            'bedIds': bed_ids,
            'occupancyId': occupancy_id,
            'ts': timezone.now().isoformat(),
        }
        try:
            _broadcast(event)
        except Exception:
            logger.warning('Could not broadcast %s for beds %s', action, bed_ids, exc_info=True)

    transaction.on_commit(_after_commit)
