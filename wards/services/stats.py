from django.conf import settings
from django.core.cache import cache
from django.db.models import Count, Q

from wards.models import Bed, BedOccupancy
from wards.services.access import require_access
from wards.services.notify import STATS_CACHE_KEY


def compute_occupancy_stats() -> dict:
    beds = Bed.objects.filter(is_active=True).aggregate(
        totalBeds=Count('id'),
        occupiedBeds=Count('id', filter=Q(status=Bed.STATUS_OCCUPIED)),
        availableBeds=Count('id', filter=Q(status=Bed.STATUS_AVAILABLE)),
        maintenanceBeds=Count('id', filter=Q(status=Bed.STATUS_MAINTENANCE)),
        reservedBeds=Count('id', filter=Q(status=Bed.STATUS_RESERVED)),
    )
    admissions = BedOccupancy.objects.filter(status=BedOccupancy.STATUS_ACTIVE).aggregate(
        currentAdmissions=Count('id'),
        totalPatients=Count('patient', distinct=True),
    )
    return {**beds, **admissions}


def get_occupancy_stats(ctx) -> dict:
    """Dashboard counts; may lag a mutation by ``OCCUPANCY_STATS_TTL`` seconds at most."""
    require_access(ctx)
    cached = cache.get(STATS_CACHE_KEY)
    if cached is not None:
        return cached
    stats = compute_occupancy_stats()
    cache.set(STATS_CACHE_KEY, stats, settings.OCCUPANCY_STATS_TTL)
    return stats
