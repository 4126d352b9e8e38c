import pytest
from django.core.cache import cache


@pytest.fixture(autouse=True)
def _clear_cache():
    # stats and throttle counters live in the locmem cache
    cache.clear()
    yield
    cache.clear()
