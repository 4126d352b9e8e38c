import math

MAX_PAGE_SIZE = 100


def page_window(page, page_size, default_size: int = 10) -> tuple[int, int, int, int]:
    """Return ``(page, page_size, start, end)`` with both values clamped."""
    page = max(1, int(page or 1))
    page_size = min(MAX_PAGE_SIZE, max(1, int(page_size or default_size)))
    start = (page - 1) * page_size
    return page, page_size, start, start + page_size


def pagination_meta(page: int, page_size: int, total: int) -> dict:
    total_pages = math.ceil(total / page_size) if page_size else 0
    return {
        'page': page,
        'pageSize': page_size,
        'total': total,
        'totalPages': total_pages,
        'hasNext': page < total_pages,
        'hasPrev': page > 1,
    }
