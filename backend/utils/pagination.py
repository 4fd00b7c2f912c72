"""Page/limit handling for list endpoints"""
import math
from typing import Any, NamedTuple, Optional

DEFAULT_PAGE = 1
DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100
# largest skip MongoDB accepts (signed 64-bit)
MAX_SKIP = 2**63 - 1


class Pagination(NamedTuple):
    page: int
    limit: int
    skip: int


def _positive_int(val: Any, default: int) -> int:
    """Parse a query value; anything non-numeric or below 1 falls back to default"""
    try:
        num = int(str(val).strip())
    except (ValueError, TypeError):
        return default
    return num if num >= 1 else default


def parse_pagination(page: Optional[Any] = None, limit: Optional[Any] = None) -> Pagination:
    page_num = _positive_int(page, DEFAULT_PAGE)
    page_limit = min(_positive_int(limit, DEFAULT_PAGE_LIMIT), MAX_PAGE_LIMIT)
    page_num = min(page_num, MAX_SKIP // page_limit + 1)
    return Pagination(page=page_num, limit=page_limit, skip=(page_num - 1) * page_limit)


def total_pages(total: int, limit: int) -> int:
    if total <= 0 or limit <= 0:
        return 0
    return math.ceil(total / limit)


def build_pagination_meta(pagination: Pagination, total: int) -> dict:
    pages = total_pages(total, pagination.limit)
    return {
        "currentPage": pagination.page,
        "totalPages": pages,
        "totalRecords": total,
        "hasNextPage": pagination.page < pages,
        "hasPrevPage": pagination.page > 1,
        "limit": pagination.limit,
    }
