"""
Search fingerprinting and pagination assembly.

A search fingerprint is the string key addressing both the result cache and
the in-flight request map. Two requests share a fingerprint exactly when the
database would run the same query for them.
"""

import json
import math

import structlog

from api.models import PaginationInfo, SearchBooksInput

logger = structlog.get_logger(__name__)

SEARCH_KEY_PREFIX = "search"


def build_search_fingerprint(search_input: SearchBooksInput) -> str:
    """
    Derive the cache key for a search request.

    Args:
        search_input: Validated search request

    Returns:
        Key of the form ``search:<query>:<filters-json>:<page>:<limit>``
    """
    filters = search_input.filters.effective() if search_input.filters else {}
    filters_json = json.dumps(filters, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    fingerprint = f"{SEARCH_KEY_PREFIX}:{search_input.query}:{filters_json}:{search_input.page}:{search_input.limit}"

    logger.debug("Generated search fingerprint", fingerprint=fingerprint[:64])
    return fingerprint


def build_pagination(page: int, limit: int, total: int) -> PaginationInfo:
    """
    Assemble pagination metadata for a result page.

    Args:
        page: Requested page (1-based)
        limit: Page size
        total: Total number of matching items

    Returns:
        PaginationInfo for the page
    """
    last_page = math.ceil(total / limit)
    return PaginationInfo(
        page=page,
        limit=limit,
        offset=(page - 1) * limit,
        total=total,
        last_page=last_page,
        has_next_page=page < last_page,
        has_previous_page=page > 1,
    )
