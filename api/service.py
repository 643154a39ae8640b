"""
Book catalog service: cached, de-duplicated search plus catalog pass-throughs.
"""

import asyncio
import functools
from typing import Dict, List, Optional

import structlog
from pydantic import ValidationError

from api.cache import CacheManager
from api.database import APIDatabaseService
from api.models import (
    BookResponse, CachedSearchPage, CommentCreate, CommentResponse,
    ResultSource, SearchBooksInput, SearchBooksResult
)
from api.search import build_pagination, build_search_fingerprint

logger = structlog.get_logger(__name__)


class BooksService:
    """
    Search pipeline over the database and the result cache.

    Concurrent searches with the same fingerprint share one in-flight task:
    one cache lookup and, on a miss, one database query and one cache write.
    """

    def __init__(self, db_service: APIDatabaseService, cache: Optional[CacheManager] = None):
        self.db_service = db_service
        self.cache = cache
        self._in_flight: Dict[str, asyncio.Task] = {}

    @property
    def in_flight_count(self) -> int:
        """Number of searches currently being executed."""
        return len(self._in_flight)

    async def search(self, search_input: SearchBooksInput) -> SearchBooksResult:
        """
        Search books, serving from cache when possible.

        Args:
            search_input: Query text, filters and pagination

        Returns:
            SearchBooksResult for the requested page
        """
        cache_key = build_search_fingerprint(search_input)

        task = self._in_flight.get(cache_key)
        if task is not None:
            logger.debug("Joining in-flight search", cache_key=cache_key[:64])
        else:
            task = asyncio.ensure_future(self._execute_search(cache_key, search_input))
            self._in_flight[cache_key] = task
            task.add_done_callback(functools.partial(self._forget, cache_key))

        return await asyncio.shield(task)

    def _forget(self, cache_key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(cache_key) is task:
            del self._in_flight[cache_key]

        # Mark the failure retrieved even when every waiter was cancelled
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Search failed", cache_key=cache_key[:64], error=str(task.exception()))

    def _read_cached_page(self, cache_key: str, cached: Optional[dict]) -> Optional[CachedSearchPage]:
        """Validate a cached value; malformed entries count as a miss."""
        if cached is None:
            return None
        try:
            return CachedSearchPage.model_validate(cached)
        except ValidationError as e:
            logger.warning("Ignoring malformed cached search page", cache_key=cache_key[:64], error=str(e))
            return None

    async def _execute_search(self, cache_key: str, search_input: SearchBooksInput) -> SearchBooksResult:
        """Run one cache lookup and, on a miss, one database query."""
        cached = await self.cache.get(cache_key) if self.cache else None
        page = self._read_cached_page(cache_key, cached)

        if page is not None:
            source = ResultSource.CACHE
            logger.info("Search served from cache", cache_key=cache_key[:64], total=page.total)
        else:
            books, total = await self.db_service.search_books(search_input)
            page = CachedSearchPage(books=books, total=total)
            source = ResultSource.DATABASE

            if self.cache:
                await self.cache.set(cache_key, page.model_dump(mode="json"))

            logger.info("Search served from database", cache_key=cache_key[:64], total=total)

        return SearchBooksResult(
            books=page.books,
            pagination=build_pagination(search_input.page, search_input.limit, page.total),
            source=source,
            cache_key=cache_key,
        )

    async def find_all(self) -> List[BookResponse]:
        """Get every book."""
        return await self.db_service.get_books()

    async def find_one(self, book_id: str) -> Optional[BookResponse]:
        """Get a book by ID."""
        return await self.db_service.get_book_by_id(book_id)

    async def create_comment(self, book_id: str, content: str, rating: int = 1) -> CommentResponse:
        """
        Add a comment to a book.

        Raises:
            ValueError: If the book does not exist or the payload is invalid
        """
        comment = CommentCreate(book_id=book_id, content=content, rating=rating)
        return await self.db_service.create_comment(comment)
