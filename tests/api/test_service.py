"""
Unit tests for BooksService: caching and in-flight de-duplication.
"""

import asyncio
import gc

import pytest

from api.models import CachedSearchPage, ResultSource, SearchBooksFilters, SearchBooksInput
from api.search import build_search_fingerprint
from api.service import BooksService


class TestBooksServiceSearch:
    """Test cases for BooksService.search."""

    @pytest.fixture
    def service(self, mock_db_service, mock_cache):
        """Create a service with mocked dependencies."""
        return BooksService(mock_db_service, mock_cache)

    @pytest.mark.asyncio
    async def test_cache_miss_queries_database_and_caches(self, service, mock_db_service, mock_cache, sample_book):
        """Test that a miss hits the database once and stores the page."""
        mock_db_service.search_books.return_value = ([sample_book], 1)
        search_input = SearchBooksInput(query="fantasy")

        result = await service.search(search_input)

        mock_cache.get.assert_awaited_once_with(build_search_fingerprint(search_input))
        mock_db_service.search_books.assert_awaited_once_with(search_input)
        mock_cache.set.assert_awaited_once_with(
            build_search_fingerprint(search_input),
            CachedSearchPage(books=[sample_book], total=1).model_dump(mode="json"),
        )
        assert result.books == [sample_book]
        assert result.source == ResultSource.DATABASE
        assert result.pagination.total == 1
        assert result.cache_key == "search:fantasy:{}:1:20"

    @pytest.mark.asyncio
    async def test_cache_hit_skips_database(self, service, mock_db_service, mock_cache, sample_book):
        """Test that a hit is served without touching the database."""
        mock_cache.get.return_value = CachedSearchPage(books=[sample_book], total=1).model_dump(mode="json")

        result = await service.search(SearchBooksInput(query="fantasy"))

        mock_db_service.search_books.assert_not_awaited()
        mock_cache.set.assert_not_awaited()
        assert result.books == [sample_book]
        assert result.source == ResultSource.CACHE

    @pytest.mark.asyncio
    async def test_pagination_consistent_across_paths(self, mock_db_service, mock_cache, sample_book):
        """Test cache and database paths produce identical pages."""
        stored = {}

        async def remember(key, value, ttl=None):
            stored[key] = value
            return True

        async def recall(key):
            return stored.get(key)

        mock_cache.set.side_effect = remember
        mock_cache.get.side_effect = recall
        mock_db_service.search_books.return_value = ([sample_book], 41)
        service = BooksService(mock_db_service, mock_cache)
        search_input = SearchBooksInput(query="fantasy", page=2, limit=20)

        from_db = await service.search(search_input)
        from_cache = await service.search(search_input)

        assert from_db.source == ResultSource.DATABASE
        assert from_cache.source == ResultSource.CACHE
        assert from_cache.books == from_db.books
        assert from_cache.pagination == from_db.pagination
        assert from_cache.pagination.last_page == 3
        assert mock_db_service.search_books.await_count == 1

    @pytest.mark.asyncio
    async def test_empty_results_are_cached(self, service, mock_cache):
        """Test that an empty page is still stored."""
        result = await service.search(SearchBooksInput(query="nonexistentxyz123"))

        assert result.books == []
        assert result.pagination.total == 0
        mock_cache.set.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_different_filters_use_different_keys(self, service, mock_cache):
        """Test that filters produce separate cache entries."""
        await service.search(SearchBooksInput(query="book", filters=SearchBooksFilters(genre="Fiction")))
        await service.search(SearchBooksInput(query="book", filters=SearchBooksFilters(genre="Non-Fiction")))

        first_key = mock_cache.set.await_args_list[0].args[0]
        second_key = mock_cache.set.await_args_list[1].args[0]
        assert first_key != second_key

    @pytest.mark.asyncio
    async def test_concurrent_identical_searches_are_deduplicated(self, service, mock_db_service, mock_cache, sample_book):
        """Test that concurrent identical requests share one query."""
        release = asyncio.Event()

        async def slow_search(search_input):
            await release.wait()
            return [sample_book], 1

        mock_db_service.search_books.side_effect = slow_search
        search_input = SearchBooksInput(query="fantasy")

        pending = [asyncio.ensure_future(service.search(search_input)) for _ in range(3)]
        await asyncio.sleep(0)
        assert service.in_flight_count == 1

        release.set()
        results = await asyncio.gather(*pending)

        assert all(r.books == [sample_book] for r in results)
        assert mock_db_service.search_books.await_count == 1
        assert mock_cache.get.await_count == 1
        assert mock_cache.set.await_count == 1
        assert service.in_flight_count == 0

    @pytest.mark.asyncio
    async def test_different_searches_are_not_deduplicated(self, service, mock_db_service, sample_book):
        """Test that distinct requests run their own queries."""
        other_book = sample_book.model_copy(update={"id": "book-2", "title": "Scifi Book"})
        mock_db_service.search_books.side_effect = [([sample_book], 1), ([other_book], 1)]

        first, second = await asyncio.gather(
            service.search(SearchBooksInput(query="fantasy")),
            service.search(SearchBooksInput(query="scifi")),
        )

        assert first.books == [sample_book]
        assert second.books == [other_book]
        assert mock_db_service.search_books.await_count == 2

    @pytest.mark.asyncio
    async def test_in_flight_entry_removed_after_completion(self, service, mock_db_service):
        """Test that sequential identical searches are not collapsed."""
        search_input = SearchBooksInput(query="cleanup-test")

        await service.search(search_input)
        assert service.in_flight_count == 0
        await service.search(search_input)

        assert mock_db_service.search_books.await_count == 2

    @pytest.mark.asyncio
    async def test_database_errors_propagate_and_are_not_cached(self, service, mock_db_service, mock_cache):
        """Test that a failed query reaches every waiter and leaves no state behind."""
        release = asyncio.Event()

        async def failing_search(search_input):
            await release.wait()
            raise RuntimeError("Database connection failed")

        mock_db_service.search_books.side_effect = failing_search
        search_input = SearchBooksInput(query="test")

        pending = [asyncio.ensure_future(service.search(search_input)) for _ in range(2)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*pending, return_exceptions=True)

        assert all(isinstance(r, RuntimeError) for r in results)
        assert str(results[0]) == "Database connection failed"
        assert mock_db_service.search_books.await_count == 1
        mock_cache.set.assert_not_awaited()
        assert service.in_flight_count == 0

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_search(self, service, mock_db_service, sample_book):
        """Test that one caller giving up leaves the others served."""
        release = asyncio.Event()

        async def slow_search(search_input):
            await release.wait()
            return [sample_book], 1

        mock_db_service.search_books.side_effect = slow_search
        search_input = SearchBooksInput(query="fantasy")

        impatient = asyncio.ensure_future(service.search(search_input))
        patient = asyncio.ensure_future(service.search(search_input))
        await asyncio.sleep(0)

        impatient.cancel()
        release.set()
        result = await patient

        assert impatient.cancelled()
        assert result.books == [sample_book]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("cached", [
        {"items": [], "count": 3},
        {"books": [], "total": -1},
        {"books": [{"title": "missing fields"}], "total": 1},
    ])
    async def test_malformed_cache_entry_falls_back_to_database(
        self, service, mock_db_service, mock_cache, sample_book, cached
    ):
        """Test that a cached value of the wrong shape is treated as a miss."""
        mock_cache.get.return_value = cached
        mock_db_service.search_books.return_value = ([sample_book], 1)
        search_input = SearchBooksInput(query="fantasy")

        result = await service.search(search_input)

        assert result.source == ResultSource.DATABASE
        assert result.books == [sample_book]
        assert result.pagination.total == 1
        mock_db_service.search_books.assert_awaited_once_with(search_input)
        mock_cache.set.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_after_all_waiters_cancelled_is_retrieved(self, service, mock_db_service):
        """Test that a shared search failing with nobody waiting leaves no unretrieved exception."""
        release = asyncio.Event()

        async def failing_search(search_input):
            await release.wait()
            raise RuntimeError("Database connection failed")

        mock_db_service.search_books.side_effect = failing_search
        loop = asyncio.get_running_loop()
        unhandled = []
        previous_handler = loop.get_exception_handler()
        loop.set_exception_handler(lambda _loop, context: unhandled.append(context))

        try:
            waiter = asyncio.ensure_future(service.search(SearchBooksInput(query="doomed")))
            await asyncio.sleep(0)
            shared = next(iter(service._in_flight.values()))

            waiter.cancel()
            release.set()
            await asyncio.wait([shared])

            assert waiter.cancelled()
            assert service.in_flight_count == 0

            del shared, waiter
            gc.collect()
            await asyncio.sleep(0)
        finally:
            loop.set_exception_handler(previous_handler)

        assert not [c for c in unhandled if "never retrieved" in c.get("message", "")]

    @pytest.mark.asyncio
    async def test_works_without_cache(self, mock_db_service, sample_book):
        """Test that the service runs with caching disabled."""
        mock_db_service.search_books.return_value = ([sample_book], 1)
        service = BooksService(mock_db_service, cache=None)

        result = await service.search(SearchBooksInput(query="fantasy"))

        assert result.source == ResultSource.DATABASE
        assert result.books == [sample_book]


class TestBooksServiceCatalog:
    """Test cases for catalog pass-through operations."""

    @pytest.mark.asyncio
    async def test_find_one_passes_through(self, mock_db_service, sample_book):
        """Test single book lookup."""
        mock_db_service.get_book_by_id.return_value = sample_book
        service = BooksService(mock_db_service)

        assert await service.find_one("book-1") == sample_book
        mock_db_service.get_book_by_id.assert_awaited_once_with("book-1")

    @pytest.mark.asyncio
    async def test_create_comment_validates_rating(self, mock_db_service):
        """Test that out-of-range ratings are rejected before reaching the database."""
        service = BooksService(mock_db_service)

        with pytest.raises(ValueError):
            await service.create_comment("book-1", "Nice", rating=6)

        mock_db_service.create_comment.assert_not_awaited()
