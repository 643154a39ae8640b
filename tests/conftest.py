"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from api.cache import CacheManager
from api.database import APIDatabaseService
from api.models import AuthorResponse, BookResponse, SearchBooksFilters, SearchBooksInput
from catalog.database import DatabaseManager
from catalog.models import Book, Comment, Role, User


@pytest.fixture
def sample_book():
    """Create a sample book response for testing."""
    return BookResponse(
        id="book-1",
        title="Fantasy Book",
        description="A fantasy adventure",
        genre="Fiction",
        publication_year=2010,
        authors=[AuthorResponse(id="user-1", first_name="John", last_name="Doe")],
    )


@pytest.fixture
def sample_search_input():
    """Create a sample search request."""
    return SearchBooksInput(
        query="fantasy",
        filters=SearchBooksFilters(genre="Fiction", publication_year=[2000, 2020]),
    )


@pytest.fixture
def mock_db_service():
    """Create a mock database service."""
    service = AsyncMock(spec=APIDatabaseService)
    service.search_books.return_value = ([], 0)
    service.get_books.return_value = []
    service.get_book_by_id.return_value = None
    return service


@pytest.fixture
def mock_cache():
    """Create a mock cache that always misses."""
    cache = AsyncMock(spec=CacheManager)
    cache.get.return_value = None
    cache.set.return_value = True
    return cache


@pytest_asyncio.fixture
async def db_manager(tmp_path):
    """Connected database manager over a throwaway SQLite file."""
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}")
    await manager.connect()
    yield manager
    await manager.disconnect()


@pytest_asyncio.fixture
async def seeded_db(db_manager):
    """
    Database with a small catalog.

    Books are created one day apart so newest-first ordering is deterministic:
    "Dune Messiah" is the newest, "The Hobbit" the oldest.
    """
    base_time = datetime(2024, 1, 1, tzinfo=timezone.utc)

    tolkien = User(id="user-tolkien", first_name="John", last_name="Tolkien",
                   email="tolkien@example.com", role=Role.WRITER)
    herbert = User(id="user-herbert", first_name="Frank", last_name="Herbert",
                   email="herbert@example.com", role=Role.WRITER)
    coauthor = User(id="user-coauthor", first_name="Brian", last_name="Herbert",
                    email="brian@example.com", role=Role.WRITER)

    books = [
        Book(id="book-hobbit", title="The Hobbit", description="A story of a hobbit's journey",
             genre="Fantasy", publication_year=1937, authors=[tolkien],
             created_at=base_time),
        Book(id="book-lotr", title="The Fellowship of the Ring", description="An epic quest",
             genre="Fantasy", publication_year=1954, authors=[tolkien],
             created_at=base_time + timedelta(days=1)),
        Book(id="book-dune", title="Dune", description="Desert planet politics",
             genre="Science Fiction", publication_year=1965, authors=[herbert],
             created_at=base_time + timedelta(days=2)),
        Book(id="book-sandworms", title="Sandworms of Dune", description="The saga continues",
             genre="Science Fiction", publication_year=2007, authors=[herbert, coauthor],
             created_at=base_time + timedelta(days=3)),
        Book(id="book-messiah", title="Dune Messiah", description="Twelve years later",
             genre="Science Fiction", publication_year=1969, authors=[herbert],
             created_at=base_time + timedelta(days=4)),
    ]
    books[0].comments.append(Comment(id="comment-1", content="Great book!", rating=5))

    async with db_manager.session() as session:
        session.add_all(books)
        await session.commit()

    return db_manager


@pytest.fixture
def db_service(seeded_db):
    """Database service bound to the seeded catalog."""
    return APIDatabaseService(seeded_db.session_factory)
