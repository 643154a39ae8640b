"""
Database service layer for the GraphQL API.
"""

from typing import Dict, List, Optional, Tuple

import structlog
from sqlalchemy import Select, func, or_, select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from api.models import BookResponse, CommentCreate, CommentResponse, SearchBooksInput
from catalog.models import Book, Comment, User

logger = structlog.get_logger(__name__)


class APIDatabaseService:
    """Database service for API operations."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    def build_search_statement(self, search_input: SearchBooksInput) -> Select:
        """
        Build the statement selecting distinct ids of matching books.

        Args:
            search_input: Search request

        Returns:
            Select of (book id, created_at) rows, unordered and unpaginated
        """
        pattern = f"%{search_input.query}%"

        statement = (
            select(Book.id, Book.created_at)
            .outerjoin(Book.authors)
            .where(
                or_(
                    Book.title.ilike(pattern),
                    Book.description.ilike(pattern),
                    Book.genre.ilike(pattern),
                    User.first_name.ilike(pattern),
                    User.last_name.ilike(pattern),
                )
            )
        )

        filters = search_input.filters.effective() if search_input.filters else {}

        if "genre" in filters:
            statement = statement.where(Book.genre == filters["genre"])

        if "publication_year" in filters:
            start_year, end_year = filters["publication_year"]
            statement = statement.where(Book.publication_year.between(start_year, end_year))

        return statement.distinct()

    async def search_books(
        self,
        search_input: SearchBooksInput
    ) -> Tuple[List[BookResponse], int]:
        """
        Search books with filtering and pagination.

        Args:
            search_input: Query text, filters and pagination

        Returns:
            Tuple of (books on the requested page, total matching books)
        """
        try:
            matches = self.build_search_statement(search_input)
            skip = (search_input.page - 1) * search_input.limit

            async with self.session_factory() as session:
                total = await session.scalar(
                    select(func.count()).select_from(matches.subquery())
                )

                page_ids = list(await session.scalars(
                    matches
                    .order_by(Book.created_at.desc(), Book.id.asc())
                    .offset(skip)
                    .limit(search_input.limit)
                ))

                books = await self._load_books(session, page_ids)

            logger.debug(
                "Search query executed",
                query=search_input.query[:64],
                total=total,
                returned=len(books),
                page=search_input.page
            )
            return books, total or 0

        except Exception as e:
            logger.error("Failed to search books", error=str(e), query=search_input.query[:64])
            raise

    async def _load_books(self, session: AsyncSession, book_ids: List[str]) -> List[BookResponse]:
        """Load books with authors and comments, preserving the order of ``book_ids``."""
        if not book_ids:
            return []

        rows = await session.scalars(
            select(Book)
            .where(Book.id.in_(book_ids))
            .options(selectinload(Book.authors), selectinload(Book.comments))
        )
        by_id = {book.id: book for book in rows}
        return [BookResponse.model_validate(by_id[book_id]) for book_id in book_ids if book_id in by_id]

    async def get_books(self) -> List[BookResponse]:
        """
        Get every book with its authors and comments.

        Returns:
            List of BookResponse, newest first
        """
        try:
            async with self.session_factory() as session:
                rows = await session.scalars(
                    select(Book)
                    .options(selectinload(Book.authors), selectinload(Book.comments))
                    .order_by(Book.created_at.desc(), Book.id.asc())
                )
                return [BookResponse.model_validate(book) for book in rows]

        except Exception as e:
            logger.error("Failed to get books", error=str(e))
            raise

    async def get_book_by_id(self, book_id: str) -> Optional[BookResponse]:
        """
        Get a single book by ID.

        Args:
            book_id: Book identifier

        Returns:
            BookResponse if found, None otherwise
        """
        try:
            async with self.session_factory() as session:
                book = await session.scalar(
                    select(Book)
                    .where(Book.id == book_id)
                    .options(selectinload(Book.authors), selectinload(Book.comments))
                )
                if book is None:
                    return None
                return BookResponse.model_validate(book)

        except Exception as e:
            logger.error("Failed to get book by ID", book_id=book_id, error=str(e))
            raise

    async def create_comment(self, comment: CommentCreate) -> CommentResponse:
        """
        Add a comment to a book.

        Args:
            comment: Validated comment payload

        Returns:
            The stored comment

        Raises:
            ValueError: If the book does not exist
        """
        async with self.session_factory() as session:
            book = await session.get(Book, comment.book_id)
            if book is None:
                raise ValueError(f"Book with ID '{comment.book_id}' not found")

            row = Comment(content=comment.content, rating=comment.rating, book_id=book.id)
            session.add(row)
            try:
                await session.commit()
            except Exception as e:
                await session.rollback()
                logger.error("Failed to create comment", book_id=comment.book_id, error=str(e))
                raise

            logger.info("Comment created", book_id=book.id, comment_id=row.id, rating=row.rating)
            return CommentResponse.model_validate(row)

    async def get_stats(self) -> Dict[str, int]:
        """Get catalog statistics."""
        try:
            async with self.session_factory() as session:
                books = await session.scalar(select(func.count()).select_from(Book))
                authors = await session.scalar(
                    select(func.count(func.distinct(User.id))).select_from(User).join(User.authored_books)
                )
                comments = await session.scalar(select(func.count()).select_from(Comment))

            return {
                "total_books": books or 0,
                "total_authors": authors or 0,
                "total_comments": comments or 0,
            }
        except Exception as e:
            logger.error("Failed to get stats", error=str(e))
            raise

    async def health_check(self) -> Dict:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            async with self.session_factory() as session:
                await session.execute(text("SELECT 1"))
                books_count = await session.scalar(select(func.count()).select_from(Book))

            return {
                "status": "healthy",
                "books_table": "accessible",
                "books_count": books_count,
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }
