"""
GraphQL schema for the book catalog.

Resolvers are thin pass-throughs to BooksService, which is taken from the
request context.
"""

from datetime import datetime
from typing import List, Optional

import strawberry
from strawberry.types import Info

from api import models
from api.rate_limit import Throttle
from api.service import BooksService


@strawberry.type
class Author:
    id: strawberry.ID
    first_name: str
    last_name: str

    @classmethod
    def from_response(cls, author: models.AuthorResponse) -> "Author":
        return cls(id=strawberry.ID(author.id), first_name=author.first_name, last_name=author.last_name)


@strawberry.type
class Comment:
    id: strawberry.ID
    content: str
    rating: int
    created_at: Optional[datetime]

    @classmethod
    def from_response(cls, comment: models.CommentResponse) -> "Comment":
        return cls(
            id=strawberry.ID(comment.id),
            content=comment.content,
            rating=comment.rating,
            created_at=comment.created_at,
        )


@strawberry.type
class Book:
    id: strawberry.ID
    title: str
    description: str
    cover: Optional[str]
    pages: Optional[int]
    genre: Optional[str]
    publication_year: Optional[int]
    authors: List[Author]
    comments: List[Comment]

    @classmethod
    def from_response(cls, book: models.BookResponse) -> "Book":
        return cls(
            id=strawberry.ID(book.id),
            title=book.title,
            description=book.description,
            cover=book.cover,
            pages=book.pages,
            genre=book.genre,
            publication_year=book.publication_year,
            authors=[Author.from_response(a) for a in book.authors],
            comments=[Comment.from_response(c) for c in book.comments],
        )


@strawberry.type
class Pagination:
    page: int
    limit: int
    offset: int
    total: int
    last_page: int
    has_next_page: bool
    has_previous_page: bool


@strawberry.type
class SearchBooksResult:
    books: List[Book]
    pagination: Pagination
    source: str
    cache_key: Optional[str]

    @classmethod
    def from_response(cls, result: models.SearchBooksResult) -> "SearchBooksResult":
        return cls(
            books=[Book.from_response(b) for b in result.books],
            pagination=Pagination(**result.pagination.model_dump()),
            source=result.source.value,
            cache_key=result.cache_key,
        )


@strawberry.input
class SearchBooksFiltersInput:
    genre: Optional[str] = None
    publication_year: Optional[List[int]] = None


@strawberry.input
class SearchBooksInput:
    query: str
    filters: Optional[SearchBooksFiltersInput] = None
    page: Optional[int] = 1
    limit: Optional[int] = 20

    def to_model(self) -> models.SearchBooksInput:
        """Validate into the service-level request model."""
        filters = None
        if self.filters is not None:
            filters = models.SearchBooksFilters(
                genre=self.filters.genre,
                publication_year=self.filters.publication_year,
            )
        return models.SearchBooksInput(
            query=self.query,
            filters=filters,
            page=self.page if self.page is not None else 1,
            limit=self.limit if self.limit is not None else 20,
        )


def get_books_service(info: Info) -> BooksService:
    service = info.context.get("books_service")
    if service is None:
        raise RuntimeError("Book service not available")
    return service


@strawberry.type
class Query:
    @strawberry.field(permission_classes=[Throttle], description="Search books by text, genre and publication year")
    async def search(self, info: Info, input: SearchBooksInput) -> SearchBooksResult:
        result = await get_books_service(info).search(input.to_model())
        return SearchBooksResult.from_response(result)

    @strawberry.field(description="All books with authors and comments")
    async def books(self, info: Info) -> List[Book]:
        return [Book.from_response(b) for b in await get_books_service(info).find_all()]

    @strawberry.field(description="A single book by ID")
    async def book(self, info: Info, id: strawberry.ID) -> Optional[Book]:
        book = await get_books_service(info).find_one(str(id))
        return Book.from_response(book) if book else None


@strawberry.type
class Mutation:
    @strawberry.mutation(description="Add a 1-5 star comment to a book")
    async def create_comment(self, info: Info, book_id: strawberry.ID, content: str, rating: int = 1) -> Comment:
        comment = await get_books_service(info).create_comment(str(book_id), content, rating)
        return Comment.from_response(comment)


schema = strawberry.Schema(query=Query, mutation=Mutation)
