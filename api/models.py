"""
API models and schemas for the book catalog.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ResultSource(str, Enum):
    """Where a search page was served from."""
    CACHE = "cache"
    DATABASE = "database"


class PaginationInput(BaseModel):
    """Pagination arguments shared by list queries."""
    page: int = Field(1, ge=1, description="Page number (starts from 1)")
    limit: int = Field(20, ge=1, le=100, description="Items per page")


class SearchBooksFilters(BaseModel):
    """Optional search filters."""
    genre: Optional[str] = Field(None, description="Exact genre match")
    publication_year: Optional[List[int]] = Field(
        None, description="Inclusive [start, end] publication year range"
    )

    def effective(self) -> dict:
        """Filters the query builder will actually apply."""
        applied = {}
        if self.genre:
            applied["genre"] = self.genre
        if self.publication_year is not None and len(self.publication_year) == 2:
            applied["publication_year"] = list(self.publication_year)
        return applied


class SearchBooksInput(PaginationInput):
    """Structured book search request."""
    query: str = Field(..., description="Free text matched against title, description, genre and author names")
    filters: Optional[SearchBooksFilters] = Field(None, description="Optional filters")


class AuthorResponse(BaseModel):
    """Book author."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Author identifier")
    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., description="Last name")


class CommentResponse(BaseModel):
    """Reader comment on a book."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Comment identifier")
    content: str = Field(..., description="Comment text")
    rating: int = Field(..., ge=1, le=5, description="Rating (1-5 stars)")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")


class BookResponse(BaseModel):
    """Book response model for API."""
    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="Unique book identifier")
    title: str = Field(..., description="Book title")
    description: str = Field(..., description="Book description")
    cover: Optional[str] = Field(None, description="Cover image URL")
    pages: Optional[int] = Field(None, description="Page count")
    genre: Optional[str] = Field(None, description="Book genre")
    publication_year: Optional[int] = Field(None, description="Year of publication")
    authors: List[AuthorResponse] = Field(default_factory=list, description="Book authors")
    comments: List[CommentResponse] = Field(default_factory=list, description="Reader comments")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")


class CommentCreate(BaseModel):
    """Payload for a new comment."""
    book_id: str = Field(..., description="Book being commented on")
    content: str = Field(..., min_length=1, description="Comment text")
    rating: int = Field(1, ge=1, le=5, description="Rating (1-5 stars)")

    @field_validator('content')
    @classmethod
    def validate_content(cls, v):
        """Reject whitespace-only comments."""
        if not v.strip():
            raise ValueError('Comment content cannot be blank')
        return v


class PaginationInfo(BaseModel):
    """Pagination metadata for a result page."""
    page: int = Field(..., description="Current page number")
    limit: int = Field(..., description="Number of items per page")
    offset: int = Field(..., description="Number of items skipped")
    total: int = Field(..., description="Total number of matching items")
    last_page: int = Field(..., description="Total number of pages")
    has_next_page: bool = Field(..., description="Whether there is a next page")
    has_previous_page: bool = Field(..., description="Whether there is a previous page")


class CachedSearchPage(BaseModel):
    """Search page as stored in the result cache."""
    books: List[BookResponse] = Field(..., description="Books on the page")
    total: int = Field(..., ge=0, description="Total number of matching books")


class SearchBooksResult(BaseModel):
    """Paginated search result."""
    books: List[BookResponse] = Field(..., description="Books on this page")
    pagination: PaginationInfo = Field(..., description="Pagination metadata")
    source: ResultSource = Field(..., description="Whether the page came from the cache or the database")
    cache_key: Optional[str] = Field(None, description="Search fingerprint used as cache key")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
    cache_status: str = Field(..., description="Cache connection status")
