"""
SQLAlchemy ORM models for the book catalog.
Defines books, their authors and reader comments as relational rows.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import Column, DateTime, Enum as SAEnum, ForeignKey, Integer, String, Table, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Role(str, Enum):
    """User roles."""
    WRITER = "Writer"
    MODERATOR = "Moderator"
    CONSUMER = "Consumer"


def generate_id() -> str:
    """Generate a new primary key."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base shared by all catalog tables."""


class TimestampedModel(Base):
    """Common columns: UUID primary key and audit timestamps."""
    __abstract__ = True

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_id)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


book_authors = Table(
    "book_authors",
    Base.metadata,
    Column("book_id", String(36), ForeignKey("book.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", String(36), ForeignKey("user.id", ondelete="CASCADE"), primary_key=True),
)


class User(TimestampedModel):
    """A catalog user; writers appear as book authors."""
    __tablename__ = "user"

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[Role] = mapped_column(
        SAEnum(Role, values_callable=lambda roles: [r.value for r in roles], name="user_role"),
        default=Role.CONSUMER,
        nullable=False,
    )

    authored_books: Mapped[List["Book"]] = relationship(
        secondary=book_authors, back_populates="authors"
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, name='{self.first_name} {self.last_name}', role={self.role})>"


class Book(TimestampedModel):
    """A book in the catalog."""
    __tablename__ = "book"

    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    cover: Mapped[Optional[str]] = mapped_column(String(512))
    pages: Mapped[Optional[int]] = mapped_column(Integer)
    genre: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    publication_year: Mapped[Optional[int]] = mapped_column(Integer, index=True)

    authors: Mapped[List[User]] = relationship(
        secondary=book_authors, back_populates="authored_books"
    )
    comments: Mapped[List["Comment"]] = relationship(
        back_populates="book", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Book(id={self.id}, title='{self.title[:30]}', genre={self.genre})>"


class Comment(TimestampedModel):
    """A reader comment with a 1-5 star rating."""
    __tablename__ = "comment"

    content: Mapped[str] = mapped_column(Text, nullable=False)
    rating: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    book_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("book.id", ondelete="CASCADE"), nullable=False, index=True
    )

    book: Mapped[Book] = relationship(back_populates="comments")
