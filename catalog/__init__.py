"""
Relational storage layer for the book catalog: ORM models and database manager.
"""

from .database import DatabaseManager
from .models import Base, Book, Comment, Role, User, book_authors

__all__ = [
    "DatabaseManager",
    "Base",
    "Book",
    "Comment",
    "Role",
    "User",
    "book_authors",
]
