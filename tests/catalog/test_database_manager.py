"""
Tests for the catalog DatabaseManager.
"""

import pytest
from sqlalchemy import select

from catalog import Book, DatabaseManager


class TestDatabaseManager:
    """Test cases for DatabaseManager."""

    @pytest.mark.asyncio
    async def test_session_requires_connection(self):
        """Test that sessions are refused before connect."""
        manager = DatabaseManager("sqlite+aiosqlite:///:memory:")

        with pytest.raises(RuntimeError, match="not connected"):
            async with manager.session():
                pass

    @pytest.mark.asyncio
    async def test_connect_creates_schema(self, db_manager):
        """Test that connect creates empty catalog tables."""
        async with db_manager.session() as session:
            books = (await session.scalars(select(Book))).all()

        assert books == []

    @pytest.mark.asyncio
    async def test_disconnect(self, db_manager):
        """Test that disconnect releases the engine."""
        await db_manager.disconnect()

        assert db_manager.engine is None
        assert db_manager.session_factory is None
