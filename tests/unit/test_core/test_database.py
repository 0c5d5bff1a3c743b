"""Tests for the database engine, session management, and store error translation."""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError

from brgy_api.core.database import Database, translate_store_errors
from brgy_api.core.errors import StoreUnavailableError


class TestDatabase:
    """Tests for Database."""

    async def test_session_executes(self) -> None:
        database = Database("sqlite+aiosqlite:///:memory:")
        try:
            async with database.session() as session:
                result = await session.execute(text("SELECT 1"))
                assert result.scalar_one() == 1
        finally:
            await database.dispose()

    async def test_sqlite_skips_pool_sizing(self) -> None:
        database = Database("sqlite+aiosqlite:///:memory:")
        try:
            assert "QueuePool" not in type(database.engine.pool).__name__
        finally:
            await database.dispose()

    def test_schema_requires_dict_connect_args(self) -> None:
        with pytest.raises(TypeError, match="connect_args must be a dict"):
            Database("sqlite+aiosqlite:///:memory:", schema="pr_1", connect_args="bad")


class TestTranslateStoreErrors:
    """Tests for translate_store_errors."""

    def test_operational_error_becomes_store_unavailable(self) -> None:
        with pytest.raises(StoreUnavailableError) as exc_info, translate_store_errors("ping"):
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))
        assert "connection refused" not in exc_info.value.message

    def test_integrity_error_passes_through(self) -> None:
        with pytest.raises(IntegrityError), translate_store_errors("insert"):
            raise IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

    def test_other_exceptions_untouched(self) -> None:
        with pytest.raises(KeyError), translate_store_errors("lookup"):
            raise KeyError("x")
