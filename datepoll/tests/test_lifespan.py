"""Tests for lifespan management."""

import os

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from datepoll import state
from datepoll.config import clear_settings_cache


@pytest.fixture(autouse=True)
def _fresh_settings():
    clear_settings_cache()
    yield
    clear_settings_cache()


class TestLifespanResources:
    """Test LifespanResources dataclass."""

    def test_lifespan_resources_defaults(self):
        """Test that LifespanResources has correct defaults."""
        from datepoll.lifespan import LifespanResources

        resources = LifespanResources()
        assert resources.db_pool is None
        assert resources.db_enabled is False


class TestInitDatabase:
    """Test init_database function."""

    @pytest.mark.asyncio
    async def test_init_database_returns_none_when_disabled(self):
        """Test that init_database skips the pool when ENABLE_DB=0."""
        from datepoll.lifespan import init_database

        with patch.dict(os.environ, {"ENABLE_DB": "0"}):
            with patch("datepoll.lifespan.db.open_pool", new_callable=AsyncMock) as open_pool:
                result = await init_database()

        assert result is None
        open_pool.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_init_database_returns_pool_when_enabled(self):
        """Test that init_database returns the opened pool."""
        from datepoll.lifespan import init_database

        mock_pool = MagicMock()
        with patch.dict(os.environ, {"ENABLE_DB": "1"}):
            with patch("datepoll.lifespan.db.open_pool", new_callable=AsyncMock, return_value=mock_pool):
                result = await init_database()

        assert result is mock_pool

    @pytest.mark.asyncio
    async def test_init_database_survives_connection_failure(self):
        """Test that an unreachable database leaves the app running without a pool."""
        from datepoll.lifespan import init_database

        with patch.dict(os.environ, {"ENABLE_DB": "1"}):
            with patch("datepoll.lifespan.db.open_pool", new_callable=AsyncMock, side_effect=OSError("refused")):
                result = await init_database()

        assert result is None


class TestSetupAndCleanup:
    """Test setup_resources and cleanup_resources."""

    @pytest.mark.asyncio
    async def test_setup_publishes_pool_and_cleanup_clears_it(self):
        """Test that the pool is published to state and closed on shutdown."""
        from datepoll.lifespan import cleanup_resources, setup_resources

        mock_pool = MagicMock()
        with patch("datepoll.lifespan.init_database", new_callable=AsyncMock, return_value=mock_pool):
            resources = await setup_resources()

        assert resources.db_enabled is True
        assert state.db_pool is mock_pool

        with patch("datepoll.lifespan.db.close_pool", new_callable=AsyncMock) as close_pool:
            await cleanup_resources(resources)

        close_pool.assert_awaited_once_with(mock_pool)
        assert state.db_pool is None

    @pytest.mark.asyncio
    async def test_cleanup_without_pool_skips_close(self):
        """Test that cleanup does nothing to the database when it was never opened."""
        from datepoll.lifespan import LifespanResources, cleanup_resources

        with patch("datepoll.lifespan.db.close_pool", new_callable=AsyncMock) as close_pool:
            await cleanup_resources(LifespanResources())

        close_pool.assert_not_awaited()
