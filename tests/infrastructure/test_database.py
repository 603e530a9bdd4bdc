"""Tests for the shared database handle."""

import asyncio
from pathlib import Path

import pytest
from sqlalchemy import text

from marketsearch.domain.exceptions import StoreUnavailableError
from marketsearch.infrastructure.database import Database


def broken_url(tmp_path: Path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'missing-dir' / 'search.db'}"


class TestConnect:
    """Tests for lazy, idempotent connection."""

    @pytest.mark.asyncio
    async def test_lazy(self, database_url: str) -> None:
        """Nothing is opened until first use."""
        database = Database(database_url)

        assert database.is_connected is False
        assert database.engine is None

        await database.connect()
        try:
            assert database.is_connected is True
            assert database.engine is not None
        finally:
            await database.dispose()

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_attempt(
        self, database_url: str, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Callers arriving during the first attempt await the same one."""
        database = Database(database_url)
        opened = 0
        original_open = database._open

        async def counting_open():
            nonlocal opened
            opened += 1
            await asyncio.sleep(0.01)
            return await original_open()

        monkeypatch.setattr(database, "_open", counting_open)

        factories = await asyncio.gather(*(database.connect() for _ in range(5)))
        try:
            assert opened == 1
            assert all(f is factories[0] for f in factories)
            assert await database.connect() is factories[0]
        finally:
            await database.dispose()

    @pytest.mark.asyncio
    async def test_failure_is_retried(self, tmp_path: Path) -> None:
        """A failed attempt is not cached; the next call tries again."""
        database = Database(broken_url(tmp_path))

        with pytest.raises(StoreUnavailableError):
            await database.connect()
        assert database.is_connected is False

        (tmp_path / "missing-dir").mkdir()
        await database.connect()
        try:
            assert database.is_connected is True
        finally:
            await database.dispose()


class TestLease:
    """Tests for reference-counted use and disposal."""

    @pytest.mark.asyncio
    async def test_lease_yields_working_sessions(self, database_url: str) -> None:
        """Leased session factories can query the store."""
        database = Database(database_url)

        async with database.lease() as sessions:
            assert database.active_leases == 1
            async with sessions() as session:
                result = await session.execute(text("SELECT 1"))
                assert result.scalar_one() == 1

        assert database.active_leases == 0
        await database.dispose()

    @pytest.mark.asyncio
    async def test_dispose_waits_for_leases(self, database_url: str) -> None:
        """Disposal is deferred until the last lease is released."""
        database = Database(database_url)

        async with database.lease():
            async with database.lease():
                await database.dispose()
                assert database.is_connected is True
            assert database.is_connected is True

        assert database.is_connected is False
        assert database.engine is None

    @pytest.mark.asyncio
    async def test_dispose_unused(self, database_url: str) -> None:
        """Disposing an unused handle closes it immediately; it can reconnect."""
        database = Database(database_url)
        await database.connect()

        await database.dispose()
        assert database.is_connected is False

        await database.connect()
        assert database.is_connected is True
        await database.dispose()

    @pytest.mark.asyncio
    async def test_failed_lease_releases_reference(self, tmp_path: Path) -> None:
        """A lease that cannot connect does not leak a reference."""
        database = Database(broken_url(tmp_path))

        with pytest.raises(StoreUnavailableError):
            async with database.lease():
                pass

        assert database.active_leases == 0


class TestPing:
    """Tests for readiness pings."""

    @pytest.mark.asyncio
    async def test_ping(self, database_url: str, tmp_path: Path) -> None:
        """Ping reports whether the store answers."""
        healthy = Database(database_url)
        broken = Database(broken_url(tmp_path))

        assert await healthy.ping() is True
        assert await broken.ping() is False

        await healthy.dispose()
