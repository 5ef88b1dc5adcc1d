"""Unit tests for execution drivers.

Tests cover the action calling convention, timeouts, handle lifecycle,
and the SQLite driver against a temporary database file.
"""

import asyncio
import sqlite3
from pathlib import Path

import pytest

from migrate_runner.driver import HandleDriver, SQLiteDriver, create_driver
from migrate_runner.errors import DriverError


@pytest.mark.unit
class TestHandleDriver:
    """Tests for HandleDriver."""

    @pytest.mark.asyncio
    async def test_runs_sync_action(self) -> None:
        """Synchronous actions receive the handle."""
        calls: list[str] = []
        driver = HandleDriver(calls)

        async with driver:
            await driver.run(lambda db: db.append("sync"))

        assert calls == ["sync"]

    @pytest.mark.asyncio
    async def test_awaits_async_action(self) -> None:
        """Awaitables returned by actions are awaited before run() returns."""
        calls: list[str] = []
        driver = HandleDriver(calls)

        async def action(db: list[str]) -> None:
            await asyncio.sleep(0)
            db.append("async")

        async with driver:
            await driver.run(action)

        assert calls == ["async"]

    @pytest.mark.asyncio
    async def test_propagates_errors(self) -> None:
        """Action errors reach the caller unchanged."""
        driver = HandleDriver(object())

        def action(db: object) -> None:
            raise ValueError("bad sql")

        async with driver:
            with pytest.raises(ValueError, match="bad sql"):
                await driver.run(action)

    @pytest.mark.asyncio
    async def test_timeout(self) -> None:
        """Slow actions are cancelled after the per-unit timeout."""
        driver = HandleDriver(object(), timeout=0.01)

        async def slow(db: object) -> None:
            await asyncio.sleep(5)

        async with driver:
            with pytest.raises(asyncio.TimeoutError):
                await driver.run(slow)

    @pytest.mark.asyncio
    async def test_handle_requires_open(self) -> None:
        """Accessing the handle outside a walk is an error."""
        driver = HandleDriver(object())

        with pytest.raises(RuntimeError, match="not open"):
            driver.handle

        async with driver:
            assert driver.is_open
        assert not driver.is_open


@pytest.mark.integration
class TestSQLiteDriver:
    """Tests for SQLiteDriver."""

    @pytest.mark.asyncio
    async def test_commits_each_action(self, tmp_path: Path) -> None:
        """Changes made by an action are visible to other connections."""
        db_path = tmp_path / "app.db"
        driver = SQLiteDriver(db_path)

        async def up(db) -> None:
            await db.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")
            await db.execute("INSERT INTO users (name) VALUES ('ada')")

        async with driver:
            await driver.run(up)

        conn = sqlite3.connect(db_path)
        try:
            rows = conn.execute("SELECT name FROM users").fetchall()
        finally:
            conn.close()
        assert rows == [("ada",)]

    @pytest.mark.asyncio
    async def test_close_releases_handle(self, tmp_path: Path) -> None:
        driver = SQLiteDriver(tmp_path / "app.db")

        await driver.open()
        await driver.close()

        assert not driver.is_open


@pytest.mark.unit
class TestCreateDriver:
    """Tests for create_driver()."""

    def test_plain_path(self) -> None:
        driver = create_driver("/tmp/app.db")

        assert isinstance(driver, SQLiteDriver)
        assert driver.database == "/tmp/app.db"

    def test_sqlite_url_relative(self) -> None:
        assert create_driver("sqlite:///app.db").database == "app.db"

    def test_sqlite_url_absolute(self) -> None:
        assert create_driver("sqlite:////var/db/app.db").database == "/var/db/app.db"

    def test_sqlite_memory(self) -> None:
        assert create_driver("sqlite://:memory:").database == ":memory:"

    def test_timeout_passed_through(self) -> None:
        assert create_driver("app.db", timeout=3.0).timeout == 3.0

    def test_unsupported_scheme(self) -> None:
        with pytest.raises(ValueError, match="Unsupported"):
            create_driver("postgresql://localhost/app")


class BrokenDriver(HandleDriver):
    """HandleDriver whose open or close raises."""

    def __init__(self, fail_open: bool = False, fail_close: bool = False) -> None:
        super().__init__(object())
        self.fail_open = fail_open
        self.fail_close = fail_close

    async def open(self) -> object:
        if self.fail_open:
            raise OSError("unable to open database file")
        return await super().open()

    async def close(self) -> None:
        await super().close()
        if self.fail_close:
            raise OSError("disk I/O error")


@pytest.mark.unit
class TestDriverLifecycleErrors:
    """Tests for open/close failures."""

    @pytest.mark.asyncio
    async def test_open_failure_is_driver_error(self) -> None:
        with pytest.raises(DriverError, match="Could not open database"):
            async with BrokenDriver(fail_open=True):
                pass

    @pytest.mark.asyncio
    async def test_close_failure_is_driver_error(self) -> None:
        with pytest.raises(DriverError, match="Could not close database"):
            async with BrokenDriver(fail_close=True):
                pass

    @pytest.mark.asyncio
    async def test_close_failure_keeps_walk_error(self) -> None:
        """An error raised inside the block is not replaced by a close failure."""
        with pytest.raises(ValueError, match="bad sql"):
            async with BrokenDriver(fail_close=True):
                raise ValueError("bad sql")
