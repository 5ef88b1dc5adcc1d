"""SQLite execution driver built on aiosqlite."""

import logging
from pathlib import Path

import aiosqlite

from migrate_runner.config import SQLITE_SCHEME
from migrate_runner.driver.base import ExecutionDriver

logger = logging.getLogger(__name__)


class SQLiteDriver(ExecutionDriver):
    """Run unit actions against a SQLite database.

    The handle given to actions is the ``aiosqlite.Connection``; actions call
    ``await db.execute(...)`` or ``await db.executescript(...)`` on it. Each
    successful action is committed before the next one starts.

    Attributes:
        database: Database file path, or ``:memory:``.
    """

    def __init__(self, database: str | Path, timeout: float | None = None) -> None:
        super().__init__(timeout=timeout)
        self.database = str(database)

    async def open(self) -> aiosqlite.Connection:
        logger.info(f"Opening SQLite database {self.database}")
        self._handle = await aiosqlite.connect(self.database)
        return self._handle

    async def commit(self) -> None:
        await self.handle.commit()

    async def close(self) -> None:
        if self._handle is not None:
            await self._handle.close()
            self._handle = None


def create_driver(database: str, timeout: float | None = None) -> ExecutionDriver:
    """Create a driver from a database location.

    Args:
        database: A file path, ``sqlite:///path/to/db`` or ``sqlite://:memory:``.
        timeout: Per-action timeout in seconds.

    Returns:
        Configured driver, not yet opened.

    Raises:
        ValueError: If the location uses an unsupported scheme.
    """
    if database.startswith(SQLITE_SCHEME):
        location = database[len(SQLITE_SCHEME) :]
        # sqlite:///relative.db and sqlite:////abs/path.db
        if location.startswith("/"):
            location = location[1:]
        return SQLiteDriver(location or ":memory:", timeout=timeout)
    if "://" in database:
        raise ValueError(f"Unsupported database URL: {database}")
    return SQLiteDriver(database, timeout=timeout)

