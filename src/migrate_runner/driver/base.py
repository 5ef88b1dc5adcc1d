"""Execution driver contract.

A driver owns the database connection for the duration of a walk and runs
unit actions against it one at a time.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from migrate_runner.errors import DriverError

logger = logging.getLogger(__name__)


class ExecutionDriver(ABC):
    """Base class for execution drivers.

    Subclasses implement ``open`` and ``close``; ``commit`` is an optional
    hook called after each successful action. Actions are never wrapped in a
    transaction by the driver.

    Attributes:
        timeout: Per-action timeout in seconds, or None for no limit.
    """

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout
        self._handle: Any = None

    @property
    def handle(self) -> Any:
        """Database handle passed to unit actions."""
        if self._handle is None:
            raise RuntimeError(f"{type(self).__name__} is not open")
        return self._handle

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    @abstractmethod
    async def open(self) -> Any:
        """Open the connection and return the handle."""

    @abstractmethod
    async def close(self) -> None:
        """Release the connection."""

    async def commit(self) -> None:
        """Persist the effects of the last action."""

    async def run(self, action: Callable[[Any], Any]) -> None:
        """Run one unit action against the handle.

        Synchronous actions are called directly; awaitables they return are
        awaited, subject to ``timeout``.

        Raises:
            Exception: Whatever the action raises, or ``TimeoutError``.
        """
        result = action(self.handle)
        if inspect.isawaitable(result):
            if self.timeout is not None:
                await asyncio.wait_for(result, timeout=self.timeout)
            else:
                await result
        await self.commit()

    async def __aenter__(self) -> "ExecutionDriver":
        if not self.is_open:
            try:
                await self.open()
            except Exception as e:
                logger.error(f"Failed to open {type(self).__name__}: {e}")
                raise DriverError(f"Could not open database: {e}") from e
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        try:
            await self.close()
        except Exception as e:
            logger.error(f"Failed to close {type(self).__name__}: {e}")
            # An error from the walk itself takes precedence.
            if exc_type is None:
                raise DriverError(f"Could not close database: {e}") from e


class HandleDriver(ExecutionDriver):
    """Driver around a handle the caller already owns.

    Opening and closing do not touch the handle, and nothing is committed.

    Example:
        ```python
        driver = HandleDriver(connection)
        migration_set = MigrationSet(migrations_dir, state_file, driver)
        ```
    """

    def __init__(self, handle: Any, timeout: float | None = None) -> None:
        super().__init__(timeout=timeout)
        self._target = handle

    async def open(self) -> Any:
        self._handle = self._target
        return self._handle

    async def close(self) -> None:
        self._handle = None
