"""Migration set engine.

This module provides the MigrationSet class which loads units from a
directory, tracks how many leading units are applied, and walks that
position up or down one unit at a time, persisting state after every unit.
"""

import logging
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from migrate_runner.driver.base import ExecutionDriver
from migrate_runner.errors import (
    LoadError,
    MigrationError,
    StateWriteError,
    UnitExecutionError,
    UnknownTarget,
)
from migrate_runner.migrations.loader import load
from migrate_runner.migrations.models import (
    AppliedUnit,
    Direction,
    DownTarget,
    MigrationState,
    MigrationUnit,
    OneStep,
    ToEmpty,
    ToTarget,
)
from migrate_runner.migrations.state import StateStore

logger = logging.getLogger(__name__)

EVENTS = ("init", "migration", "error")


class WalkStatus(str, Enum):
    """Lifecycle of a migration set."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class WalkResult:
    """Outcome of a successful walk.

    Attributes:
        direction: Direction walked.
        executed: Identifiers run, in execution order.
        position: Number of leading units applied after the walk.
        dry_run: Whether actions were skipped.
    """

    direction: Direction
    executed: list[str] = field(default_factory=list)
    position: int = 0
    dry_run: bool = False


class MigrationSet:
    """Ordered migration units plus the count of leading units applied.

    Units at index ``< position`` are applied, the rest are pending. A walk
    runs units strictly one after another; each unit's new state is written
    before the next unit starts, so the state file always describes a
    leading prefix of the units.

    Attributes:
        migrations_dir: Directory containing unit files.
        store: Applied-state store.
        driver: Execution driver running unit actions.
        units: Units sorted by identifier (populated by ``load``).
        state: Applied-state record matching ``position``.
        position: Count of leading units currently applied.
        status: Current walk status.

    Example:
        ```python
        migration_set = MigrationSet(Path("migrations"), Path("migrations/.migrate"), driver)
        migration_set.on("migration", lambda unit, direction: print(direction, unit.title))
        migration_set.load()

        await migration_set.up()
        await migration_set.down(ToEmpty())
        ```
    """

    def __init__(
        self,
        migrations_dir: Path,
        state_file: Path,
        driver: ExecutionDriver,
        matches: str | None = None,
        store: StateStore | None = None,
    ) -> None:
        """Initialize an unloaded migration set.

        Args:
            migrations_dir: Directory containing unit files.
            state_file: Applied-state record location.
            driver: Execution driver for unit actions.
            matches: Optional glob restricting unit file names.
            store: State store; defaults to one bound to ``state_file``.
        """
        self.migrations_dir = migrations_dir
        self.store = store or StateStore(state_file)
        self.driver = driver
        self.matches = matches
        self.units: list[MigrationUnit] = []
        self.state = MigrationState()
        self.position = 0
        self.status = WalkStatus.IDLE
        self._listeners: dict[str, list[Callable[..., Any]]] = defaultdict(list)

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        """Register a notification callback.

        Args:
            event: One of ``init``, ``migration`` or ``error``.
            callback: Called synchronously; ``migration`` callbacks receive
                ``(unit, direction)``, ``error`` callbacks the exception.
        """
        if event not in EVENTS:
            raise ValueError(f"Unknown event {event!r}; expected one of {', '.join(EVENTS)}")
        self._listeners[event].append(callback)

    def _emit(self, event: str, *args: Any) -> None:
        for callback in self._listeners[event]:
            callback(*args)

    def load(self) -> "MigrationSet":
        """Load units and applied state.

        Returns:
            This migration set.

        Raises:
            LoadError: After emitting ``error``, if loading fails.
        """
        try:
            units, state = load(self.migrations_dir, self.store.path, self.matches)
        except LoadError as e:
            logger.error(f"Failed to load migrations from {self.migrations_dir}: {e}")
            self._emit("error", e)
            raise

        self.units = units
        self.state = state
        self.position = len(state.applied)
        logger.info(
            f"Loaded {len(units)} migration(s), {self.position} applied, "
            f"{len(units) - self.position} pending"
        )
        self._emit("init")
        return self

    @property
    def applied(self) -> list[MigrationUnit]:
        return self.units[: self.position]

    @property
    def pending(self) -> list[MigrationUnit]:
        return self.units[self.position :]

    def _index_of(self, identifier: str) -> int:
        for index, unit in enumerate(self.units):
            if unit.identifier == identifier:
                return index
        raise UnknownTarget(identifier)

    def _up_slice(self, target: str | None) -> list[MigrationUnit]:
        end = len(self.units) - 1 if target is None else self._index_of(target)
        return self.units[self.position : end + 1]

    def _down_slice(self, target: DownTarget) -> list[MigrationUnit]:
        if isinstance(target, OneStep):
            end = self.position - 2
        elif isinstance(target, ToEmpty):
            end = -1
        elif isinstance(target, ToTarget):
            end = self._index_of(target.identifier)
        else:
            raise TypeError(f"Unsupported down target: {target!r}")
        start = max(end + 1, 0)
        return list(reversed(self.units[start : self.position]))

    def _next_state(self, unit: MigrationUnit, direction: Direction) -> MigrationState:
        now = datetime.now(timezone.utc)
        applied = list(self.state.applied)
        if direction is Direction.UP:
            applied.append(AppliedUnit(id=unit.identifier, applied_at=now))
        else:
            applied.pop()
        return MigrationState(applied=applied, last_run=now)

    async def up(self, target: str | None = None, dry_run: bool = False) -> WalkResult:
        """Apply pending units up to and including ``target``.

        Args:
            target: Identifier to stop at; None applies every pending unit.
            dry_run: If True, only report what would run.

        Returns:
            WalkResult describing the executed units.

        Raises:
            UnknownTarget: If ``target`` names no unit; nothing runs.
            UnitExecutionError: If a unit's action fails.
            StateWriteError: If state could not be saved after a unit.
        """
        self._check_not_running()
        return await self._walk(Direction.UP, self._up_slice(target), dry_run)

    async def down(self, target: DownTarget | None = None, dry_run: bool = False) -> WalkResult:
        """Revert applied units, newest first.

        Args:
            target: ``OneStep()`` (default) reverts one unit, ``ToTarget(id)``
                reverts every unit after ``id``, ``ToEmpty()`` reverts all.
            dry_run: If True, only report what would run.

        Returns:
            WalkResult describing the executed units.

        Raises:
            UnknownTarget: If a ``ToTarget`` identifier names no unit.
            UnitExecutionError: If a unit's action fails.
            StateWriteError: If state could not be saved after a unit.
        """
        self._check_not_running()
        return await self._walk(Direction.DOWN, self._down_slice(target or OneStep()), dry_run)

    def _check_not_running(self) -> None:
        if self.status is WalkStatus.RUNNING:
            raise MigrationError("A migration walk is already running")

    async def _walk(
        self, direction: Direction, units: list[MigrationUnit], dry_run: bool
    ) -> WalkResult:
        self.status = WalkStatus.RUNNING
        result = WalkResult(direction=direction, position=self.position, dry_run=dry_run)

        if not units:
            logger.info(f"No migrations to run ({direction.value})")
            self.status = WalkStatus.COMPLETED
            return result

        logger.info(
            f"{'[DRY-RUN] ' if dry_run else ''}Running {len(units)} migration(s) {direction.value}"
        )

        if dry_run:
            for unit in units:
                self._emit("migration", unit, direction)
                result.executed.append(unit.identifier)
            self.status = WalkStatus.COMPLETED
            return result

        try:
            async with self.driver:
                for unit in units:
                    await self._run_unit(unit, direction)
                    result.executed.append(unit.identifier)
        except BaseException:
            self.status = WalkStatus.FAILED
            raise

        result.position = self.position
        self.status = WalkStatus.COMPLETED
        logger.info(f"Migration walk complete at position {self.position}/{len(self.units)}")
        return result

    async def _run_unit(self, unit: MigrationUnit, direction: Direction) -> None:
        self._emit("migration", unit, direction)
        logger.info(f"Running migration {unit.identifier} ({direction.value})")

        try:
            await self.driver.run(unit.action(direction))
        except Exception as e:
            logger.error(f"Migration {unit.identifier} failed ({direction.value}): {e}")
            raise UnitExecutionError(unit, direction, e) from e

        state = self._next_state(unit, direction)
        try:
            self.store.write(state)
        except OSError as e:
            logger.error(f"Migration {unit.identifier} ran but state was not saved: {e}")
            raise StateWriteError(unit, direction, e) from e

        self.state = state
        self.position += 1 if direction is Direction.UP else -1

    def get_status(self) -> dict[str, Any]:
        """Get current migration status.

        Returns:
            Dictionary with status information.
        """
        applied_at = {entry.id: entry.applied_at for entry in self.state.applied}

        return {
            "position": self.position,
            "total_migrations": len(self.units),
            "applied_count": self.position,
            "pending_count": len(self.units) - self.position,
            "last_run": self.state.last_run.isoformat() if self.state.last_run else None,
            "migrations": [
                {
                    "id": unit.identifier,
                    "title": unit.title,
                    "description": unit.description,
                    "applied": index < self.position,
                    "applied_at": (
                        applied_at[unit.identifier].isoformat()
                        if unit.identifier in applied_at
                        else None
                    ),
                }
                for index, unit in enumerate(self.units)
            ],
        }
