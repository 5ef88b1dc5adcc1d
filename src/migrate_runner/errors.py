"""Exception hierarchy for the migration runner.

Load-time errors (``LoadError`` and subclasses) are raised before any unit
runs. Walk-time errors (``UnitExecutionError``, ``StateWriteError``) are
raised after zero or more units have been applied and recorded. ``DriverError``
means the database connection itself could not be opened or closed.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from migrate_runner.migrations.models import Direction, MigrationUnit


class MigrationError(Exception):
    """Base class for all migration runner errors."""


class LoadError(MigrationError):
    """Migration directory or state file could not be loaded."""


class StateInconsistent(LoadError):
    """Applied-state record does not match the discovered units."""


class DuplicateIdentifier(LoadError):
    """Two unit files resolve to the same identifier."""


class MalformedUnit(LoadError):
    """A unit file matched the naming convention but could not be loaded."""


class DriverError(MigrationError):
    """The execution driver could not open or close its connection."""


class UnknownTarget(MigrationError):
    """Requested walk target does not name any unit."""

    def __init__(self, target: str) -> None:
        super().__init__(f"Unknown migration target: {target!r}")
        self.target = target


class UnitExecutionError(MigrationError):
    """A unit's up or down action failed.

    Attributes:
        unit: The unit whose action raised.
        direction: Direction of the walk.
    """

    def __init__(
        self, unit: "MigrationUnit", direction: "Direction", error: BaseException
    ) -> None:
        super().__init__(f"Migration {unit.identifier} failed ({direction.value}): {error}")
        self.unit = unit
        self.direction = direction


class StateWriteError(MigrationError):
    """A unit action succeeded but its new state could not be persisted.

    The unit's effect on the database is in place while the state file still
    describes the previous position.

    Attributes:
        unit: The unit whose transition was not recorded.
        direction: Direction of the walk.
    """

    def __init__(
        self, unit: "MigrationUnit", direction: "Direction", error: BaseException
    ) -> None:
        super().__init__(
            f"Migration {unit.identifier} ran ({direction.value}) but state was not saved: {error}"
        )
        self.unit = unit
        self.direction = direction
