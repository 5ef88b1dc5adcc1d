"""Reversible, resumable migration engine for migrate-runner.

This package discovers migration units in a directory, tracks which leading
units are applied in a JSON state file, and walks the database up or down
one unit at a time.

Example usage:
    ```python
    from migrate_runner.driver import create_driver
    from migrate_runner.migrations import MigrationSet, ToEmpty

    migration_set = MigrationSet(
        Path("migrations"), Path("migrations/.migrate"), create_driver("app.db")
    ).load()

    # Apply everything pending
    result = await migration_set.up()
    print(f"Applied {len(result.executed)} migrations")

    # Revert everything
    await migration_set.down(ToEmpty())
    ```
"""

from migrate_runner.migrations.engine import MigrationSet, WalkResult, WalkStatus
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
from migrate_runner.migrations.scaffold import CreatedUnit, create_unit
from migrate_runner.migrations.state import StateStore, read_state, write_state

__all__ = [
    "AppliedUnit",
    "CreatedUnit",
    "Direction",
    "DownTarget",
    "MigrationSet",
    "MigrationState",
    "MigrationUnit",
    "OneStep",
    "StateStore",
    "ToEmpty",
    "ToTarget",
    "WalkResult",
    "WalkStatus",
    "create_unit",
    "read_state",
    "write_state",
]
