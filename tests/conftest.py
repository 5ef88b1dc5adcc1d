"""Shared pytest fixtures for migrate-runner tests.

This module provides temporary migration directories, unit-file writers,
and in-memory units with recording actions.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from migrate_runner.driver import HandleDriver
from migrate_runner.migrations import MigrationSet, MigrationUnit

# =============================================================================
# Directory Fixtures
# =============================================================================


@pytest.fixture
def migrations_dir(tmp_path: Path) -> Path:
    """Create a temporary migrations directory."""
    migrations = tmp_path / "migrations"
    migrations.mkdir()
    return migrations


@pytest.fixture
def state_file(migrations_dir: Path) -> Path:
    """Get the state file path inside the migrations directory."""
    return migrations_dir / ".migrate"


# =============================================================================
# Unit File Fixtures
# =============================================================================

PYTHON_UNIT = '''"""{description}"""


def up(db):
    db.append(("up", "{identifier}"))


def down(db):
    db.append(("down", "{identifier}"))
'''


@pytest.fixture
def write_python_unit(migrations_dir: Path) -> Callable[..., Path]:
    """Write a Python unit that records its calls into a list handle."""

    def write(identifier: str, description: str = "Test migration") -> Path:
        path = migrations_dir / f"{identifier}.py"
        path.write_text(PYTHON_UNIT.format(identifier=identifier, description=description))
        return path

    return write


# =============================================================================
# In-Memory Units
# =============================================================================


class Recorder:
    """Database stand-in recording every action call in order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []
        self.fail_on: set[tuple[str, str]] = set()

    def action(self, direction: str, identifier: str) -> Callable[[Any], Any]:
        async def run(db: Any) -> None:
            if (direction, identifier) in self.fail_on:
                raise RuntimeError(f"{identifier} {direction} exploded")
            self.calls.append((direction, identifier))

        return run

    def unit(self, identifier: str) -> MigrationUnit:
        return MigrationUnit(
            identifier=identifier,
            title=identifier.partition("-")[2],
            up=self.action("up", identifier),
            down=self.action("down", identifier),
        )


@pytest.fixture
def recorder() -> Recorder:
    """Create an action recorder."""
    return Recorder()


@pytest.fixture
def make_set(
    migrations_dir: Path, state_file: Path, recorder: Recorder
) -> Callable[..., MigrationSet]:
    """Build a loaded MigrationSet over in-memory units.

    Units are injected through the loader so that state validation and
    notifications behave as for files on disk.
    """

    def make(*identifiers: str) -> MigrationSet:
        units = [recorder.unit(identifier) for identifier in identifiers]
        migration_set = MigrationSet(migrations_dir, state_file, HandleDriver(recorder))
        with patch(
            "migrate_runner.migrations.loader.discover_units",
            return_value=sorted(units, key=lambda u: u.identifier),
        ):
            migration_set.load()
        return migration_set

    return make


# =============================================================================
# CLI Test Fixtures
# =============================================================================


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
