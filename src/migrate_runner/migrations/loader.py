"""Discovery and loading of migration units.

Unit files live in a single directory and are named ``<prefix>-<title>``
where the prefix starts with a digit, e.g. ``1760781600000-add-users.py``.
Two formats are supported:

Python modules define ``up(db)`` and ``down(db)``, either plain functions
or coroutines::

    async def up(db):
        await db.executescript("CREATE TABLE users (id INTEGER PRIMARY KEY)")

    async def down(db):
        await db.executescript("DROP TABLE users")

YAML documents give SQL for each direction, inline or by file reference::

    description: Add users table
    up:
      file: 1760781600000-add-users.up.sql
    down:
      - DROP TABLE users
"""

import fnmatch
import importlib.util
import logging
from pathlib import Path
from typing import Any

import yaml

from migrate_runner.errors import DuplicateIdentifier, MalformedUnit, StateInconsistent
from migrate_runner.migrations.models import MigrationState, MigrationUnit, UnitAction
from migrate_runner.migrations.state import read_state

logger = logging.getLogger(__name__)

PYTHON_SUFFIXES = (".py",)
YAML_SUFFIXES = (".yaml", ".yml")
UNIT_SUFFIXES = PYTHON_SUFFIXES + YAML_SUFFIXES


def is_unit_file(path: Path, matches: str | None = None) -> bool:
    """Check whether a file follows the unit naming convention."""
    if not path.is_file() or path.suffix not in UNIT_SUFFIXES:
        return False
    if not path.stem or not path.stem[0].isdigit():
        return False
    if matches and not fnmatch.fnmatch(path.name, matches):
        return False
    return True


def title_from_identifier(identifier: str) -> str:
    """Extract the slug portion of an identifier."""
    _, sep, title = identifier.partition("-")
    return title if sep and title else identifier


def _load_python_unit(path: Path) -> MigrationUnit:
    module_name = f"migrate_runner_units.{path.stem.replace('-', '_').replace('.', '_')}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise MalformedUnit(f"Cannot import migration {path}")

    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except Exception as e:
        raise MalformedUnit(f"Failed to import migration {path}: {e}") from e

    up = getattr(module, "up", None)
    down = getattr(module, "down", None)
    if not callable(up) or not callable(down):
        raise MalformedUnit(f"Migration {path} must define up() and down()")

    description = getattr(module, "description", None)
    if description is None and module.__doc__:
        description = module.__doc__.strip().splitlines()[0]

    return MigrationUnit(
        identifier=path.stem,
        title=title_from_identifier(path.stem),
        up=up,
        down=down,
        description=description,
        path=path,
    )


def _sql_action(spec: Any, base_dir: Path, path: Path, key: str) -> UnitAction:
    """Build an action running the SQL described by a YAML ``up``/``down`` entry."""
    if isinstance(spec, str):
        statements = [spec]
    elif isinstance(spec, list) and all(isinstance(s, str) for s in spec):
        statements = list(spec)
    elif isinstance(spec, dict) and isinstance(spec.get("file"), str):
        script_path = base_dir / spec["file"]

        async def run_file(db: Any) -> None:
            await db.executescript(script_path.read_text(encoding="utf-8"))

        return run_file
    else:
        raise MalformedUnit(
            f"Migration {path}: '{key}' must be SQL text, a list of statements, or {{file: ...}}"
        )

    async def run_statements(db: Any) -> None:
        for statement in statements:
            await db.executescript(statement)

    return run_statements


def _load_yaml_unit(path: Path) -> MigrationUnit:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        raise MalformedUnit(f"Cannot read migration {path}: {e}") from e
    except yaml.YAMLError as e:
        raise MalformedUnit(f"Failed to parse migration {path}: {e}") from e

    if not isinstance(data, dict) or "up" not in data or "down" not in data:
        raise MalformedUnit(f"Migration {path} must define 'up' and 'down'")

    return MigrationUnit(
        identifier=path.stem,
        title=title_from_identifier(path.stem),
        up=_sql_action(data["up"], path.parent, path, "up"),
        down=_sql_action(data["down"], path.parent, path, "down"),
        description=data.get("description"),
        path=path,
    )


def load_unit(path: Path) -> MigrationUnit:
    """Load a single unit file.

    Raises:
        MalformedUnit: If the file cannot be loaded or lacks up/down.
    """
    if path.suffix in YAML_SUFFIXES:
        return _load_yaml_unit(path)
    return _load_python_unit(path)


def discover_units(directory: Path, matches: str | None = None) -> list[MigrationUnit]:
    """Load all unit files from a directory.

    Args:
        directory: Directory containing unit files.
        matches: Optional glob further restricting file names.

    Returns:
        Units sorted by identifier.

    Raises:
        MalformedUnit: If a matching file cannot be loaded.
        DuplicateIdentifier: If two files share an identifier.
    """
    if not directory.is_dir():
        return []

    units: dict[str, MigrationUnit] = {}
    for path in sorted(directory.iterdir()):
        if not is_unit_file(path, matches):
            continue

        unit = load_unit(path)
        if unit.identifier in units:
            other = units[unit.identifier].path
            raise DuplicateIdentifier(
                f"Duplicate migration identifier {unit.identifier!r}: {other} and {path}"
            )
        units[unit.identifier] = unit

    logger.debug(f"Discovered {len(units)} migration(s) in {directory}")
    return sorted(units.values(), key=lambda u: u.identifier)


def validate_state(units: list[MigrationUnit], state: MigrationState) -> None:
    """Check that the applied units form a leading prefix of ``units``.

    Raises:
        StateInconsistent: If an applied identifier is unknown or the applied
            identifiers are not exactly the first units in order.
    """
    known = {unit.identifier for unit in units}
    applied = state.applied_ids

    unknown = [identifier for identifier in applied if identifier not in known]
    if unknown:
        raise StateInconsistent(f"State references unknown migration(s): {', '.join(unknown)}")

    expected = [unit.identifier for unit in units[: len(applied)]]
    if applied != expected:
        missing = [identifier for identifier in expected if identifier not in applied]
        raise StateInconsistent(
            "Applied migrations are not a contiguous prefix; "
            f"applied {applied}, expected {expected} (not applied: {', '.join(missing) or '-'})"
        )


def load(
    directory: Path, state_file: Path, matches: str | None = None
) -> tuple[list[MigrationUnit], MigrationState]:
    """Discover units and attach the recorded state.

    Args:
        directory: Directory containing unit files.
        state_file: Applied-state record location.
        matches: Optional glob further restricting file names.

    Returns:
        Tuple of (sorted units, validated state).

    Raises:
        LoadError: If units or state cannot be loaded or do not agree.
    """
    units = discover_units(directory, matches)
    state = read_state(state_file)
    validate_state(units, state)
    return units, state
