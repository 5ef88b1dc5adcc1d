"""Persistence for the applied-state record.

The record is a small indented JSON document so it can be diffed and
reviewed. Writes go to a temporary file in the target directory which is
then renamed over the previous record.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from migrate_runner.config import DEFAULT_STATE_FILE
from migrate_runner.errors import StateInconsistent
from migrate_runner.migrations.models import MigrationState

logger = logging.getLogger(__name__)


def read_state(path: Path) -> MigrationState:
    """Load the applied-state record.

    Args:
        path: State file location.

    Returns:
        The stored state, or an empty state if the file does not exist.

    Raises:
        StateInconsistent: If the file exists but cannot be read or parsed.
    """
    if not path.exists():
        return MigrationState()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return MigrationState.model_validate(data)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as e:
        raise StateInconsistent(f"Unreadable state file {path}: {e}") from e


def write_state(path: Path, state: MigrationState) -> None:
    """Atomically replace the applied-state record.

    Args:
        path: State file location.
        state: State to persist.

    Raises:
        OSError: If the record could not be written. The previous record is
            left in place.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    content = state.model_dump_json(indent=2)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise

    logger.debug(f"Wrote state with {len(state.applied)} applied unit(s) to {path}")


class StateStore:
    """State file bound to a path.

    Attributes:
        path: Location of the state file.

    Example:
        ```python
        store = StateStore(Path("migrations/.migrate"))
        state = store.read()
        store.write(state)
        ```
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path or DEFAULT_STATE_FILE

    def read(self) -> MigrationState:
        return read_state(self.path)

    def write(self, state: MigrationState) -> None:
        write_state(self.path, state)
