"""Version information for migrate-runner."""

from importlib.metadata import PackageNotFoundError, version
from pathlib import Path

# src/migrate_runner/__version__.py -> repository root
VERSION_FILE = Path(__file__).resolve().parents[2] / "VERSION"


def _get_version() -> str:
    """Read VERSION from a source checkout, else the installed metadata."""
    if VERSION_FILE.exists():
        return VERSION_FILE.read_text().strip()

    try:
        return version("migrate-runner")
    except PackageNotFoundError:
        return "0.0.0"


__version__ = _get_version()
