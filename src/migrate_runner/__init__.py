"""migrate-runner.

Apply ordered, reversible migration units to a database and track which
ones are applied so runs are idempotent and resumable.
"""

from migrate_runner.__version__ import __version__

__all__ = ["__version__"]
