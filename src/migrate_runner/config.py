"""Runner configuration.

Paths may be given relative to a working directory; ``resolved()`` turns
them into absolute paths so the core never depends on the process cwd.
"""

from pathlib import Path

from pydantic import BaseModel, Field

DEFAULT_MIGRATIONS_DIR = Path("migrations")
DEFAULT_STATE_FILE = DEFAULT_MIGRATIONS_DIR / ".migrate"
SQLITE_SCHEME = "sqlite://"


class RunnerConfig(BaseModel):
    """Options shared by every command.

    Attributes:
        cwd: Base directory for relative paths.
        migrations_dir: Directory containing unit files.
        state_file: Applied-state record location. Defaults to ``.migrate`` in
            ``migrations_dir``.
        template_file: Custom template for ``create``.
        date_format: ``strftime`` format for generated identifiers.
        database: Database location for the execution driver.
        matches: Glob restricting unit file names.
        extension: Unit file extension for ``create``.
    """

    cwd: Path = Field(default_factory=Path.cwd, description="Working directory")
    migrations_dir: Path = Field(default=DEFAULT_MIGRATIONS_DIR, description="Unit directory")
    state_file: Path | None = Field(default=None, description="State file")
    template_file: Path | None = Field(default=None, description="Unit template")
    date_format: str | None = Field(default=None, description="Identifier date format")
    database: str | None = Field(default=None, description="Database location")
    matches: str | None = Field(default=None, description="Unit file name glob")
    extension: str = Field(default=".py", description="Unit file extension")

    def _resolve(self, path: Path) -> Path:
        path = path.expanduser()
        return path if path.is_absolute() else (self.cwd / path).resolve()

    def _resolve_database(self, database: str) -> str:
        if database.startswith(SQLITE_SCHEME):
            location = database[len(SQLITE_SCHEME) :]
            # Only sqlite:///relative.db is joined onto cwd
            relative = location[1:] if location.startswith("/") else ""
            if relative and not relative.startswith("/") and relative != ":memory:":
                return f"{SQLITE_SCHEME}/{self._resolve(Path(relative))}"
            return database
        if "://" in database or database == ":memory:":
            return database
        return str(self._resolve(Path(database)))

    def resolved(self) -> "RunnerConfig":
        """Return a copy with every path made absolute against ``cwd``."""
        cwd = self.cwd.expanduser().resolve()
        config = self.model_copy(update={"cwd": cwd})
        migrations_dir = config._resolve(self.migrations_dir)
        updates = {
            "migrations_dir": migrations_dir,
            "state_file": (
                config._resolve(self.state_file)
                if self.state_file
                else migrations_dir / DEFAULT_STATE_FILE.name
            ),
            "template_file": (
                config._resolve(self.template_file) if self.template_file else None
            ),
        }
        if self.database:
            updates["database"] = config._resolve_database(self.database)
        return config.model_copy(update=updates)
