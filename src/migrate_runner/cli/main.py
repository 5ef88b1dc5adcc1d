"""Command-line interface for migrate-runner."""

import asyncio
import logging
import sys
from pathlib import Path

import click

from migrate_runner.__version__ import __version__
from migrate_runner.config import DEFAULT_MIGRATIONS_DIR, RunnerConfig


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--chdir",
    "-c",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory relative paths are resolved against",
)
@click.option(
    "--migrations-dir",
    "-d",
    envvar="MIGRATE_DIR",
    type=click.Path(path_type=Path),
    default=DEFAULT_MIGRATIONS_DIR,
    show_default=True,
    help="Directory containing migrations",
)
@click.option(
    "--state-file",
    "-f",
    envvar="MIGRATE_STATE_FILE",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Applied-state file [default: MIGRATIONS_DIR/.migrate]",
)
@click.option(
    "--template-file",
    "-t",
    envvar="MIGRATE_TEMPLATE",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Template used by 'create'",
)
@click.option(
    "--date-format",
    envvar="MIGRATE_DATE_FORMAT",
    default=None,
    help="strftime format for new migration identifiers",
)
@click.option("--database", envvar="MIGRATE_DATABASE", default=None, help="Database path or URL")
@click.option("--matches", default=None, help="Glob restricting migration file names")
@click.option("--verbose", "-v", is_flag=True, help="Enable info logging")
@click.pass_context
def main(
    ctx: click.Context,
    chdir: Path | None,
    migrations_dir: Path,
    state_file: Path | None,
    template_file: Path | None,
    date_format: str | None,
    database: str | None,
    matches: str | None,
    verbose: bool,
) -> None:
    """Migrate - apply and revert ordered database migrations.

    Commands:
    - init: create the migrations directory
    - create: scaffold a new migration
    - up / down: walk migrations forward or backward
    - list: show applied and pending migrations
    """
    logging.basicConfig(level=logging.INFO if verbose else logging.WARNING)

    config = RunnerConfig(
        migrations_dir=migrations_dir,
        state_file=state_file,
        template_file=template_file,
        date_format=date_format,
        database=database,
        matches=matches,
    )
    if chdir is not None:
        config = config.model_copy(update={"cwd": chdir})
    ctx.obj = config.resolved()


def _load_set(config: RunnerConfig, require_database: bool = True):
    """Build and load a MigrationSet, exiting on load errors."""
    from migrate_runner.driver import HandleDriver, create_driver
    from migrate_runner.errors import LoadError
    from migrate_runner.migrations import MigrationSet

    if config.database:
        try:
            driver = create_driver(config.database)
        except ValueError as e:
            click.echo(f"❌ Error: {e}")
            sys.exit(1)
    elif require_database:
        click.echo("❌ Error: database required")
        click.echo("")
        click.echo("Set the MIGRATE_DATABASE environment variable or pass --database.")
        sys.exit(1)
    else:
        driver = HandleDriver(None)

    migration_set = MigrationSet(
        config.migrations_dir, config.state_file, driver, matches=config.matches
    )

    def on_error(error: Exception) -> None:
        click.echo(f"❌ Failed to load migrations: {error}")

    def on_migration(unit, direction) -> None:
        click.echo(f"  {direction.value:>4} : {unit.identifier}")

    migration_set.on("error", on_error)
    migration_set.on("migration", on_migration)

    try:
        migration_set.load()
    except LoadError:
        sys.exit(1)
    return migration_set


def _run_walk(migration_set, walk) -> None:
    """Run a walk coroutine and report its outcome."""
    from migrate_runner.errors import MigrationError, StateWriteError, UnitExecutionError

    try:
        result = asyncio.run(walk)
    except StateWriteError as e:
        click.echo(f"❌ {e}")
        click.echo("The migration's changes are in place but were NOT recorded.")
        click.echo(f"Fix the state file at {migration_set.store.path} before running again.")
        sys.exit(1)
    except UnitExecutionError as e:
        click.echo(f"❌ {e}")
        click.echo(
            f"Stopped at {e.unit.identifier}; "
            f"{migration_set.position}/{len(migration_set.units)} migration(s) applied."
        )
        sys.exit(1)
    except MigrationError as e:
        click.echo(f"❌ {e}")
        sys.exit(1)

    if result.dry_run:
        click.echo(f"Would run {len(result.executed)} migration(s).")
    elif result.executed:
        click.echo(f"✓ migration complete ({len(result.executed)} {result.direction.value})")
    else:
        click.echo("✓ No migrations to run.")


@main.command()
@click.pass_obj
def init(config: RunnerConfig) -> None:
    """Create the migrations directory."""
    config.migrations_dir.mkdir(parents=True, exist_ok=True)
    click.echo(f"✓ Migrations directory: {config.migrations_dir}")


@main.command()
@click.argument("title", nargs=-1)
@click.option(
    "--extension",
    "-e",
    envvar="MIGRATE_EXTENSION",
    type=click.Choice([".py", ".yaml", ".yml"]),
    default=None,
    help="Migration file type [default: .py]",
)
@click.pass_obj
def create(config: RunnerConfig, title: tuple[str, ...], extension: str | None) -> None:
    """Create a new migration with empty up/down SQL scripts."""
    from migrate_runner.migrations import create_unit

    if extension:
        config = config.model_copy(update={"extension": extension})

    try:
        created = create_unit(
            config.migrations_dir,
            title=" ".join(title) or None,
            date_format=config.date_format,
            template_file=config.template_file,
            extension=config.extension,
        )
    except (OSError, ValueError) as e:
        click.echo(f"❌ Failed to create migration: {e}")
        sys.exit(1)

    click.echo(f"✓ Created {created.path}")
    click.echo(f"  up   : {created.up_script}")
    click.echo(f"  down : {created.down_script}")


@main.command()
@click.argument("target", required=False)
@click.option("--dry-run", is_flag=True, help="Show what would run without running it")
@click.pass_obj
def up(config: RunnerConfig, target: str | None, dry_run: bool) -> None:
    """Apply pending migrations, up to and including TARGET if given."""
    migration_set = _load_set(config, require_database=not dry_run)
    _run_walk(migration_set, migration_set.up(target, dry_run=dry_run))


@main.command()
@click.argument("target", required=False)
@click.option("--all", "revert_all", is_flag=True, help="Revert every applied migration")
@click.option("--dry-run", is_flag=True, help="Show what would run without running it")
@click.pass_obj
def down(config: RunnerConfig, target: str | None, revert_all: bool, dry_run: bool) -> None:
    """Revert migrations.

    Without arguments reverts the last applied migration. With TARGET,
    reverts every migration after TARGET. With --all, reverts everything.
    """
    from migrate_runner.migrations import OneStep, ToEmpty, ToTarget

    if target and revert_all:
        raise click.UsageError("TARGET and --all cannot be combined")

    if revert_all:
        down_target = ToEmpty()
    elif target:
        down_target = ToTarget(target)
    else:
        down_target = OneStep()

    migration_set = _load_set(config, require_database=not dry_run)
    _run_walk(migration_set, migration_set.down(down_target, dry_run=dry_run))


@main.command("list")
@click.pass_obj
def list_migrations(config: RunnerConfig) -> None:
    """Show applied and pending migrations."""
    migration_set = _load_set(config, require_database=False)
    status = migration_set.get_status()

    if not status["migrations"]:
        click.echo("No migrations found.")
        return

    for m in status["migrations"]:
        when = m["applied_at"] if m["applied"] else "pending"
        line = f"  [{when}] {m['id']}"
        if m["description"]:
            line += f": {m['description']}"
        click.echo(line)

    click.echo("")
    click.echo(f"Applied: {status['applied_count']}  Pending: {status['pending_count']}")


if __name__ == "__main__":
    main()
