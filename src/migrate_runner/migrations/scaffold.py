"""Scaffolding for new migration units.

A new unit is three files: the unit itself, rendered from a template, and
empty ``.up.sql`` / ``.down.sql`` companion scripts whose names are
substituted into the template.
"""

import logging
import re
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

PYTHON_TEMPLATE = '''"""$title"""

from pathlib import Path

HERE = Path(__file__).parent


async def up(db):
    await db.executescript((HERE / "$up_script").read_text())


async def down(db):
    await db.executescript((HERE / "$down_script").read_text())
'''

YAML_TEMPLATE = """description: "$title"
up:
  file: $up_script
down:
  file: $down_script
"""

BUILTIN_TEMPLATES = {
    ".py": PYTHON_TEMPLATE,
    ".yaml": YAML_TEMPLATE,
    ".yml": YAML_TEMPLATE,
}


@dataclass
class CreatedUnit:
    """Files written for a new unit.

    Attributes:
        identifier: Identifier of the new unit.
        path: Unit file.
        up_script: Forward companion script.
        down_script: Reverse companion script.
    """

    identifier: str
    path: Path
    up_script: Path
    down_script: Path


def slugify(title: str) -> str:
    """Turn free text into a lowercase, dash-separated slug."""
    return re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")


def generate_identifier(
    title: str | None = None,
    date_format: str | None = None,
    now: datetime | None = None,
) -> str:
    """Build a time-prefixed identifier.

    Args:
        title: Optional free-text title; slugified into the suffix.
        date_format: ``strftime`` format for the prefix. Defaults to epoch
            milliseconds.
        now: Time to use instead of the current time.

    Returns:
        ``<prefix>-<slug>``, or ``<prefix>`` when the title is empty.
    """
    now = now or datetime.now(timezone.utc)
    prefix = now.strftime(date_format) if date_format else str(int(now.timestamp() * 1000))
    slug = slugify(title or "")
    return f"{prefix}-{slug}" if slug else prefix


def _write_new(path: Path, content: str) -> None:
    with path.open("x", encoding="utf-8") as f:
        f.write(content)


def create_unit(
    migrations_dir: Path,
    title: str | None = None,
    date_format: str | None = None,
    template_file: Path | None = None,
    extension: str = ".py",
    now: datetime | None = None,
) -> CreatedUnit:
    """Create a new unit file and its companion scripts.

    Args:
        migrations_dir: Directory to create the files in.
        title: Optional free-text title.
        date_format: ``strftime`` format for the identifier prefix.
        template_file: Custom template. A .py, .yaml or .yml suffix also sets
            the unit extension.
        extension: Unit file extension, unless the template file sets one.
        now: Time to use instead of the current time.

    Returns:
        CreatedUnit with the paths written.

    Raises:
        FileExistsError: If any of the files already exists.
        ValueError: If no template exists for ``extension``.
    """
    if template_file is not None:
        template = template_file.read_text(encoding="utf-8")
        if template_file.suffix in BUILTIN_TEMPLATES:
            extension = template_file.suffix
    elif extension in BUILTIN_TEMPLATES:
        template = BUILTIN_TEMPLATES[extension]
    else:
        raise ValueError(f"No built-in template for {extension!r} migrations")

    identifier = generate_identifier(title, date_format, now)
    migrations_dir.mkdir(parents=True, exist_ok=True)

    path = migrations_dir / f"{identifier}{extension}"
    up_script = migrations_dir / f"{identifier}.up.sql"
    down_script = migrations_dir / f"{identifier}.down.sql"

    content = string.Template(template).safe_substitute(
        identifier=identifier,
        title=title or identifier,
        up_script=up_script.name,
        down_script=down_script.name,
    )

    _write_new(up_script, "")
    _write_new(down_script, "")
    _write_new(path, content)

    logger.info(f"Created migration {path}")
    return CreatedUnit(
        identifier=identifier,
        path=path,
        up_script=up_script,
        down_script=down_script,
    )
