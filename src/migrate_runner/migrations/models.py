"""Data models for the migration system.

This module defines the migration unit value object, the tagged down-walk
targets, and the Pydantic models for applied-state tracking.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Union

from pydantic import BaseModel, Field

UnitAction = Callable[[Any], Union[Awaitable[None], None]]


class Direction(str, Enum):
    """Direction of a migration walk."""

    UP = "up"
    DOWN = "down"


@dataclass(frozen=True)
class MigrationUnit:
    """One named, ordered, reversible change.

    Attributes:
        identifier: Unique sortable token (timestamp prefix plus slug).
        title: Human-readable slug portion of the identifier.
        up: Action applying the change; receives a database handle.
        down: Action reverting the change; receives a database handle.
        description: Optional free-text description.
        path: File the unit was loaded from, if any.
    """

    identifier: str
    title: str
    up: UnitAction
    down: UnitAction
    description: str | None = None
    path: Path | None = None

    def action(self, direction: Direction) -> UnitAction:
        """Return the action for the given direction."""
        return self.up if direction is Direction.UP else self.down


@dataclass(frozen=True)
class OneStep:
    """Revert exactly one unit."""


@dataclass(frozen=True)
class ToTarget:
    """Revert every unit after ``identifier``; the target stays applied."""

    identifier: str


@dataclass(frozen=True)
class ToEmpty:
    """Revert every applied unit."""


DownTarget = Union[OneStep, ToTarget, ToEmpty]


class AppliedUnit(BaseModel):
    """Record of an applied unit.

    Attributes:
        id: Unit identifier that was applied.
        applied_at: When the unit was applied.
    """

    id: str = Field(..., description="Unit identifier")
    applied_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When unit was applied",
    )


class MigrationState(BaseModel):
    """Applied-state record.

    Stored as JSON at migrations/.migrate unless overridden.

    Attributes:
        applied: Units currently applied, in application order.
        last_run: When the record was last written.
    """

    applied: list[AppliedUnit] = Field(
        default_factory=list, description="Applied units in application order"
    )
    last_run: datetime | None = Field(default=None, description="Last state write")

    @property
    def applied_ids(self) -> list[str]:
        return [entry.id for entry in self.applied]
