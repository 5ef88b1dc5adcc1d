"""Execution drivers connecting unit actions to a database.

Quick Start:
    ```python
    from migrate_runner.driver import create_driver

    driver = create_driver("sqlite:///app.db")
    async with driver:
        await driver.run(unit.up)
    ```
"""

from migrate_runner.driver.base import ExecutionDriver, HandleDriver
from migrate_runner.driver.sqlite import SQLiteDriver, create_driver

__all__ = [
    "ExecutionDriver",
    "HandleDriver",
    "SQLiteDriver",
    "create_driver",
]
