"""Snapshot schema migration system.

Upgrades save documents written by older builds to the current layout before
they are decoded. Each migration class handles one version increment and works
on the plain dict form of a snapshot (see snapshot.PersistedWorldData.to_dict).
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

VERSION_KEY = "snapshot_version"


class MigrationError(Exception):
    """Raised when a migration fails."""
    pass


class BaseMigration:
    """Base class for all migrations."""
    version = 0
    description = "Base Migration"

    def migrate(self, data: dict) -> dict:
        """Apply this migration. Should return a NEW dict, not mutate input."""
        return copy.deepcopy(data)


class Migration001_AddSnapshotVersion(BaseMigration):
    """Bootstrap migration that adds version tracking to snapshot data."""
    version = 1
    description = "Add snapshot_version field"

    def migrate(self, data: dict) -> dict:
        result = copy.deepcopy(data)
        result.setdefault(VERSION_KEY, 1)
        return result


class Migration002_BackfillGameData(BaseMigration):
    """Older saves stored game data without its nested PDA state / story goal records."""
    version = 2
    description = "Backfill nested game data records"

    def migrate(self, data: dict) -> dict:
        result = copy.deepcopy(data)
        game = result.get("game_data")
        if game is None:
            return result
        if not isinstance(game, dict):
            raise MigrationError(f"game_data must be an object, got {type(game).__name__}")
        if not isinstance(game.get("pda_state"), dict):
            game["pda_state"] = {}
        if not isinstance(game.get("story_goals"), dict):
            game["story_goals"] = {}
        return result


class Migration003_BatchCellLists(BaseMigration):
    """Convert legacy "x,y,z" batch cell strings into [x, y, z] lists."""
    version = 3
    description = "Normalize parsed batch cells"

    def _convert(self, cell: Any) -> Any:
        if isinstance(cell, str):
            parts = [p.strip() for p in cell.split(",")]
            if len(parts) != 3:
                raise MigrationError(f"Malformed batch cell: {cell!r}")
            try:
                return [int(p) for p in parts]
            except ValueError as e:
                raise MigrationError(f"Malformed batch cell: {cell!r}") from e
        return cell

    def migrate(self, data: dict) -> dict:
        result = copy.deepcopy(data)
        cells = result.get("parsed_batch_cells")
        if isinstance(cells, list):
            result["parsed_batch_cells"] = [self._convert(c) for c in cells]
        return result


class MigrationRegistry:
    """Registry that runs migrations in order."""

    def __init__(self) -> None:
        self.migrations: List[BaseMigration] = [
            Migration001_AddSnapshotVersion(),
            Migration002_BackfillGameData(),
            Migration003_BatchCellLists(),
        ]

    def list_migrations(self) -> List[Dict[str, Any]]:
        """List all registered migrations."""
        return [
            {"version": m.version, "description": m.description}
            for m in self.migrations
        ]

    def get_current_version(self, data: dict) -> int:
        """Get the schema version of the given snapshot data."""
        try:
            return int(data.get(VERSION_KEY, 0))
        except (TypeError, ValueError) as e:
            raise MigrationError(f"Invalid {VERSION_KEY}: {data.get(VERSION_KEY)!r}") from e

    def get_latest_version(self) -> int:
        """Get the latest schema version supported."""
        return max(m.version for m in self.migrations) if self.migrations else 0

    def needs_migration(self, data: dict) -> bool:
        return self.get_current_version(data) < self.get_latest_version()

    def get_migration_plan(self, data: dict) -> List[int]:
        """Get the list of migration versions that will be applied."""
        current = self.get_current_version(data)
        return [m.version for m in self.migrations if m.version > current]

    def migrate(self, data: dict) -> dict:
        """Apply all pending migrations to the data.

        Raises MigrationError for documents written by a newer build.
        """
        current = self.get_current_version(data)
        latest = self.get_latest_version()
        if current > latest:
            raise MigrationError(f"Snapshot version {current} is newer than supported version {latest}")
        if current == latest:
            return data

        result = copy.deepcopy(data)
        for migration in self.migrations:
            if migration.version > current:
                logger.info(f"Applying snapshot migration {migration.version}: {migration.description}")
                result = migration.migrate(result)
                result[VERSION_KEY] = migration.version
        return result


# Global singleton registry
migration_registry = MigrationRegistry()
