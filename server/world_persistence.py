"""world_persistence.py: Save and load the World.

Save path (WorldPersistence.save):
    1. Under the world lock, copy references to the World's data subsets into a
       PersistedWorldData and encode it into memory. Simulation code holding
       atomic(WORLD_LOCK) therefore never races with the encoder.
    2. Under the per-file save lock (single-flight), ensure the save directory,
       bump the save counter, take a backup every `backup_interval` saves (then
       prune old backups), and write the new snapshot to a temp file that is
       atomically renamed over the canonical file.

The world lock is released before the save lock is taken, so a simulation
thread that holds atomic(WORLD_LOCK) and saves never waits on a writer that
waits on it. Each encoded snapshot gets a sequence number; a snapshot older
than the one already written is dropped instead of overwriting newer data.

Load path (WorldPersistence.load):
    canonical file missing      -> info log, fresh World
    unreadable / invalid data   -> error log, fresh World
    valid snapshot              -> World built by WorldFactory

Neither path raises: persistence problems are logged and the server keeps
running on the best World it has.
"""

from __future__ import annotations

import io
import logging
import os
import tempfile
from datetime import datetime
from typing import Callable, List, Optional

import constants as C
from backup_rotation import BackupRotation
from concurrency_utils import atomic
from config import ServerConfig
from safe_utils import safe_call
from snapshot import PersistedWorldData
from world import WORLD_LOCK, World
from world_factory import SpawnCatalog, WorldFactory

logger = logging.getLogger(__name__)


class WorldPersistence:
    def __init__(self,
                 serializer,
                 config: ServerConfig,
                 catalog: Optional[SpawnCatalog] = None,
                 world_factory: Optional[WorldFactory] = None,
                 backup_clock: Optional[Callable[[], datetime]] = None) -> None:
        self.serializer = serializer
        self.config = config
        self.world_factory = world_factory or WorldFactory(config, serializer, catalog)
        self.backups = BackupRotation(config.save_dir,
                                      config.save_name,
                                      config.file_extension,
                                      config.hold_backups,
                                      clock=backup_clock)
        # Saves since the last backup copy
        self._backup_counter = 0
        self._save_lock_name = f"save:{os.path.abspath(self.canonical_path)}"
        # Sequence of encoded snapshots, and of the last one written to disk
        self._snapshot_seq = 0
        self._written_seq = 0

    @property
    def canonical_path(self) -> str:
        return self.config.canonical_path

    # --- Save ---
    def build_snapshot(self, world: World) -> PersistedWorldData:
        """Project the World onto a snapshot. Subsets are shared, not copied."""
        return PersistedWorldData(
            server_start_time=world.server_start_time,
            parsed_batch_cells=world.parsed_batch_cells,
            entity_data=world.entity_data,
            base_data=world.base_data,
            vehicle_data=world.vehicle_data,
            inventory_data=world.inventory_data,
            player_data=world.player_data,
            game_data=world.game_data,
            escape_pod_data=world.escape_pod_data,
        )

    def save(self, world: World) -> bool:
        """Persist the World. Returns True if the canonical file was written.

        Never raises; failures are logged and the previous save stays in place.
        Concurrent calls for the same save file write one at a time. Safe to
        call while holding atomic(WORLD_LOCK).
        """
        try:
            with atomic(WORLD_LOCK):
                snapshot = self.build_snapshot(world)
                buffer = io.BytesIO()
                self.serializer.serialize(buffer, snapshot)
                self._snapshot_seq += 1
                seq = self._snapshot_seq
            with atomic(self._save_lock_name):
                if seq < self._written_seq:
                    logger.debug("Skipped stale world snapshot; a newer one is already saved.")
                    return True
                self._save_all(buffer.getvalue())
                self._written_seq = seq
            logger.debug("World state saved.")
            return True
        except Exception as e:
            logger.error(f"Could not save world: {e}", exc_info=True)
            return False

    def _save_all(self, payload: bytes) -> None:
        os.makedirs(self.config.save_dir or ".", exist_ok=True)

        self._backup_counter += 1
        if self._backup_counter >= self.config.backup_interval and os.path.exists(self.canonical_path):
            self._backup_current_save()

        self._write_atomic(payload)

    def _backup_current_save(self) -> None:
        try:
            self.backups.create_backup(self.canonical_path)
        except OSError as e:
            # Counter stays armed so the next save retries the backup
            logger.error(f"Could not back up world save: {e}")
            return
        self._backup_counter = 0
        try:
            self.backups.prune()
        except OSError as e:
            logger.error(f"Could not remove old world backups: {e}")

    def _write_atomic(self, payload: bytes) -> None:
        save_dir = self.config.save_dir or "."
        fd, tmp_path = tempfile.mkstemp(prefix=f"{C.TEMP_FILE_PREFIX}{self.config.save_name}.",
                                        suffix=C.TEMP_FILE_SUFFIX,
                                        dir=save_dir)
        try:
            with os.fdopen(fd, "wb") as stream:
                stream.write(payload)
                stream.flush()
                os.fsync(stream.fileno())
            os.replace(tmp_path, self.canonical_path)
        finally:
            if os.path.exists(tmp_path):
                safe_call(os.remove, tmp_path)

    # --- Load ---
    def read_snapshot(self) -> Optional[PersistedWorldData]:
        """Read and validate the canonical snapshot; None if absent or unusable."""
        path = self.canonical_path
        try:
            with open(path, "rb") as stream:
                snapshot = self.serializer.deserialize(stream)
        except FileNotFoundError:
            logger.info("No previous save file found - creating a new one.")
            return None
        except Exception as e:
            logger.error(f"Could not load world from {path}: {e} - creating a new one.")
            return None

        try:
            valid = snapshot is not None and snapshot.is_valid()
        except Exception as e:
            logger.error(f"Could not validate world save {path}: {e}")
            valid = False
        if not valid:
            logger.error(f"Persisted state in {path} is not valid - creating a new one.")
            return None
        return snapshot

    def load_from_file(self) -> Optional[World]:
        snapshot = self.read_snapshot()
        if snapshot is None:
            return None
        try:
            return self.world_factory.build_from_snapshot(snapshot, self.config.game_mode)
        except Exception as e:
            logger.error(f"Could not build world from {self.canonical_path}: {e} - creating a new one.")
            return None

    def load(self) -> World:
        """Return the saved World, or a fresh one if there is no usable save."""
        world = self.load_from_file()
        if world is not None:
            logger.info(f"Loaded world from {self.canonical_path}")
            return world
        return self.create_fresh_world()

    def create_fresh_world(self) -> World:
        return self.world_factory.build_fresh(self.config.game_mode)

    # --- Maintenance ---
    def list_backups(self) -> List[str]:
        """Backup paths, newest first."""
        return [path for _, path in reversed(self.backups.list_backups())]

    def purge(self) -> int:
        """Delete the canonical save and every backup; return how many files were removed."""
        removed = 0
        with atomic(self._save_lock_name):
            targets = [self.canonical_path] + [path for _, path in self.backups.list_backups()]
            for path in targets:
                try:
                    os.remove(path)
                    removed += 1
                except FileNotFoundError:
                    continue
            self._backup_counter = 0
        logger.info(f"Purged {removed} world save file(s) from {self.config.save_dir}")
        return removed
