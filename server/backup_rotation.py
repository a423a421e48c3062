"""backup_rotation.py: Timestamped backup copies of the canonical snapshot.

Layout (see constants.py):
    <save_dir>/<save_name>.<ext>                        canonical snapshot
    <save_dir>/<save_name>-<DD-MM-YYYY_HH-MM-SS>.<ext>  backups

create_backup() copies the canonical file; prune() keeps the `hold_backups`
most recently written backups and deletes the rest. Ordering is by last-write
time, ties broken by file name.
"""

from __future__ import annotations

import glob
import logging
import os
import shutil
from datetime import datetime
from typing import Callable, List, Optional, Tuple

import constants as C
from safe_utils import safe_call_with_default

logger = logging.getLogger(__name__)


class BackupRotation:
    def __init__(self,
                 save_dir: str,
                 save_name: str,
                 extension: str,
                 hold_backups: int,
                 clock: Optional[Callable[[], datetime]] = None) -> None:
        if hold_backups < 1:
            raise ValueError("hold_backups must be a positive integer")
        self.save_dir = save_dir
        self.save_name = save_name
        self.extension = extension
        self.hold_backups = hold_backups
        self._clock = clock or datetime.now

    def backup_path(self, when: datetime) -> str:
        """Return a backup path for `when`, suffixed with _2, _3... if already taken."""
        stamp = when.strftime(C.BACKUP_TIMESTAMP_FORMAT)
        path = os.path.join(self.save_dir, C.backup_file_name(self.save_name, self.extension, stamp))
        n = 2
        while os.path.exists(path):
            path = os.path.join(self.save_dir, C.backup_file_name(self.save_name, self.extension, f"{stamp}_{n}"))
            n += 1
        return path

    def create_backup(self, source: str) -> str:
        """Copy `source` to a new timestamped backup file and return its path.

        Raises OSError on failure; the caller decides whether that aborts anything.
        """
        target = self.backup_path(self._clock())
        shutil.copy2(source, target)
        logger.info(f"Created world backup {os.path.basename(target)}")
        return target

    def list_backups(self) -> List[Tuple[float, str]]:
        """Return (last-write time, path) for every backup, oldest first.

        Only names that follow the backup layout count, so sibling saves that
        share the prefix (world-pvp.json) are never listed or pruned. Files
        that disappear while being listed are skipped.
        """
        pattern = os.path.join(glob.escape(self.save_dir), C.backup_glob(self.save_name, self.extension))
        entries: List[Tuple[float, str]] = []
        for path in glob.glob(pattern):
            if not C.is_backup_file_name(self.save_name, self.extension, os.path.basename(path)):
                continue
            mtime = safe_call_with_default(os.path.getmtime, None, path)
            if mtime is not None:
                entries.append((mtime, path))
        entries.sort()
        return entries

    def prune(self) -> List[str]:
        """Delete the oldest backups beyond the retention bound; return deleted paths."""
        backups = self.list_backups()
        excess = len(backups) - self.hold_backups
        if excess <= 0:
            return []

        deleted: List[str] = []
        for _, path in backups[:excess]:
            try:
                os.remove(path)
                deleted.append(path)
            except FileNotFoundError:
                # Already gone; still counts as pruned
                deleted.append(path)
            except OSError as e:
                logger.error(f"Could not delete old backup {path}: {e}")
        if deleted:
            logger.info(f"Pruned {len(deleted)} old world backup(s); keeping {self.hold_backups}")
        return deleted
