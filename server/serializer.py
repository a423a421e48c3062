"""serializer.py: Encode/decode PersistedWorldData to and from byte streams.

The on-disk format is UTF-8 JSON:

    {"snapshot_version": 3, "server_start_time": "...", "parsed_batch_cells": [...], ...}

Contract used by WorldPersistence:
- serialize(stream, snapshot): write one complete document to an open binary stream.
- deserialize(stream) -> PersistedWorldData: read a document, upgrading older
  schema versions through snapshot_migrations first.

Every decode problem (bad bytes, bad JSON, wrong top-level type, failed migration,
malformed field values) surfaces as SnapshotSerializationError so callers only
have one exception type to contain.
"""

from __future__ import annotations

import json
from typing import BinaryIO

from snapshot import PersistedWorldData
from snapshot_migrations import VERSION_KEY, MigrationError, migration_registry


class SnapshotSerializationError(Exception):
    """Raised when a snapshot cannot be encoded or decoded."""
    pass


class SnapshotSerializer:
    def __init__(self, *, indent: int | None = None) -> None:
        self._indent = indent

    def dumps(self, snapshot: PersistedWorldData) -> bytes:
        try:
            doc = {VERSION_KEY: migration_registry.get_latest_version(), **snapshot.to_dict()}
            return json.dumps(doc, ensure_ascii=False, indent=self._indent).encode("utf-8")
        except (TypeError, ValueError) as e:
            raise SnapshotSerializationError(f"Could not encode snapshot: {e}") from e

    def loads(self, payload: bytes) -> PersistedWorldData:
        try:
            data = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise SnapshotSerializationError(f"Snapshot is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise SnapshotSerializationError(f"Snapshot root must be an object, got {type(data).__name__}")
        try:
            data = migration_registry.migrate(data)
            return PersistedWorldData.from_dict(data)
        except MigrationError as e:
            raise SnapshotSerializationError(f"Snapshot migration failed: {e}") from e
        except (TypeError, ValueError, AttributeError) as e:
            raise SnapshotSerializationError(f"Snapshot has malformed fields: {e}") from e

    def serialize(self, stream: BinaryIO, snapshot: PersistedWorldData) -> None:
        stream.write(self.dumps(snapshot))

    def deserialize(self, stream: BinaryIO) -> PersistedWorldData:
        return self.loads(stream.read())
