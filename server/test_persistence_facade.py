"""Tests for the centralized persistence façade.

This verifies that:
1. immediate and debounced saves reach the disk
2. the debounced saver writes the latest World handed to it
3. stats tracking works (including failed saves)
4. flush_all_saves() forces pending writes
"""

from __future__ import annotations

import time
from pathlib import Path

from conftest import populate
from config import ServerConfig
from persistence_utils import flush_all_saves, get_save_stats, save_world
from serializer import SnapshotSerializer
from world_persistence import WorldPersistence


def _entities_on_disk(persistence):
    return set(persistence.load().entity_data.entities)


def test_immediate_save(persistence, populated_world, save_dir: Path):
    save_world(persistence, populated_world, debounced=False)

    assert (save_dir / "world.json").exists()
    assert "ent-a" in _entities_on_disk(persistence)
    stats = get_save_stats()
    assert stats['immediate_calls'] == 1
    assert stats['last_save_time'] is not None


def test_debounced_save_coalesces(persistence, populated_world, save_dir: Path, monkeypatch):
    monkeypatch.setenv('WORLD_SAVE_DEBOUNCE_MS', '50')
    calls = []
    real_save = persistence.save
    monkeypatch.setattr(persistence, "save", lambda w: calls.append(w) or real_save(w))

    save_world(persistence, populated_world)
    populated_world.entity_data.entities["late"] = {"tech_type": "Gasopod"}
    save_world(persistence, populated_world)
    save_world(persistence, populated_world)

    time.sleep(0.3)

    assert len(calls) == 1
    assert "late" in _entities_on_disk(persistence)
    assert get_save_stats()['debounced_calls'] == 3


def test_debounced_save_uses_latest_world(persistence, populated_world, monkeypatch):
    monkeypatch.setenv('WORLD_SAVE_DEBOUNCE_MS', '10000')
    replacement = persistence.create_fresh_world()
    populate(replacement, marker="b")

    save_world(persistence, populated_world)
    save_world(persistence, replacement)
    flush_all_saves()

    assert _entities_on_disk(persistence) == {"ent-b", "ent-b-2"}


def test_flush_all_saves(persistence, populated_world, save_dir: Path, monkeypatch):
    monkeypatch.setenv('WORLD_SAVE_DEBOUNCE_MS', '10000')

    save_world(persistence, populated_world)
    assert not (save_dir / "world.json").exists()

    flush_all_saves()
    assert (save_dir / "world.json").exists()

    # Nothing pending any more: a second flush is a no-op
    before = get_save_stats()['last_save_time']
    flush_all_saves()
    assert get_save_stats()['last_save_time'] == before


def test_failed_saves_are_counted(catalog, populated_world, tmp_path: Path):
    blocker = tmp_path / "blocker"
    blocker.write_text("file")
    config = ServerConfig(save_dir=str(blocker / "saves"))
    persistence = WorldPersistence(SnapshotSerializer(), config, catalog=catalog)

    save_world(persistence, populated_world, debounced=False)

    stats = get_save_stats()
    assert stats['errors'] == 1
    assert stats['last_save_time'] is None


def test_multiple_paths_get_separate_savers(config, catalog, populated_world, tmp_path: Path, monkeypatch):
    monkeypatch.setenv('WORLD_SAVE_DEBOUNCE_MS', '10000')
    other = WorldPersistence(
        SnapshotSerializer(),
        ServerConfig(save_dir=str(tmp_path / "other"), save_name="second"),
        catalog=catalog,
    )
    first = WorldPersistence(SnapshotSerializer(), config, catalog=catalog)

    save_world(first, populated_world)
    save_world(other, populated_world)

    assert get_save_stats()['active_savers'] == 2
    flush_all_saves()
    assert (tmp_path / "other" / "second.json").exists()
    assert Path(config.canonical_path).exists()
