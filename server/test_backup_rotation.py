"""Tests for BackupRotation: naming, listing and pruning against the retention bound."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path

import pytest

from backup_rotation import BackupRotation


def _make_backup(save_dir: Path, stamp: str, mtime: float) -> Path:
    path = save_dir / f"world-{stamp}.json"
    path.write_text(stamp)
    os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def rotation(save_dir: Path) -> BackupRotation:
    save_dir.mkdir(parents=True)
    return BackupRotation(str(save_dir), "world", "json", hold_backups=3,
                          clock=lambda: datetime(2026, 10, 19, 23, 59, 58))


def test_backup_path_layout(rotation, save_dir):
    path = rotation.backup_path(datetime(2026, 1, 2, 3, 4, 5))
    assert path == str(save_dir / "world-02-01-2026_03-04-05.json")


def test_backup_path_avoids_same_second_collision(rotation, save_dir):
    when = datetime(2026, 1, 2, 3, 4, 5)
    Path(rotation.backup_path(when)).write_text("first")
    Path(rotation.backup_path(when)).write_text("second")

    assert rotation.backup_path(when) == str(save_dir / "world-02-01-2026_03-04-05_3.json")


def test_create_backup_copies_source(rotation, save_dir):
    source = save_dir / "world.json"
    source.write_text('{"snapshot": 1}')

    target = rotation.create_backup(str(source))

    assert os.path.basename(target) == "world-19-10-2026_23-59-58.json"
    assert Path(target).read_text() == '{"snapshot": 1}'


def test_create_backup_missing_source_raises(rotation, save_dir):
    with pytest.raises(OSError):
        rotation.create_backup(str(save_dir / "world.json"))


def test_list_ignores_canonical_and_other_saves(rotation, save_dir):
    (save_dir / "world.json").write_text("canonical")
    (save_dir / "other-01-01-2026_00-00-00.json").write_text("other save")
    (save_dir / "world-01-01-2026_00-00-00.txt").write_text("wrong extension")
    kept = _make_backup(save_dir, "01-01-2026_00-00-00", 1000)

    assert rotation.list_backups() == [(1000, str(kept))]


def test_prune_noop_under_bound(rotation, save_dir):
    for i in range(3):
        _make_backup(save_dir, f"0{i}-01-2026_00-00-00", 1000 + i)

    assert rotation.prune() == []
    assert len(rotation.list_backups()) == 3


def test_prune_deletes_oldest_by_write_time(rotation, save_dir):
    # Names deliberately out of order relative to write times
    newest = _make_backup(save_dir, "01-01-2026_00-00-00", 5000)
    oldest = _make_backup(save_dir, "09-01-2026_00-00-00", 1000)
    middle = _make_backup(save_dir, "05-01-2026_00-00-00", 3000)
    second = _make_backup(save_dir, "03-01-2026_00-00-00", 2000)
    recent = _make_backup(save_dir, "07-01-2026_00-00-00", 4000)

    deleted = rotation.prune()

    assert sorted(deleted) == sorted([str(oldest), str(second)])
    remaining = [p for _, p in rotation.list_backups()]
    assert remaining == [str(middle), str(recent), str(newest)]


def test_prune_uses_configured_bound(save_dir):
    save_dir.mkdir(parents=True)
    rotation = BackupRotation(str(save_dir), "world", "json", hold_backups=1)
    for i in range(25):
        _make_backup(save_dir, f"{i:02d}-01-2026_00-00-00", 1000 + i)

    rotation.prune()

    assert [os.path.basename(p) for _, p in rotation.list_backups()] == ["world-24-01-2026_00-00-00.json"]


def test_prune_ties_break_by_name(rotation, save_dir):
    for day in ("01", "02", "03", "04"):
        _make_backup(save_dir, f"{day}-01-2026_00-00-00", 1000)

    rotation.prune()

    names = [os.path.basename(p) for _, p in rotation.list_backups()]
    assert names == [
        "world-02-01-2026_00-00-00.json",
        "world-03-01-2026_00-00-00.json",
        "world-04-01-2026_00-00-00.json",
    ]


def test_prune_logs_delete_errors_and_continues(rotation, save_dir, monkeypatch, caplog):
    for i in range(5):
        _make_backup(save_dir, f"0{i}-01-2026_00-00-00", 1000 + i)
    real_remove = os.remove

    def _remove(path):
        if path.endswith("00-01-2026_00-00-00.json"):
            raise PermissionError("locked")
        real_remove(path)

    monkeypatch.setattr("backup_rotation.os.remove", _remove)
    with caplog.at_level("ERROR"):
        deleted = rotation.prune()

    assert [os.path.basename(p) for p in deleted] == ["world-01-01-2026_00-00-00.json"]
    assert any("Could not delete old backup" in r.getMessage() for r in caplog.records)


def test_hold_backups_must_be_positive(save_dir):
    with pytest.raises(ValueError):
        BackupRotation(str(save_dir), "world", "json", hold_backups=0)


def test_prune_leaves_sibling_saves_alone(save_dir):
    save_dir.mkdir(parents=True)
    sibling = save_dir / "world-pvp.json"
    sibling.write_text("another server's live save")
    os.utime(sibling, (1000, 1000))
    sibling_backup = save_dir / "world-pvp-01-01-2026_00-00-00.json"
    sibling_backup.write_text("another server's backup")
    os.utime(sibling_backup, (1000, 1000))
    _make_backup(save_dir, "02-01-2026_00-00-00", 2000)
    kept = _make_backup(save_dir, "03-01-2026_00-00-00", 3000)

    rotation = BackupRotation(str(save_dir), "world", "json", hold_backups=1)
    rotation.prune()

    assert sibling.exists()
    assert sibling_backup.exists()
    assert rotation.list_backups() == [(3000, str(kept))]


def test_save_name_with_glob_characters_is_pruned(save_dir):
    save_dir.mkdir(parents=True)
    rotation = BackupRotation(str(save_dir), "world[eu]", "json", hold_backups=1)
    for i in range(3):
        path = save_dir / f"world[eu]-0{i}-01-2026_00-00-00.json"
        path.write_text(str(i))
        os.utime(path, (1000 + i, 1000 + i))

    deleted = rotation.prune()

    assert len(deleted) == 2
    assert [os.path.basename(p) for _, p in rotation.list_backups()] == ["world[eu]-02-01-2026_00-00-00.json"]
