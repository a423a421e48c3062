from __future__ import annotations
"""Pytest shared fixtures.

Every test gets:
- TEST_MODE=1 so background timers stay off unless a test forces them,
- a clean environment (no WORLD_* variables leaking in from the shell),
- fresh persistence façade state and safe_call bookkeeping.

Fixtures build a temp-dir ServerConfig, a deterministic SpawnCatalog, a
WorldPersistence wired to both, and a World populated with sample data.
"""
import os
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from config import ServerConfig
from persistence_utils import reset_savers
from safe_utils import reset_seen_exceptions
from serializer import SnapshotSerializer
from snapshot import Int3
from world_factory import SpawnCatalog
from world_persistence import WorldPersistence


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in list(os.environ):
        if name.startswith('WORLD_'):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv('TEST_MODE', '1')
    reset_savers()
    reset_seen_exceptions()
    yield
    reset_savers()


@pytest.fixture
def save_dir(tmp_path: Path) -> Path:
    return tmp_path / "saves"


@pytest.fixture
def config(save_dir: Path) -> ServerConfig:
    return ServerConfig(
        save_dir=str(save_dir),
        save_name="world",
        file_extension="json",
        backup_interval=3,
        hold_backups=10,
        game_mode="CREATIVE",
        server_password="hunter2",
        admin_password="s3cret-admin",
        save_interval_ms=0,
        save_debounce_ms=50,
    )


def _spawn_points(batch_id: Int3):
    return [
        {"tech_type": "Reefback", "batch": batch_id.to_list(), "index": 0},
        {"tech_type": "Peeper", "batch": batch_id.to_list(), "index": 1},
    ]


@pytest.fixture
def catalog() -> SpawnCatalog:
    return SpawnCatalog(
        simulation_whitelist={"Reefback"},
        spawn_point_factory=_spawn_points,
    )


class StepClock:
    """Clock that advances one second per call, for distinct backup names."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


@pytest.fixture
def backup_clock() -> StepClock:
    return StepClock(datetime(2026, 10, 19, 12, 0, 0))


@pytest.fixture
def persistence(config, catalog, backup_clock) -> WorldPersistence:
    return WorldPersistence(SnapshotSerializer(), config, catalog=catalog, backup_clock=backup_clock)


def populate(world, marker: str = "a") -> None:
    world.entity_data.entities[f"ent-{marker}"] = {"tech_type": "Reefback", "position": [1.5, -20.0, 3.25]}
    world.entity_data.entities[f"ent-{marker}-2"] = {"tech_type": "Peeper", "position": [0, 0, 0]}
    world.base_data.completed_base_pieces.append({"id": f"base-{marker}", "tech_type": "BaseRoom"})
    world.vehicle_data.vehicles[f"veh-{marker}"] = {"tech_type": "Seamoth", "health": 87.5}
    world.inventory_data.inventory_items.append({"item_id": f"item-{marker}", "container": "locker-1"})
    world.inventory_data.modules.append({"slot": "SeamothModule1", "tech_type": "VehicleArmorPlating"})
    world.player_data.players[f"player-{marker}"] = {"name": f"player-{marker}", "permissions": "PLAYER"}
    world.game_data.pda_state.unlocked_tech_types.append("Seaglide")
    world.game_data.pda_state.partially_unlocked["Cyclops"] = 2
    world.game_data.story_goals.completed_goals.append(f"goal-{marker}")
    world.escape_pod_data.escape_pods.append({"id": "pod-1", "assigned_players": [f"player-{marker}"]})
    world.batch_entity_spawner.load_unspawned_entities(Int3(10, 18, 10))


@pytest.fixture
def populated_world(persistence):
    world = persistence.create_fresh_world()
    populate(world)
    return world


SUBSET_NAMES = (
    "entity_data",
    "base_data",
    "vehicle_data",
    "inventory_data",
    "player_data",
    "game_data",
    "escape_pod_data",
)


def assert_same_world_data(a, b) -> None:
    for name in SUBSET_NAMES:
        assert getattr(a, name) == getattr(b, name), name
    assert a.parsed_batch_cells == b.parsed_batch_cells
    assert a.server_start_time == b.server_start_time
