"""world_factory.py: Assemble a live World from snapshot data or defaults.

Everything the World needs from outside (simulation whitelist, spawn point /
entity / prefab factories, entity bootstrappers, prefab placeholder groups) is
passed in through a SpawnCatalog when the factory is constructed. Nothing is
looked up from process-wide state.

Building is pure wiring: no I/O and no failure modes of its own. Invalid
snapshots must already have been rejected by the loader (see
PersistedWorldData.is_valid).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set

from config import ServerConfig
from security_utils import describe_secret
from snapshot import (
    BaseData,
    EntityData,
    EscapePodData,
    GameData,
    InventoryData,
    Int3,
    PersistedWorldData,
    PlayerData,
    VehicleData,
)
from world import (
    BatchEntitySpawner,
    EntityBootstrapper,
    EntitySimulation,
    EscapePodManager,
    EventTriggerer,
    PlayerManager,
    PrefabFactory,
    SimulationOwnershipData,
    SpawnPointFactory,
    TimeKeeper,
    World,
    WorldEntityFactory,
)

logger = logging.getLogger(__name__)


def _no_spawn_points(batch_id: Int3) -> List[dict]:
    return []


def _entity_from_spawn_point(spawn_point: dict) -> Optional[dict]:
    return dict(spawn_point) if spawn_point else None


def _no_prefabs(batch_id: Int3, placeholder_groups: Dict[str, List[dict]]) -> List[dict]:
    return []


@dataclass
class SpawnCatalog:
    """Externally supplied collaborators for world construction."""

    simulation_whitelist: Set[str] = field(default_factory=set)
    spawn_point_factory: SpawnPointFactory = _no_spawn_points
    world_entity_factory: WorldEntityFactory = _entity_from_spawn_point
    prefab_factory: PrefabFactory = _no_prefabs
    entity_bootstrappers: Dict[str, EntityBootstrapper] = field(default_factory=dict)
    prefab_placeholder_groups: Dict[str, List[dict]] = field(default_factory=dict)


class WorldFactory:
    def __init__(self,
                 config: ServerConfig,
                 serializer,
                 catalog: Optional[SpawnCatalog] = None,
                 clock: Optional[Callable[[], datetime]] = None) -> None:
        self.config = config
        self.serializer = serializer
        self.catalog = catalog or SpawnCatalog()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def build(self,
              server_start_time: datetime,
              entity_data: EntityData,
              base_data: BaseData,
              vehicle_data: VehicleData,
              inventory_data: InventoryData,
              player_data: PlayerData,
              game_data: GameData,
              parsed_batch_cells: List[Int3],
              escape_pod_data: EscapePodData,
              game_mode: str) -> World:
        world = World()
        world.time_keeper = TimeKeeper(server_start_time)

        world.simulation_ownership_data = SimulationOwnershipData()
        world.player_manager = PlayerManager(player_data)
        world.entity_data = entity_data
        world.event_triggerer = EventTriggerer(world.player_manager)
        world.base_data = base_data
        world.vehicle_data = vehicle_data
        world.inventory_data = inventory_data
        world.player_data = player_data
        world.game_data = game_data
        world.escape_pod_data = escape_pod_data
        world.escape_pod_manager = EscapePodManager(escape_pod_data)

        catalog = self.catalog
        world.entity_simulation = EntitySimulation(world.entity_data,
                                                   world.simulation_ownership_data,
                                                   world.player_manager,
                                                   catalog.simulation_whitelist)
        world.game_mode = game_mode

        world.batch_entity_spawner = BatchEntitySpawner(catalog.spawn_point_factory,
                                                        catalog.world_entity_factory,
                                                        catalog.prefab_factory,
                                                        parsed_batch_cells,
                                                        self.serializer,
                                                        catalog.entity_bootstrappers,
                                                        catalog.prefab_placeholder_groups)

        self._log_startup_summary(game_mode)
        return world

    def build_from_snapshot(self, snapshot: PersistedWorldData, game_mode: str) -> World:
        return self.build(snapshot.server_start_time,
                          snapshot.entity_data,
                          snapshot.base_data,
                          snapshot.vehicle_data,
                          snapshot.inventory_data,
                          snapshot.player_data,
                          snapshot.game_data,
                          snapshot.parsed_batch_cells,
                          snapshot.escape_pod_data,
                          game_mode)

    def build_fresh(self, game_mode: str) -> World:
        """Build a World with empty default subsets, started now."""
        return self.build(self._clock(),
                          EntityData(),
                          BaseData(),
                          VehicleData(),
                          InventoryData(),
                          PlayerData(),
                          GameData.create_default(),
                          [],
                          EscapePodData(),
                          game_mode)

    def _log_startup_summary(self, game_mode: str) -> None:
        logger.info(f"World GameMode: {game_mode}")
        logger.info(f"Server Password: {describe_secret(self.config.server_password, unset='None. Public Server.')}")
        logger.info(f"Admin Password: {describe_secret(self.config.admin_password)}")
