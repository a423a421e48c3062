"""World model: the live, in-memory aggregate of all persistent server state.

Concepts:
- World: one per process. Holds the persisted data subsets (see snapshot.py)
  plus runtime collaborators that are derived from those subsets when the World
  is built (world_factory.py) and are never written to disk themselves.
- TimeKeeper: remembers when the world was first started.
- SimulationOwnershipData: which player currently simulates which entity.
- PlayerManager: persisted player records plus who is connected right now.
- EventTriggerer: tiny event dispatcher for story/world events.
- EscapePodManager: assigns players to escape pods.
- EntitySimulation: decides initial simulation ownership for entities.
- BatchEntitySpawner: spawns entities for spatial batches the first time they are visited.

Simulation code that restructures the data subsets should hold
concurrency_utils.atomic(WORLD_LOCK) so saves see a consistent world.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from snapshot import (
    BaseData,
    EntityData,
    EscapePodData,
    GameData,
    InventoryData,
    Int3,
    PlayerData,
    VehicleData,
)

# Named lock (concurrency_utils) guarding structural changes to the World
WORLD_LOCK = "world"


class TimeKeeper:
    def __init__(self, server_start_time: datetime) -> None:
        self.server_start_time = server_start_time

    def elapsed_seconds(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now(timezone.utc)
        return max(0.0, (now - self.server_start_time).total_seconds())


@dataclass(frozen=True)
class SimulatedEntity:
    entity_id: str
    owner: str
    lock_type: str


class SimulationOwnershipData:
    """entity id -> (owner, lock type). Exclusive locks cannot be taken over."""

    EXCLUSIVE = "exclusive"
    TRANSIENT = "transient"

    def __init__(self) -> None:
        self._owners: Dict[str, SimulatedEntity] = {}

    def try_to_acquire(self, entity_id: str, owner: str, lock_type: str = TRANSIENT) -> bool:
        current = self._owners.get(entity_id)
        if current is not None and current.owner != owner and current.lock_type == self.EXCLUSIVE:
            return False
        self._owners[entity_id] = SimulatedEntity(entity_id, owner, lock_type)
        return True

    def owner_of(self, entity_id: str) -> Optional[str]:
        current = self._owners.get(entity_id)
        return current.owner if current else None

    def revoke_if_owner(self, entity_id: str, owner: str) -> bool:
        current = self._owners.get(entity_id)
        if current is None or current.owner != owner:
            return False
        del self._owners[entity_id]
        return True

    def revoke_all_for_owner(self, owner: str) -> List[str]:
        revoked = [eid for eid, sim in self._owners.items() if sim.owner == owner]
        for eid in revoked:
            del self._owners[eid]
        return revoked

    def __len__(self) -> int:
        return len(self._owners)


class PlayerManager:
    def __init__(self, player_data: PlayerData) -> None:
        self.player_data = player_data
        self._connected: Set[str] = set()

    def connect(self, name: str) -> dict:
        """Mark a player connected, creating their persisted record on first join."""
        record = self.player_data.players.setdefault(name, {"name": name})
        self._connected.add(name)
        return record

    def disconnect(self, name: str) -> None:
        self._connected.discard(name)

    def connected_players(self) -> List[str]:
        return sorted(self._connected)

    def known_players(self) -> List[str]:
        return sorted(self.player_data.players)


class EventTriggerer:
    def __init__(self, player_manager: PlayerManager) -> None:
        self.player_manager = player_manager
        self._listeners: Dict[str, List[Callable[[dict], None]]] = {}

    def on(self, event: str, listener: Callable[[dict], None]) -> None:
        self._listeners.setdefault(event, []).append(listener)

    def trigger(self, event: str, payload: Optional[dict] = None) -> int:
        """Call every listener for `event`; returns how many were called."""
        listeners = list(self._listeners.get(event, []))
        body = dict(payload or {})
        body.setdefault("players", self.player_manager.connected_players())
        for listener in listeners:
            listener(body)
        return len(listeners)


class EscapePodManager:
    def __init__(self, escape_pod_data: EscapePodData) -> None:
        self.escape_pod_data = escape_pod_data

    def assign_player(self, player: str, capacity: int = 4) -> dict:
        """Put the player in the first pod with room, creating a pod if all are full."""
        for pod in self.escape_pod_data.escape_pods:
            assigned = pod.setdefault("assigned_players", [])
            if player in assigned:
                return pod
            if len(assigned) < capacity:
                assigned.append(player)
                return pod
        pod = {"id": f"pod-{len(self.escape_pod_data.escape_pods) + 1}", "assigned_players": [player]}
        self.escape_pod_data.escape_pods.append(pod)
        return pod


class EntitySimulation:
    """Initial simulation ownership for entities.

    Entities whose tech type is in the server-spawned whitelist are simulated by
    whoever spawned them; everything else waits for a player to claim it.
    """

    def __init__(self,
                 entity_data: EntityData,
                 ownership: SimulationOwnershipData,
                 player_manager: PlayerManager,
                 server_spawned_whitelist: Set[str]) -> None:
        self.entity_data = entity_data
        self.ownership = ownership
        self.player_manager = player_manager
        self.server_spawned_whitelist = frozenset(server_spawned_whitelist)

    def is_whitelisted(self, entity_id: str) -> bool:
        entity = self.entity_data.entities.get(entity_id) or {}
        return entity.get("tech_type") in self.server_spawned_whitelist

    def assign_for_new_entity(self, entity_id: str, player: str) -> bool:
        if not self.is_whitelisted(entity_id):
            return False
        return self.ownership.try_to_acquire(entity_id, player, SimulationOwnershipData.TRANSIENT)

    def player_left(self, player: str) -> List[str]:
        return self.ownership.revoke_all_for_owner(player)


# Injected spawning collaborators (see world_factory.SpawnCatalog)
SpawnPointFactory = Callable[[Int3], List[dict]]
WorldEntityFactory = Callable[[dict], Optional[dict]]
PrefabFactory = Callable[[Int3, Dict[str, List[dict]]], List[dict]]
EntityBootstrapper = Callable[[dict], None]


class BatchEntitySpawner:
    def __init__(self,
                 spawn_point_factory: SpawnPointFactory,
                 world_entity_factory: WorldEntityFactory,
                 prefab_factory: PrefabFactory,
                 parsed_batch_cells: List[Int3],
                 serializer: Any,
                 entity_bootstrappers: Dict[str, EntityBootstrapper],
                 prefab_placeholder_groups: Dict[str, List[dict]]) -> None:
        self._spawn_point_factory = spawn_point_factory
        self._world_entity_factory = world_entity_factory
        self._prefab_factory = prefab_factory
        # Kept as the same list object so the snapshot sees batches parsed after load
        self._parsed_batches = parsed_batch_cells
        self._parsed_lookup: Set[Int3] = set(parsed_batch_cells)
        self.serializer = serializer
        self._bootstrappers = entity_bootstrappers
        self._prefab_placeholder_groups = prefab_placeholder_groups

    @property
    def serializable_parsed_batches(self) -> List[Int3]:
        return self._parsed_batches

    def is_batch_parsed(self, batch_id: Int3) -> bool:
        return batch_id in self._parsed_lookup

    def load_unspawned_entities(self, batch_id: Int3) -> List[dict]:
        """Spawn entities for a batch the first time it is visited; [] afterwards."""
        if batch_id in self._parsed_lookup:
            return []
        self._parsed_lookup.add(batch_id)
        self._parsed_batches.append(batch_id)

        spawned: List[dict] = []
        for spawn_point in self._spawn_point_factory(batch_id):
            entity = self._world_entity_factory(spawn_point)
            if entity is not None:
                spawned.append(entity)
        spawned.extend(self._prefab_factory(batch_id, self._prefab_placeholder_groups))

        for entity in spawned:
            bootstrapper = self._bootstrappers.get(str(entity.get("tech_type")))
            if bootstrapper is not None:
                bootstrapper(entity)
        return spawned


class World:
    def __init__(self) -> None:
        self.time_keeper: Optional[TimeKeeper] = None
        self.simulation_ownership_data: Optional[SimulationOwnershipData] = None
        self.player_manager: Optional[PlayerManager] = None
        self.event_triggerer: Optional[EventTriggerer] = None
        self.escape_pod_manager: Optional[EscapePodManager] = None
        self.entity_simulation: Optional[EntitySimulation] = None
        self.batch_entity_spawner: Optional[BatchEntitySpawner] = None
        # Persisted subsets
        self.entity_data: Optional[EntityData] = None
        self.base_data: Optional[BaseData] = None
        self.vehicle_data: Optional[VehicleData] = None
        self.inventory_data: Optional[InventoryData] = None
        self.player_data: Optional[PlayerData] = None
        self.game_data: Optional[GameData] = None
        self.escape_pod_data: Optional[EscapePodData] = None
        # Opaque pass-through from configuration
        self.game_mode: str = ""

    @property
    def server_start_time(self) -> Optional[datetime]:
        return self.time_keeper.server_start_time if self.time_keeper else None

    @property
    def parsed_batch_cells(self) -> List[Int3]:
        return self.batch_entity_spawner.serializable_parsed_batches if self.batch_entity_spawner else []
