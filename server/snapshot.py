"""Snapshot schema: the serializable projection of a World.

Concepts:
- Int3: integer batch cell coordinate used to key spatial chunks.
- Data subsets (EntityData, BaseData, VehicleData, InventoryData, PlayerData,
  GameData, EscapePodData): opaque payload containers. This module only cares
  that they have the right shape; the game logic that fills them lives elsewhere.
- PersistedWorldData: the whole snapshot. It is either absent (no file) or
  complete; is_valid() is the predicate the loader uses to reject anything else.

Every class exposes to_dict()/from_dict() so the serializer can turn a snapshot
into plain JSON-compatible data and back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


def _is_str_keyed_dict(value: Any) -> bool:
    return isinstance(value, dict) and all(isinstance(k, str) for k in value)


def _is_list_of_dicts(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(x, dict) for x in value)


def _is_list_of_str(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(x, str) for x in value)


@dataclass(frozen=True)
class Int3:
    x: int
    y: int
    z: int

    def to_list(self) -> List[int]:
        return [self.x, self.y, self.z]

    @staticmethod
    def from_list(data: Any) -> "Int3":
        if not isinstance(data, (list, tuple)) or len(data) != 3:
            raise ValueError(f"batch cell must be a 3-element list, got {data!r}")
        for v in data:
            if not isinstance(v, int) or isinstance(v, bool):
                raise ValueError(f"batch cell coordinates must be integers, got {data!r}")
        return Int3(*data)

    def __str__(self) -> str:
        return f"[{self.x} {self.y} {self.z}]"


@dataclass
class EntityData:
    # entity id -> entity record; records carry at least a 'tech_type'
    entities: Dict[str, dict] = field(default_factory=dict)

    def is_valid(self) -> bool:
        return _is_str_keyed_dict(self.entities) and all(isinstance(e, dict) for e in self.entities.values())

    def to_dict(self) -> dict:
        return {"entities": self.entities}

    @staticmethod
    def from_dict(data: dict) -> "EntityData":
        return EntityData(entities=data.get("entities", {}))


@dataclass
class BaseData:
    completed_base_pieces: List[dict] = field(default_factory=list)
    partially_constructed_pieces: List[dict] = field(default_factory=list)

    def is_valid(self) -> bool:
        return _is_list_of_dicts(self.completed_base_pieces) and _is_list_of_dicts(self.partially_constructed_pieces)

    def to_dict(self) -> dict:
        return {
            "completed_base_pieces": self.completed_base_pieces,
            "partially_constructed_pieces": self.partially_constructed_pieces,
        }

    @staticmethod
    def from_dict(data: dict) -> "BaseData":
        return BaseData(
            completed_base_pieces=data.get("completed_base_pieces", []),
            partially_constructed_pieces=data.get("partially_constructed_pieces", []),
        )


@dataclass
class VehicleData:
    vehicles: Dict[str, dict] = field(default_factory=dict)

    def is_valid(self) -> bool:
        return _is_str_keyed_dict(self.vehicles) and all(isinstance(v, dict) for v in self.vehicles.values())

    def to_dict(self) -> dict:
        return {"vehicles": self.vehicles}

    @staticmethod
    def from_dict(data: dict) -> "VehicleData":
        return VehicleData(vehicles=data.get("vehicles", {}))


@dataclass
class InventoryData:
    inventory_items: List[dict] = field(default_factory=list)
    storage_slot_items: List[dict] = field(default_factory=list)
    modules: List[dict] = field(default_factory=list)

    def is_valid(self) -> bool:
        return (
            _is_list_of_dicts(self.inventory_items)
            and _is_list_of_dicts(self.storage_slot_items)
            and _is_list_of_dicts(self.modules)
        )

    def to_dict(self) -> dict:
        return {
            "inventory_items": self.inventory_items,
            "storage_slot_items": self.storage_slot_items,
            "modules": self.modules,
        }

    @staticmethod
    def from_dict(data: dict) -> "InventoryData":
        return InventoryData(
            inventory_items=data.get("inventory_items", []),
            storage_slot_items=data.get("storage_slot_items", []),
            modules=data.get("modules", []),
        )


@dataclass
class PlayerData:
    # player name -> persisted player record
    players: Dict[str, dict] = field(default_factory=dict)

    def is_valid(self) -> bool:
        return _is_str_keyed_dict(self.players) and all(isinstance(p, dict) for p in self.players.values())

    def to_dict(self) -> dict:
        return {"players": self.players}

    @staticmethod
    def from_dict(data: dict) -> "PlayerData":
        return PlayerData(players=data.get("players", {}))


@dataclass
class PDAStateData:
    unlocked_tech_types: List[str] = field(default_factory=list)
    known_tech_types: List[str] = field(default_factory=list)
    encyclopedia_entries: List[str] = field(default_factory=list)
    pda_log: List[dict] = field(default_factory=list)
    partially_unlocked: Dict[str, int] = field(default_factory=dict)

    def is_valid(self) -> bool:
        return (
            _is_list_of_str(self.unlocked_tech_types)
            and _is_list_of_str(self.known_tech_types)
            and _is_list_of_str(self.encyclopedia_entries)
            and _is_list_of_dicts(self.pda_log)
            and _is_str_keyed_dict(self.partially_unlocked)
        )

    def to_dict(self) -> dict:
        return {
            "unlocked_tech_types": self.unlocked_tech_types,
            "known_tech_types": self.known_tech_types,
            "encyclopedia_entries": self.encyclopedia_entries,
            "pda_log": self.pda_log,
            "partially_unlocked": self.partially_unlocked,
        }

    @staticmethod
    def from_dict(data: dict) -> "PDAStateData":
        return PDAStateData(
            unlocked_tech_types=data.get("unlocked_tech_types", []),
            known_tech_types=data.get("known_tech_types", []),
            encyclopedia_entries=data.get("encyclopedia_entries", []),
            pda_log=data.get("pda_log", []),
            partially_unlocked=data.get("partially_unlocked", {}),
        )


@dataclass
class StoryGoalData:
    completed_goals: List[str] = field(default_factory=list)
    radio_queue: List[str] = field(default_factory=list)
    goal_unlocks: List[str] = field(default_factory=list)

    def is_valid(self) -> bool:
        return (
            _is_list_of_str(self.completed_goals)
            and _is_list_of_str(self.radio_queue)
            and _is_list_of_str(self.goal_unlocks)
        )

    def to_dict(self) -> dict:
        return {
            "completed_goals": self.completed_goals,
            "radio_queue": self.radio_queue,
            "goal_unlocks": self.goal_unlocks,
        }

    @staticmethod
    def from_dict(data: dict) -> "StoryGoalData":
        return StoryGoalData(
            completed_goals=data.get("completed_goals", []),
            radio_queue=data.get("radio_queue", []),
            goal_unlocks=data.get("goal_unlocks", []),
        )


@dataclass
class GameData:
    pda_state: Optional[PDAStateData] = None
    story_goals: Optional[StoryGoalData] = None

    @staticmethod
    def create_default() -> "GameData":
        return GameData(pda_state=PDAStateData(), story_goals=StoryGoalData())

    def is_valid(self) -> bool:
        # Both nested records are required; a bare GameData() is not usable
        return (
            isinstance(self.pda_state, PDAStateData)
            and isinstance(self.story_goals, StoryGoalData)
            and self.pda_state.is_valid()
            and self.story_goals.is_valid()
        )

    def to_dict(self) -> dict:
        return {
            "pda_state": self.pda_state.to_dict() if self.pda_state is not None else None,
            "story_goals": self.story_goals.to_dict() if self.story_goals is not None else None,
        }

    @staticmethod
    def from_dict(data: dict) -> "GameData":
        pda = data.get("pda_state")
        goals = data.get("story_goals")
        return GameData(
            pda_state=PDAStateData.from_dict(pda) if isinstance(pda, dict) else None,
            story_goals=StoryGoalData.from_dict(goals) if isinstance(goals, dict) else None,
        )


@dataclass
class EscapePodData:
    escape_pods: List[dict] = field(default_factory=list)

    def is_valid(self) -> bool:
        return _is_list_of_dicts(self.escape_pods)

    def to_dict(self) -> dict:
        return {"escape_pods": self.escape_pods}

    @staticmethod
    def from_dict(data: dict) -> "EscapePodData":
        return EscapePodData(escape_pods=data.get("escape_pods", []))


# Subset attribute name -> class; order is the on-disk field order
SUBSET_TYPES: Dict[str, type] = {
    "entity_data": EntityData,
    "base_data": BaseData,
    "vehicle_data": VehicleData,
    "inventory_data": InventoryData,
    "player_data": PlayerData,
    "game_data": GameData,
    "escape_pod_data": EscapePodData,
}


@dataclass
class PersistedWorldData:
    """Everything that goes into a save file.

    Fields are optional only so a decoded-but-incomplete document can be
    represented long enough for is_valid() to reject it.
    """

    server_start_time: Optional[datetime] = None
    parsed_batch_cells: List[Int3] = field(default_factory=list)
    entity_data: Optional[EntityData] = None
    base_data: Optional[BaseData] = None
    vehicle_data: Optional[VehicleData] = None
    inventory_data: Optional[InventoryData] = None
    player_data: Optional[PlayerData] = None
    game_data: Optional[GameData] = None
    escape_pod_data: Optional[EscapePodData] = None

    def is_valid(self) -> bool:
        if not isinstance(self.server_start_time, datetime):
            return False
        if not isinstance(self.parsed_batch_cells, list):
            return False
        if not all(isinstance(c, Int3) for c in self.parsed_batch_cells):
            return False
        for name, kind in SUBSET_TYPES.items():
            subset = getattr(self, name)
            if not isinstance(subset, kind) or not subset.is_valid():
                return False
        return True

    def to_dict(self) -> dict:
        start = self.server_start_time
        return {
            "server_start_time": start.isoformat() if start is not None else None,
            "parsed_batch_cells": [c.to_list() for c in self.parsed_batch_cells],
            **{
                name: (getattr(self, name).to_dict() if getattr(self, name) is not None else None)
                for name in SUBSET_TYPES
            },
        }

    @staticmethod
    def from_dict(data: dict) -> "PersistedWorldData":
        """Decode a snapshot document.

        Missing subsets decode to None (and so fail is_valid()); malformed values
        such as a bad timestamp or batch cell raise ValueError/TypeError.
        """
        raw_start = data.get("server_start_time")
        start: Optional[datetime] = None
        if raw_start is not None:
            start = datetime.fromisoformat(str(raw_start))
            if start.tzinfo is None:
                start = start.replace(tzinfo=timezone.utc)

        pwd = PersistedWorldData(
            server_start_time=start,
            parsed_batch_cells=[Int3.from_list(c) for c in data.get("parsed_batch_cells") or []],
        )
        for name, kind in SUBSET_TYPES.items():
            raw = data.get(name)
            if isinstance(raw, dict):
                setattr(pwd, name, kind.from_dict(raw))
        return pwd
