"""
Entity directory.

Minimal registry of the creatures standing on a grid: team affiliation,
creature size and speed. The occupancy map consults it for team rules
and default footprint sizes.
"""
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


class Team(Enum):
    """Team affiliation."""
    PLAYER = "player"
    ENEMY = "enemy"
    NEUTRAL = "neutral"


class CreatureSize(Enum):
    """Creature size categories."""
    TINY = "tiny"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    HUGE = "huge"
    GARGANTUAN = "gargantuan"

    def to_size_cells(self) -> int:
        """Footprint side length in cells."""
        return _SIZE_CELLS[self]


_SIZE_CELLS = {
    CreatureSize.TINY: 1,
    CreatureSize.SMALL: 1,
    CreatureSize.MEDIUM: 1,
    CreatureSize.LARGE: 2,
    CreatureSize.HUGE: 3,
    CreatureSize.GARGANTUAN: 4,
}


def is_hostile(a: Team, b: Team) -> bool:
    """Two teams are hostile when they differ and neither is neutral."""
    if a == Team.NEUTRAL or b == Team.NEUTRAL:
        return False
    return a != b


@dataclass
class EntityData:
    """A creature known to the encounter."""
    name: str
    team: Team
    size: CreatureSize = CreatureSize.MEDIUM
    speed_feet: int = 30
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def size_cells(self) -> int:
        return self.size.to_size_cells()

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "name": self.name,
            "team": self.team.value,
            "size": self.size.value,
            "size_cells": self.size_cells,
            "speed_feet": self.speed_feet
        }


class EntityRegistry:
    """In-memory entity directory keyed by entity id."""

    def __init__(self):
        self._entities: Dict[str, EntityData] = {}

    def register(self, data: EntityData) -> str:
        """Add or replace an entity. Returns its id."""
        self._entities[data.id] = data
        return data.id

    def unregister(self, entity_id: str) -> bool:
        return self._entities.pop(entity_id, None) is not None

    def get(self, entity_id: str) -> Optional[EntityData]:
        return self._entities.get(entity_id)

    def exists(self, entity_id: str) -> bool:
        return entity_id in self._entities

    def get_all(self) -> List[EntityData]:
        return list(self._entities.values())

    def get_by_team(self, team: Team) -> List[EntityData]:
        return [entity for entity in self._entities.values() if entity.team == team]

    @property
    def count(self) -> int:
        return len(self._entities)
