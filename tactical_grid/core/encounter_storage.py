"""
Shared storage for active encounter maps.

Keeps every grid together with its entity registry and occupancy map so
the API routes can look them up by id.
"""
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional

from .entities import EntityRegistry
from .grid import GridData
from .occupancy import OccupancyMap


@dataclass
class EncounterMap:
    """A grid plus the entities standing on it."""
    grid: GridData
    registry: EntityRegistry = field(default_factory=EntityRegistry)
    occupancy: Optional[OccupancyMap] = None

    def __post_init__(self):
        if self.occupancy is None:
            self.occupancy = OccupancyMap(self.registry)


# In-memory storage for active encounters
# Keys are grid_id (str)
active_encounters: Dict[str, EncounterMap] = {}


def create_encounter(grid: GridData) -> str:
    """Store a new encounter for `grid` and return its id."""
    grid_id = str(uuid.uuid4())
    active_encounters[grid_id] = EncounterMap(grid=grid)
    return grid_id


def get_encounter(grid_id: str) -> Optional[EncounterMap]:
    return active_encounters.get(grid_id)


def remove_encounter(grid_id: str) -> bool:
    return active_encounters.pop(grid_id, None) is not None


def clear_encounters() -> None:
    active_encounters.clear()
