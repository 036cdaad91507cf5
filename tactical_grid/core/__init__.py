"""Movement core: grid store, pathfinding and occupancy."""

from .entities import CreatureSize, EntityData, EntityRegistry, Team, is_hostile
from .grid import (
    CellCoord,
    CellData,
    CellFlags,
    CellTerrain,
    EdgeData,
    EdgeKey,
    EdgeType,
    GridData,
    MovementType,
    NeighborInfo,
    NeighborType,
    VerticalLink,
    VerticalLinkType,
    create_grid_with_obstacles,
    fill_rect,
)
from .movement import (
    ActionZone,
    MovementProfile,
    PathResult,
    StridePath,
    find_path,
    find_path_by_actions,
    get_movement_zone,
    get_movement_zone_by_actions,
    get_step_cost,
    grid_distance_feet,
)
from .occupancy import OccupancyMap

__all__ = [
    "CreatureSize",
    "EntityData",
    "EntityRegistry",
    "Team",
    "is_hostile",
    "CellCoord",
    "CellData",
    "CellFlags",
    "CellTerrain",
    "EdgeData",
    "EdgeKey",
    "EdgeType",
    "GridData",
    "MovementType",
    "NeighborInfo",
    "NeighborType",
    "VerticalLink",
    "VerticalLinkType",
    "create_grid_with_obstacles",
    "fill_rect",
    "ActionZone",
    "MovementProfile",
    "PathResult",
    "StridePath",
    "find_path",
    "find_path_by_actions",
    "get_movement_zone",
    "get_movement_zone_by_actions",
    "get_step_cost",
    "grid_distance_feet",
    "OccupancyMap",
]
