"""
Grid Store.

Sparse 3D cell lattice used by tactical movement. Cells are keyed by
(x, elevation layer, z); walls live on the edges between planar-adjacent
cells; elevation layers are connected only through explicitly registered
vertical links (stairs, ladders, ...).

Missing cells are never an error: every query treats them as impassable.
"""
import logging
import math
from dataclasses import dataclass
from enum import Enum, IntFlag
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

logger = logging.getLogger("tactical_grid.grid")

# Added to world Y before flooring so a point resting exactly on a floor
# snaps to that floor instead of the one below. Capped at a thousandth of
# the floor height so tiny height steps still round-trip.
ELEVATION_SNAP_EPS = 0.001


@dataclass(frozen=True, order=True)
class CellCoord:
    """Integer cell coordinate. Ordering is lexicographic (x, elevation, z)."""
    x: int
    elevation: int
    z: int

    def __add__(self, other: "CellCoord") -> "CellCoord":
        if not isinstance(other, CellCoord):
            return NotImplemented
        return CellCoord(
            self.x + other.x,
            self.elevation + other.elevation,
            self.z + other.z
        )

    def to_list(self) -> List[int]:
        return [self.x, self.elevation, self.z]

    @classmethod
    def from_iterable(cls, values: Iterable[int]) -> "CellCoord":
        x, elevation, z = values
        return cls(int(x), int(elevation), int(z))

    def __str__(self) -> str:
        return f"({self.x}, {self.elevation}, {self.z})"


class CellTerrain(Enum):
    """Terrain classification of a cell."""
    NORMAL = "normal"                        # x1 cost
    DIFFICULT = "difficult"                  # x2 cost
    GREATER_DIFFICULT = "greater_difficult"  # x3 cost
    HAZARDOUS = "hazardous"                  # normal cost, damage on entry
    IMPASSABLE = "impassable"                # cannot be walked


class CellFlags(IntFlag):
    """Per-cell capability flags."""
    NONE = 0
    WALKABLE = 1 << 0
    FLYABLE = 1 << 1
    SWIMMABLE = 1 << 2
    HAS_LADDER_UP = 1 << 3
    HAS_LADDER_DOWN = 1 << 4
    HAS_STAIRS_UP = 1 << 5
    HAS_STAIRS_DOWN = 1 << 6


@dataclass(frozen=True)
class CellData:
    """Authored data for one cell."""
    terrain: CellTerrain = CellTerrain.NORMAL
    flags: CellFlags = CellFlags.WALKABLE | CellFlags.FLYABLE
    cover_value: int = 0  # 0=none, 1=lesser, 2=standard, 3=greater

    @property
    def is_walkable(self) -> bool:
        return bool(self.flags & CellFlags.WALKABLE) and self.terrain != CellTerrain.IMPASSABLE

    @property
    def is_flyable(self) -> bool:
        """
        True if a flying creature can enter this cell.

        IMPASSABLE + FLYABLE is a ground-blocked cell that can be flown over
        (pit, lava). Use create_blocked() for walls and pillars.
        """
        return bool(self.flags & CellFlags.FLYABLE)

    @property
    def is_swimmable(self) -> bool:
        return bool(self.flags & CellFlags.SWIMMABLE)

    @classmethod
    def create_walkable(cls, terrain: CellTerrain = CellTerrain.NORMAL) -> "CellData":
        return cls(terrain=terrain, flags=CellFlags.WALKABLE | CellFlags.FLYABLE)

    @classmethod
    def create_impassable(cls) -> "CellData":
        """Ground-impassable cell that flying creatures can still enter."""
        return cls(terrain=CellTerrain.IMPASSABLE, flags=CellFlags.FLYABLE)

    @classmethod
    def create_blocked(cls) -> "CellData":
        """Fully blocked cell (wall, pillar)."""
        return cls(terrain=CellTerrain.IMPASSABLE, flags=CellFlags.NONE)


class EdgeType(Enum):
    """What sits on the boundary between two cells."""
    NONE = "none"
    WALL = "wall"
    DOOR = "door"
    WINDOW = "window"
    ARROW_SLIT = "arrow_slit"


@dataclass(frozen=True)
class EdgeData:
    """Wall/door state of one edge."""
    edge_type: EdgeType = EdgeType.NONE
    blocks_movement: bool = False
    blocks_line_of_sight: bool = False

    @classmethod
    def create_wall(cls) -> "EdgeData":
        return cls(edge_type=EdgeType.WALL, blocks_movement=True, blocks_line_of_sight=True)

    @classmethod
    def create_door(cls, open: bool = False) -> "EdgeData":
        return cls(edge_type=EdgeType.DOOR, blocks_movement=not open, blocks_line_of_sight=not open)


@dataclass(frozen=True)
class EdgeKey:
    """
    Unordered pair of adjacent cells.

    The smaller coordinate is always stored first, so EdgeKey(a, b) and
    EdgeKey(b, a) compare and hash equal.
    """
    cell_a: CellCoord
    cell_b: CellCoord

    def __post_init__(self):
        if self.cell_b < self.cell_a:
            first, second = self.cell_b, self.cell_a
            object.__setattr__(self, "cell_a", first)
            object.__setattr__(self, "cell_b", second)

    def __str__(self) -> str:
        return f"Edge({self.cell_a} <-> {self.cell_b})"


class VerticalLinkType(Enum):
    """Kinds of connector between elevation layers."""
    STAIRS = "stairs"
    LADDER = "ladder"
    RAMP = "ramp"
    JUMPABLE = "jumpable"


DEFAULT_LINK_COST_FEET: Dict[VerticalLinkType, int] = {
    VerticalLinkType.STAIRS: 5,
    VerticalLinkType.LADDER: 10,
    VerticalLinkType.RAMP: 5,
    VerticalLinkType.JUMPABLE: 10,
}


@dataclass(frozen=True)
class VerticalLink:
    """A connector between two cells that need not be planar-adjacent."""
    lower: CellCoord
    upper: CellCoord
    link_type: VerticalLinkType = VerticalLinkType.STAIRS
    movement_cost_feet: int = 5

    @classmethod
    def create_stairs(cls, lower: CellCoord, upper: CellCoord, cost_feet: int = 5) -> "VerticalLink":
        return cls(lower=lower, upper=upper, link_type=VerticalLinkType.STAIRS, movement_cost_feet=cost_feet)

    @classmethod
    def create_ladder(cls, lower: CellCoord, upper: CellCoord, cost_feet: int = 10) -> "VerticalLink":
        return cls(lower=lower, upper=upper, link_type=VerticalLinkType.LADDER, movement_cost_feet=cost_feet)


class NeighborType(Enum):
    """How a neighbor is reached from its source cell."""
    CARDINAL = "cardinal"
    DIAGONAL = "diagonal"
    VERTICAL = "vertical"


class MovementType(Enum):
    """Movement modes."""
    WALK = "walk"
    FLY = "fly"
    SWIM = "swim"
    CLIMB = "climb"


@dataclass(frozen=True)
class NeighborInfo:
    """One legal step out of a cell."""
    pos: CellCoord
    neighbor_type: NeighborType
    vertical_cost_feet: int = 0  # link cost for VERTICAL, 0 otherwise

    def __str__(self) -> str:
        return f"({self.pos}, {self.neighbor_type.value}, cost={self.vertical_cost_feet})"


@dataclass(frozen=True)
class VerticalAdjacency:
    """Vertical link as seen from one of its ends."""
    to: CellCoord
    cost_feet: int
    link_type: VerticalLinkType


CARDINAL_OFFSETS: Tuple[CellCoord, ...] = (
    CellCoord(1, 0, 0), CellCoord(-1, 0, 0),
    CellCoord(0, 0, 1), CellCoord(0, 0, -1),
)

# (diagonal offset, intermediate A, intermediate B)
DIAGONAL_OFFSETS: Tuple[Tuple[CellCoord, CellCoord, CellCoord], ...] = (
    (CellCoord(1, 0, 1), CellCoord(1, 0, 0), CellCoord(0, 0, 1)),
    (CellCoord(1, 0, -1), CellCoord(1, 0, 0), CellCoord(0, 0, -1)),
    (CellCoord(-1, 0, 1), CellCoord(-1, 0, 0), CellCoord(0, 0, 1)),
    (CellCoord(-1, 0, -1), CellCoord(-1, 0, 0), CellCoord(0, 0, -1)),
)


class GridData:
    """
    The cell/edge/link store for one battlefield.

    Every write bumps `version` and marks the touched chunks dirty so
    renderers and caches can tell what changed.
    """

    def __init__(
        self,
        cell_world_size: float = 1.5,
        height_step_world: float = 1.5,
        chunk_size: int = 16
    ):
        if cell_world_size <= 0 or height_step_world <= 0:
            raise ValueError("cell_world_size and height_step_world must be positive")

        self.cell_world_size = float(cell_world_size)
        self.height_step_world = float(height_step_world)
        self._elevation_snap = min(ELEVATION_SNAP_EPS, self.height_step_world * 1e-3)
        self.chunk_size = max(1, int(chunk_size))

        self._cells: Dict[CellCoord, CellData] = {}
        self._edges: Dict[EdgeKey, EdgeData] = {}
        # Add-only; kept for serialization. Neighbor queries use _vertical_adj.
        self._vertical_links: List[VerticalLink] = []
        self._vertical_adj: Dict[CellCoord, List[VerticalAdjacency]] = {}

        self._version = 0
        self._dirty_chunks: Set[CellCoord] = set()

    @classmethod
    def from_settings(cls, settings: Any) -> "GridData":
        """Create an empty grid using the configured world sizes."""
        return cls(
            cell_world_size=settings.CELL_WORLD_SIZE,
            height_step_world=settings.HEIGHT_STEP_WORLD_SIZE,
            chunk_size=settings.CHUNK_SIZE
        )

    # =========================================================================
    # READ API
    # =========================================================================

    @property
    def version(self) -> int:
        return self._version

    @property
    def cells(self) -> Mapping[CellCoord, CellData]:
        return MappingProxyType(self._cells)

    @property
    def cell_count(self) -> int:
        return len(self._cells)

    @property
    def vertical_links(self) -> Tuple[VerticalLink, ...]:
        return tuple(self._vertical_links)

    def has_cell(self, pos: CellCoord) -> bool:
        return pos in self._cells

    def get_cell(self, pos: CellCoord) -> Optional[CellData]:
        """Get a cell's data, or None if nothing was authored there."""
        return self._cells.get(pos)

    def get_edge(self, key: EdgeKey) -> Optional[EdgeData]:
        return self._edges.get(key)

    def vertical_link_sources(self) -> Dict[CellCoord, int]:
        """Every cell with at least one vertical link, mapped to its cheapest link cost."""
        return {
            cell: min(adj.cost_feet for adj in adjacent)
            for cell, adjacent in self._vertical_adj.items()
        }

    # =========================================================================
    # WRITE API (version++, dirty chunks)
    # =========================================================================

    def set_cell(self, pos: CellCoord, data: CellData) -> None:
        """Place or update a cell."""
        self._cells[pos] = data
        self._mark_dirty(pos)

    def set_edge(self, key: EdgeKey, data: EdgeData) -> None:
        self._edges[key] = data
        self._mark_dirty(key.cell_a, key.cell_b)

    def add_vertical_link(self, link: VerticalLink) -> None:
        """
        Register a link. Links are traversable in both directions.

        Links are add-only; removing one would have to update both
        _vertical_links and _vertical_adj.
        """
        if link.movement_cost_feet <= 0:
            logger.warning(
                f"[GridData] VerticalLink cost <= 0: {link.movement_cost_feet} "
                f"({link.lower} -> {link.upper})"
            )
        if link.lower.elevation >= link.upper.elevation:
            logger.warning(
                f"[GridData] VerticalLink lower elevation >= upper elevation: "
                f"lower={link.lower}, upper={link.upper}"
            )

        self._vertical_links.append(link)
        self._add_adjacency(link.lower, VerticalAdjacency(link.upper, link.movement_cost_feet, link.link_type))
        self._add_adjacency(link.upper, VerticalAdjacency(link.lower, link.movement_cost_feet, link.link_type))
        self._mark_dirty(link.lower, link.upper)

    def _add_adjacency(self, cell: CellCoord, adjacency: VerticalAdjacency) -> None:
        self._vertical_adj.setdefault(cell, []).append(adjacency)

    def _mark_dirty(self, *positions: CellCoord) -> None:
        for pos in positions:
            self._dirty_chunks.add(self.get_chunk_coord(pos))
        self._version += 1

    # =========================================================================
    # CHUNK TRACKING
    # =========================================================================

    def get_chunk_coord(self, pos: CellCoord) -> CellCoord:
        """Chunk containing a cell. Elevation is the chunk layer and is not divided."""
        return CellCoord(
            pos.x // self.chunk_size,
            pos.elevation,
            pos.z // self.chunk_size
        )

    def get_dirty_chunks(self, out: Optional[List[CellCoord]] = None) -> List[CellCoord]:
        """Chunks touched since the previous call. Clears the dirty set."""
        result = out if out is not None else []
        result.clear()
        result.extend(sorted(self._dirty_chunks))
        self._dirty_chunks.clear()
        return result

    # =========================================================================
    # COORDINATE CONVERSION
    # =========================================================================

    def world_to_cell(self, world_pos: Sequence[float]) -> CellCoord:
        wx, wy, wz = world_pos
        return CellCoord(
            math.floor(wx / self.cell_world_size),
            math.floor((wy + self._elevation_snap) / self.height_step_world),
            math.floor(wz / self.cell_world_size)
        )

    def cell_to_world(self, cell: CellCoord) -> Tuple[float, float, float]:
        """Cell centre in x/z, floor height in y."""
        return (
            (cell.x + 0.5) * self.cell_world_size,
            cell.elevation * self.height_step_world,
            (cell.z + 0.5) * self.cell_world_size
        )

    # =========================================================================
    # NEIGHBORS
    # =========================================================================

    def is_cell_passable(self, pos: CellCoord, movement_type: MovementType = MovementType.WALK) -> bool:
        """Non-existent cells are impassable."""
        cell = self._cells.get(pos)
        if cell is None:
            return False

        if movement_type in (MovementType.WALK, MovementType.CLIMB):
            return cell.is_walkable
        if movement_type == MovementType.FLY:
            return cell.is_flyable
        if movement_type == MovementType.SWIM:
            return cell.is_swimmable
        return False

    def is_edge_blocking(self, a: CellCoord, b: CellCoord) -> bool:
        edge = self._edges.get(EdgeKey(a, b))
        return edge is not None and edge.blocks_movement

    def _is_step_passable(self, source: CellCoord, target: CellCoord, movement_type: MovementType) -> bool:
        return self.is_cell_passable(target, movement_type) and not self.is_edge_blocking(source, target)

    def get_neighbors(
        self,
        pos: CellCoord,
        movement_type: MovementType = MovementType.WALK,
        out: Optional[List[NeighborInfo]] = None
    ) -> List[NeighborInfo]:
        """
        Legal single steps out of `pos`.

        Diagonals are strict: both intermediate cardinal steps must be legal,
        and no blocking edge may touch the target from the source or from
        either intermediate. `out`, when given, is cleared and filled.
        """
        result = out if out is not None else []
        result.clear()

        if not self.is_cell_passable(pos, movement_type):
            return result

        for offset in CARDINAL_OFFSETS:
            target = pos + offset
            if self._is_step_passable(pos, target, movement_type):
                result.append(NeighborInfo(target, NeighborType.CARDINAL))

        for offset, offset_a, offset_b in DIAGONAL_OFFSETS:
            target = pos + offset
            intermediate_a = pos + offset_a
            intermediate_b = pos + offset_b

            if (self._is_step_passable(pos, intermediate_a, movement_type)
                    and self._is_step_passable(pos, intermediate_b, movement_type)
                    and self.is_cell_passable(target, movement_type)
                    and not self.is_edge_blocking(pos, target)
                    and not self.is_edge_blocking(intermediate_a, target)
                    and not self.is_edge_blocking(intermediate_b, target)):
                result.append(NeighborInfo(target, NeighborType.DIAGONAL))

        for adjacency in self._vertical_adj.get(pos, ()):
            if self.is_cell_passable(adjacency.to, movement_type):
                result.append(NeighborInfo(adjacency.to, NeighborType.VERTICAL, adjacency.cost_feet))

        return result

    # =========================================================================
    # SERIALIZATION
    # =========================================================================

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the grid for transmission."""
        return {
            "cell_world_size": self.cell_world_size,
            "height_step_world": self.height_step_world,
            "chunk_size": self.chunk_size,
            "cells": [
                {
                    "pos": pos.to_list(),
                    "terrain": cell.terrain.value,
                    "flags": int(cell.flags),
                    "cover_value": cell.cover_value
                }
                for pos, cell in sorted(self._cells.items())
            ],
            "edges": [
                {
                    "a": key.cell_a.to_list(),
                    "b": key.cell_b.to_list(),
                    "type": edge.edge_type.value,
                    "blocks_movement": edge.blocks_movement,
                    "blocks_line_of_sight": edge.blocks_line_of_sight
                }
                for key, edge in sorted(self._edges.items(), key=lambda item: (item[0].cell_a, item[0].cell_b))
            ],
            "vertical_links": [
                {
                    "lower": link.lower.to_list(),
                    "upper": link.upper.to_list(),
                    "type": link.link_type.value,
                    "cost_feet": link.movement_cost_feet
                }
                for link in self._vertical_links
            ]
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GridData":
        """Deserialize a grid from dictionary."""
        grid = cls(
            cell_world_size=data.get("cell_world_size", 1.5),
            height_step_world=data.get("height_step_world", 1.5),
            chunk_size=data.get("chunk_size", 16)
        )

        for cell_data in data.get("cells", []):
            grid.set_cell(
                CellCoord.from_iterable(cell_data["pos"]),
                CellData(
                    terrain=CellTerrain(cell_data.get("terrain", CellTerrain.NORMAL.value)),
                    flags=CellFlags(cell_data.get("flags", int(CellFlags.WALKABLE | CellFlags.FLYABLE))),
                    cover_value=cell_data.get("cover_value", 0)
                )
            )

        for edge_data in data.get("edges", []):
            grid.set_edge(
                EdgeKey(CellCoord.from_iterable(edge_data["a"]), CellCoord.from_iterable(edge_data["b"])),
                EdgeData(
                    edge_type=EdgeType(edge_data.get("type", EdgeType.WALL.value)),
                    blocks_movement=edge_data.get("blocks_movement", True),
                    blocks_line_of_sight=edge_data.get("blocks_line_of_sight", True)
                )
            )

        for link_data in data.get("vertical_links", []):
            link_type = VerticalLinkType(link_data.get("type", VerticalLinkType.STAIRS.value))
            grid.add_vertical_link(VerticalLink(
                lower=CellCoord.from_iterable(link_data["lower"]),
                upper=CellCoord.from_iterable(link_data["upper"]),
                link_type=link_type,
                movement_cost_feet=link_data.get("cost_feet", DEFAULT_LINK_COST_FEET[link_type])
            ))

        return grid


def fill_rect(
    grid: GridData,
    x_min: int,
    x_max: int,
    z_min: int,
    z_max: int,
    elevation: int = 0,
    terrain: CellTerrain = CellTerrain.NORMAL
) -> None:
    """Fill an inclusive rectangle at one elevation with walkable cells."""
    for x in range(x_min, x_max + 1):
        for z in range(z_min, z_max + 1):
            grid.set_cell(CellCoord(x, elevation, z), CellData.create_walkable(terrain))


def create_grid_with_obstacles(
    width: int = 10,
    depth: int = 10,
    obstacles: Optional[Iterable[Tuple[int, int]]] = None,
    difficult_terrain: Optional[Iterable[Tuple[int, int]]] = None,
    elevation: int = 0,
    cell_world_size: float = 1.5,
    height_step_world: float = 1.5
) -> GridData:
    """
    Create a flat walkable grid with predefined obstacles.

    Args:
        width: Cells along x
        depth: Cells along z
        obstacles: (x, z) positions of fully blocked cells
        difficult_terrain: (x, z) positions of difficult terrain
        elevation: Elevation layer of the whole rectangle

    Returns:
        Configured GridData
    """
    grid = GridData(cell_world_size=cell_world_size, height_step_world=height_step_world)
    fill_rect(grid, 0, width - 1, 0, depth - 1, elevation=elevation)

    if obstacles:
        for x, z in obstacles:
            grid.set_cell(CellCoord(x, elevation, z), CellData.create_blocked())

    if difficult_terrain:
        for x, z in difficult_terrain:
            grid.set_cell(CellCoord(x, elevation, z), CellData.create_walkable(CellTerrain.DIFFICULT))

    return grid
