"""
Movement System.

Pathfinding and movement zones over a GridData using the alternating
5/10 diagonal rule. Every search state is (cell, diagonal parity): parity
False means the next diagonal costs 5 ft, True means it costs 10 ft.

All functions are stateless; optional output buffers are cleared and
refilled on every call.
"""
import heapq
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .entities import CreatureSize
from .grid import (
    CellCoord,
    CellData,
    CellTerrain,
    GridData,
    MovementType,
    NeighborInfo,
    NeighborType,
)
from .occupancy import OccupancyMap

logger = logging.getLogger("tactical_grid.movement")

CARDINAL_COST_FEET = 5
DIAGONAL_COST_FIRST_FEET = 5
DIAGONAL_COST_SECOND_FEET = 10
DIFFICULT_TERRAIN_MULTIPLIER = 2
GREATER_DIFFICULT_TERRAIN_MULTIPLIER = 3

MAX_STRIDE_ACTIONS = 3
# Packed stride cost = actions * ACTION_PENALTY + feet, so one extra action
# always outweighs any amount of feet.
ACTION_PENALTY = 1_000_000


@dataclass(frozen=True)
class MovementProfile:
    """How a creature moves: mode, speed and footprint."""
    movement_type: MovementType = MovementType.WALK
    speed_feet: int = 30
    creature_size_cells: int = 1
    ignores_difficult_terrain: bool = False

    @classmethod
    def default(cls) -> "MovementProfile":
        return cls()

    @classmethod
    def for_creature(
        cls,
        size: CreatureSize,
        speed_feet: int = 30,
        movement_type: MovementType = MovementType.WALK,
        ignores_difficult_terrain: bool = False
    ) -> "MovementProfile":
        return cls(
            movement_type=movement_type,
            speed_feet=speed_feet,
            creature_size_cells=size.to_size_cells(),
            ignores_difficult_terrain=ignores_difficult_terrain
        )


@dataclass
class PathResult:
    """Result of a path query."""
    found: bool
    path: List[CellCoord]
    total_cost: int
    description: str = ""
    blocked_by: Optional[str] = None  # Entity ID if the goal is occupied


@dataclass
class StridePath:
    """A path spread over one or more Stride actions."""
    path: List[CellCoord]
    actions_cost: int
    total_feet: int
    action_boundaries: List[int] = field(default_factory=list)  # path index where each Stride starts


# =============================================================================
# COST RULES
# =============================================================================

def terrain_multiplier(terrain: CellTerrain, profile: MovementProfile) -> int:
    if profile.ignores_difficult_terrain:
        return 1
    if terrain == CellTerrain.DIFFICULT:
        return DIFFICULT_TERRAIN_MULTIPLIER
    if terrain == CellTerrain.GREATER_DIFFICULT:
        return GREATER_DIFFICULT_TERRAIN_MULTIPLIER
    return 1


def get_step_cost(
    target_cell: CellData,
    neighbor: NeighborInfo,
    diagonal_parity: bool,
    profile: MovementProfile
) -> int:
    """
    Cost in feet of one step into `target_cell`.

    Args:
        target_cell: Data of the destination cell
        neighbor: The step, as produced by GridData.get_neighbors
        diagonal_parity: Parity of the state the step leaves from
        profile: Movement profile of the mover

    Returns:
        Base cost times the destination's terrain multiplier
    """
    if neighbor.neighbor_type == NeighborType.CARDINAL:
        base_cost = CARDINAL_COST_FEET
    elif neighbor.neighbor_type == NeighborType.DIAGONAL:
        base_cost = DIAGONAL_COST_SECOND_FEET if diagonal_parity else DIAGONAL_COST_FIRST_FEET
    else:
        base_cost = neighbor.vertical_cost_feet

    return base_cost * terrain_multiplier(target_cell.terrain, profile)


def _diagonal_run_cost(diagonals: int, parity: bool) -> int:
    if parity:
        first, second = DIAGONAL_COST_SECOND_FEET, DIAGONAL_COST_FIRST_FEET
    else:
        first, second = DIAGONAL_COST_FIRST_FEET, DIAGONAL_COST_SECOND_FEET
    return ((diagonals + 1) // 2) * first + (diagonals // 2) * second


def _planar_distance(a: CellCoord, b: CellCoord, parity: bool) -> int:
    dx = abs(a.x - b.x)
    dz = abs(a.z - b.z)
    diagonals = min(dx, dz)
    straight = abs(dx - dz)
    return _diagonal_run_cost(diagonals, parity) + straight * CARDINAL_COST_FEET


def grid_distance_feet(a: CellCoord, b: CellCoord) -> int:
    """
    Distance in feet on an open plane (elevation ignored).

    Two diagonals cost 15 ft, three cost 20 ft.
    """
    return _planar_distance(a, b, False)


class _GoalEstimator:
    """
    Lower bound on the remaining cost to one goal.

    Elevation can only change through vertical links, so a cell off the
    goal's layer must at least walk to a link source on its own layer and
    pay that link. The minimum over such bounds stays consistent.
    """

    def __init__(self, grid: GridData, goal: CellCoord):
        self.goal = goal
        self._sources_by_layer: Dict[int, List[Tuple[CellCoord, int]]] = {}
        for cell, cost in grid.vertical_link_sources().items():
            self._sources_by_layer.setdefault(cell.elevation, []).append((cell, max(cost, 0)))

    def estimate(self, pos: CellCoord, parity: bool) -> Optional[int]:
        """None when no link or goal is reachable from this layer."""
        best = None
        if pos.elevation == self.goal.elevation:
            best = _planar_distance(pos, self.goal, parity)

        for source, link_cost in self._sources_by_layer.get(pos.elevation, ()):
            candidate = _planar_distance(pos, source, parity) + link_cost
            if best is None or candidate < best:
                best = candidate

        return best


def _next_parity(neighbor: NeighborInfo, parity: bool) -> bool:
    return not parity if neighbor.neighbor_type == NeighborType.DIAGONAL else parity


def _is_traversable(
    occupancy: Optional[OccupancyMap],
    pos: CellCoord,
    mover: Optional[str]
) -> bool:
    return occupancy is None or occupancy.can_traverse(pos, mover)


def _is_stoppable(
    occupancy: Optional[OccupancyMap],
    pos: CellCoord,
    mover: Optional[str]
) -> bool:
    return occupancy is None or occupancy.can_occupy(pos, mover)


def _warn_if_origin_held(
    occupancy: Optional[OccupancyMap],
    origin: CellCoord,
    mover: Optional[str]
) -> None:
    if occupancy is None:
        return
    occupant = occupancy.get_occupant(origin)
    if occupant is not None and occupant != mover:
        logger.warning(f"[Movement] Origin {origin} is occupied by {occupant}, not by mover {mover}")


# =============================================================================
# A* PATHFINDING
# =============================================================================

def find_path(
    grid: GridData,
    start: CellCoord,
    goal: CellCoord,
    profile: MovementProfile,
    mover: Optional[str] = None,
    occupancy: Optional[OccupancyMap] = None,
    out_path: Optional[List[CellCoord]] = None
) -> PathResult:
    """
    Find the cheapest path between two cells using A*.

    Args:
        grid: The grid to search
        start: Starting cell
        goal: Target cell
        profile: Movement profile of the mover
        mover: Entity ID of the mover (occupancy-aware searches)
        occupancy: Occupancy map; when given, hostile cells block transit
            and the goal must be free for the mover
        out_path: Optional buffer that receives the path

    Returns:
        PathResult with the path including both endpoints
    """
    path = out_path if out_path is not None else []
    path.clear()
    movement_type = profile.movement_type

    if not grid.is_cell_passable(start, movement_type):
        return PathResult(found=False, path=path, total_cost=0, description="Start is not passable")

    if not grid.is_cell_passable(goal, movement_type):
        return PathResult(found=False, path=path, total_cost=0, description="Destination is not passable")

    if occupancy is not None:
        _warn_if_origin_held(occupancy, start, mover)
        if not occupancy.can_occupy(goal, mover):
            return PathResult(
                found=False,
                path=path,
                total_cost=0,
                description="Destination is occupied",
                blocked_by=occupancy.get_occupant(goal)
            )

    if start == goal:
        path.append(start)
        return PathResult(found=True, path=path, total_cost=0, description="Already at destination")

    estimator = _GoalEstimator(grid, goal)
    start_h = estimator.estimate(start, False)
    if start_h is None:
        return PathResult(found=False, path=path, total_cost=0, description="No path found")

    start_state = (start, False)
    cost_so_far: Dict[Tuple[CellCoord, bool], int] = {start_state: 0}
    came_from: Dict[Tuple[CellCoord, bool], Tuple[CellCoord, bool]] = {}
    closed_set = set()

    # (f, tie-break, g, cell, parity); diagonals win ties
    open_set = [(start_h, 1, 0, start, False)]
    neighbors: List[NeighborInfo] = []

    while open_set:
        _, _, g_cost, pos, parity = heapq.heappop(open_set)
        state = (pos, parity)

        if state in closed_set or g_cost > cost_so_far[state]:
            continue

        if pos == goal:
            while True:
                path.append(state[0])
                if state not in came_from:
                    break
                state = came_from[state]
            path.reverse()
            logger.debug(f"[Movement] Path {start} -> {goal}: {g_cost}ft over {len(path)} cells")
            return PathResult(found=True, path=path, total_cost=g_cost, description=f"Path found: {g_cost}ft")

        closed_set.add(state)

        grid.get_neighbors(pos, movement_type, neighbors)
        for neighbor in neighbors:
            target_cell = grid.get_cell(neighbor.pos)
            if target_cell is None:
                continue
            if not _is_traversable(occupancy, neighbor.pos, mover):
                continue

            next_parity = _next_parity(neighbor, parity)
            next_state = (neighbor.pos, next_parity)
            if next_state in closed_set:
                continue

            new_cost = g_cost + get_step_cost(target_cell, neighbor, parity, profile)
            if new_cost >= cost_so_far.get(next_state, math.inf):
                continue

            h_cost = estimator.estimate(neighbor.pos, next_parity)
            if h_cost is None:
                continue

            cost_so_far[next_state] = new_cost
            came_from[next_state] = state
            tie_break = 0 if neighbor.neighbor_type == NeighborType.DIAGONAL else 1
            heapq.heappush(open_set, (new_cost + h_cost, tie_break, new_cost, neighbor.pos, next_parity))

    logger.debug(f"[Movement] No path {start} -> {goal}")
    return PathResult(found=False, path=path, total_cost=0, description="No path found")


# =============================================================================
# MOVEMENT ZONES (Dijkstra)
# =============================================================================

def get_movement_zone(
    grid: GridData,
    origin: CellCoord,
    profile: MovementProfile,
    budget_feet: int,
    mover: Optional[str] = None,
    occupancy: Optional[OccupancyMap] = None,
    out_zone: Optional[Dict[CellCoord, int]] = None
) -> Dict[CellCoord, int]:
    """
    Get every cell reachable within a movement budget.

    Args:
        grid: The grid to search
        origin: Starting cell
        profile: Movement profile of the mover
        budget_feet: Available movement in feet
        mover: Entity ID of the mover (occupancy-aware searches)
        occupancy: Occupancy map; when given, hostile cells block transit
            and occupied cells are not valid destinations
        out_zone: Optional buffer that receives the zone

    Returns:
        Mapping of cell to the minimum cost to reach it (origin at 0)
    """
    zone = out_zone if out_zone is not None else {}
    zone.clear()
    movement_type = profile.movement_type

    _warn_if_origin_held(occupancy, origin, mover)

    if not grid.is_cell_passable(origin, movement_type):
        return zone

    cost_so_far: Dict[Tuple[CellCoord, bool], int] = {(origin, False): 0}
    best_per_cell: Dict[CellCoord, int] = {origin: 0}
    closed_set = set()
    open_set = [(0, origin, False)]
    neighbors: List[NeighborInfo] = []

    while open_set:
        g_cost, pos, parity = heapq.heappop(open_set)
        state = (pos, parity)

        if state in closed_set or g_cost > cost_so_far[state]:
            continue
        closed_set.add(state)

        grid.get_neighbors(pos, movement_type, neighbors)
        for neighbor in neighbors:
            target_cell = grid.get_cell(neighbor.pos)
            if target_cell is None:
                continue
            if not _is_traversable(occupancy, neighbor.pos, mover):
                continue

            new_cost = g_cost + get_step_cost(target_cell, neighbor, parity, profile)
            if new_cost > budget_feet:
                continue

            next_state = (neighbor.pos, _next_parity(neighbor, parity))
            if next_state in closed_set or new_cost >= cost_so_far.get(next_state, math.inf):
                continue

            cost_so_far[next_state] = new_cost
            if new_cost < best_per_cell.get(neighbor.pos, math.inf):
                best_per_cell[neighbor.pos] = new_cost
            heapq.heappush(open_set, (new_cost, next_state[0], next_state[1]))

    for pos, cost in best_per_cell.items():
        if pos != origin and not _is_stoppable(occupancy, pos, mover):
            continue
        zone[pos] = cost

    logger.debug(f"[Movement] Zone from {origin} with {budget_feet}ft: {len(zone)} cells")
    return zone


# =============================================================================
# MULTI-STRIDE MOVEMENT
# =============================================================================

@dataclass(frozen=True, order=True)
class _StrideState:
    pos: CellCoord
    parity: bool
    actions_used: int
    feet_in_stride: int


def _clamp_actions(max_actions: int) -> int:
    return max(0, min(MAX_STRIDE_ACTIONS, max_actions))


def _unwind_stride_states(
    end: _StrideState,
    came_from: Dict[_StrideState, _StrideState]
) -> Tuple[List[CellCoord], List[int]]:
    """Cells along the search tree to `end`, with reset duplicates removed."""
    states = [end]
    while states[-1] in came_from:
        states.append(came_from[states[-1]])
    states.reverse()

    path: List[CellCoord] = []
    boundaries = [0]
    for state in states:
        if path and state.pos == path[-1]:
            # A reset edge: the next unique cell opens a new Stride
            if boundaries[-1] != len(path):
                boundaries.append(len(path))
            continue
        path.append(state.pos)

    return path, [index for index in boundaries if index < len(path)]


@dataclass
class ActionZone:
    """Result of a multi-stride zone search."""
    origin: CellCoord
    min_actions: Dict[CellCoord, int] = field(default_factory=dict)
    _best_states: Dict[CellCoord, _StrideState] = field(default_factory=dict, repr=False)
    _came_from: Dict[_StrideState, _StrideState] = field(default_factory=dict, repr=False)
    _cost_so_far: Dict[_StrideState, int] = field(default_factory=dict, repr=False)

    def __contains__(self, cell: CellCoord) -> bool:
        return cell in self.min_actions

    def __len__(self) -> int:
        return len(self.min_actions)

    def get_total_feet(self, cell: CellCoord) -> Optional[int]:
        """Feet spent across all Strides on the best route to `cell`."""
        if cell == self.origin and cell in self.min_actions:
            return 0
        state = self._best_states.get(cell)
        if state is None:
            return None
        return self._cost_so_far[state] % ACTION_PENALTY

    def reconstruct_path(self, target: CellCoord) -> Optional[StridePath]:
        """Path to `target` from the stored search tree. None for the origin or unreachable cells."""
        state = self._best_states.get(target)
        if state is None:
            return None

        path, boundaries = _unwind_stride_states(state, self._came_from)
        if len(path) < 2:
            return None

        return StridePath(
            path=path,
            actions_cost=state.actions_used,
            total_feet=self._cost_so_far[state] % ACTION_PENALTY,
            action_boundaries=boundaries
        )


def _stride_search(
    grid: GridData,
    origin: CellCoord,
    profile: MovementProfile,
    max_actions: int,
    mover: Optional[str],
    occupancy: Optional[OccupancyMap],
    goal: Optional[CellCoord] = None
) -> Tuple[Dict[_StrideState, _StrideState], Dict[_StrideState, int], Dict[CellCoord, _StrideState], Optional[_StrideState]]:
    """
    Dijkstra over (cell, parity, actions used, feet in current Stride).

    Returns the search tree, the packed costs, the cheapest stoppable state
    per cell, and the goal state when `goal` is given and reached.
    """
    movement_type = profile.movement_type
    came_from: Dict[_StrideState, _StrideState] = {}
    cost_so_far: Dict[_StrideState, int] = {}
    best_states: Dict[CellCoord, _StrideState] = {}
    closed_set = set()

    start = _StrideState(origin, False, 0, 0)
    cost_so_far[start] = 0
    open_set = [(0, start)]
    neighbors: List[NeighborInfo] = []

    def relax(next_state: _StrideState, packed_cost: int, previous: _StrideState) -> None:
        if next_state in closed_set or packed_cost >= cost_so_far.get(next_state, math.inf):
            return
        cost_so_far[next_state] = packed_cost
        came_from[next_state] = previous
        heapq.heappush(open_set, (packed_cost, next_state))

    while open_set:
        packed_cost, state = heapq.heappop(open_set)
        if state in closed_set or packed_cost > cost_so_far[state]:
            continue

        if goal is not None and state.pos == goal and state.actions_used > 0:
            return came_from, cost_so_far, best_states, state

        closed_set.add(state)
        can_stop = _is_stoppable(occupancy, state.pos, mover)

        if state.pos != origin and state.actions_used > 0 and can_stop:
            best = best_states.get(state.pos)
            if best is None or packed_cost < cost_so_far[best]:
                best_states[state.pos] = state

        # Stop here and start a new Stride
        if (0 < state.actions_used < max_actions
                and state.feet_in_stride > 0
                and can_stop):
            relax(
                _StrideState(state.pos, False, state.actions_used + 1, 0),
                packed_cost + ACTION_PENALTY,
                state
            )

        grid.get_neighbors(state.pos, movement_type, neighbors)
        for neighbor in neighbors:
            target_cell = grid.get_cell(neighbor.pos)
            if target_cell is None:
                continue
            if not _is_traversable(occupancy, neighbor.pos, mover):
                continue

            step_cost = get_step_cost(target_cell, neighbor, state.parity, profile)
            if state.actions_used == 0:
                # First step spends the first action
                actions_used, penalty, feet_in_stride = 1, ACTION_PENALTY, step_cost
            else:
                actions_used, penalty, feet_in_stride = state.actions_used, 0, state.feet_in_stride + step_cost

            if actions_used > max_actions or feet_in_stride > profile.speed_feet:
                continue

            relax(
                _StrideState(neighbor.pos, _next_parity(neighbor, state.parity), actions_used, feet_in_stride),
                packed_cost + penalty + step_cost,
                state
            )

    return came_from, cost_so_far, best_states, None


def get_movement_zone_by_actions(
    grid: GridData,
    origin: CellCoord,
    profile: MovementProfile,
    max_actions: int,
    mover: Optional[str] = None,
    occupancy: Optional[OccupancyMap] = None
) -> ActionZone:
    """
    Get every cell reachable with up to `max_actions` Stride actions.

    Each Stride is limited to the profile's speed and starts with a fresh
    diagonal parity. Fewer actions always win over fewer feet.
    """
    zone = ActionZone(origin=origin)
    max_actions = _clamp_actions(max_actions)

    _warn_if_origin_held(occupancy, origin, mover)

    if not grid.is_cell_passable(origin, profile.movement_type):
        return zone

    zone.min_actions[origin] = 0
    if max_actions == 0:
        return zone

    came_from, cost_so_far, best_states, _ = _stride_search(
        grid, origin, profile, max_actions, mover, occupancy
    )
    for pos, state in best_states.items():
        zone.min_actions[pos] = state.actions_used

    zone._best_states = best_states
    zone._came_from = came_from
    zone._cost_so_far = cost_so_far

    logger.debug(
        f"[Movement] Stride zone from {origin} with {max_actions} actions: {len(zone.min_actions)} cells"
    )
    return zone


def find_path_by_actions(
    grid: GridData,
    start: CellCoord,
    goal: CellCoord,
    profile: MovementProfile,
    max_actions: int,
    mover: Optional[str] = None,
    occupancy: Optional[OccupancyMap] = None
) -> Optional[StridePath]:
    """
    Find the path to `goal` using the fewest Stride actions, then the fewest feet.

    Returns:
        StridePath, or None when the goal is not reachable within max_actions
    """
    if start == goal:
        return StridePath(path=[start], actions_cost=0, total_feet=0, action_boundaries=[0])

    max_actions = _clamp_actions(max_actions)
    movement_type = profile.movement_type
    if (max_actions == 0
            or not grid.is_cell_passable(start, movement_type)
            or not grid.is_cell_passable(goal, movement_type)):
        return None

    if not _is_stoppable(occupancy, goal, mover):
        return None

    came_from, cost_so_far, _, goal_state = _stride_search(
        grid, start, profile, max_actions, mover, occupancy, goal=goal
    )
    if goal_state is None:
        logger.debug(f"[Movement] No stride path {start} -> {goal} within {max_actions} actions")
        return None

    path, boundaries = _unwind_stride_states(goal_state, came_from)
    return StridePath(
        path=path,
        actions_cost=goal_state.actions_used,
        total_feet=cost_so_far[goal_state] % ACTION_PENALTY,
        action_boundaries=boundaries
    )
