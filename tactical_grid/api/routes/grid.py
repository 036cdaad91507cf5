"""
Grid API Routes.

Handles encounter grids: authoring cells, walls and vertical links,
placing entities, and movement queries (paths, zones, multi-Stride zones).
"""
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from tactical_grid.config import get_settings
from tactical_grid.core.encounter_storage import (
    EncounterMap,
    create_encounter,
    get_encounter,
    remove_encounter,
)
from tactical_grid.core.entities import CreatureSize, EntityData, Team
from tactical_grid.core.errors import (
    EntityNotFoundError,
    GridNotFoundError,
    InvalidCellError,
    OccupancyConflictError,
    ValidationError,
)
from tactical_grid.core.grid import (
    DEFAULT_LINK_COST_FEET,
    CellCoord,
    CellData,
    CellTerrain,
    EdgeData,
    EdgeKey,
    EdgeType,
    GridData,
    MovementType,
    VerticalLink,
    VerticalLinkType,
    fill_rect,
)
from tactical_grid.core.movement import (
    MovementProfile,
    find_path,
    get_movement_zone,
    get_movement_zone_by_actions,
)

router = APIRouter()


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class CellPosition(BaseModel):
    """A cell coordinate."""
    x: int
    elevation: int = 0
    z: int


class CellDefinition(CellPosition):
    """An authored cell."""
    terrain: str = Field(default="normal", description="normal, difficult, greater_difficult, hazardous, impassable")
    blocked: bool = Field(default=False, description="Fully blocked (also for flyers)")
    cover_value: int = Field(default=0, ge=0, le=3)


class CreateGridRequest(BaseModel):
    """Request to create an encounter grid."""
    width: int = Field(default=10, ge=0, le=200, description="Cells along x")
    depth: int = Field(default=10, ge=0, le=200, description="Cells along z")
    elevation: int = Field(default=0, description="Elevation of the generated rectangle")
    obstacles: List[CellPosition] = Field(default_factory=list, description="Fully blocked cells")
    difficult_terrain: List[CellPosition] = Field(default_factory=list, description="Difficult terrain cells")
    cells: List[CellDefinition] = Field(default_factory=list, description="Explicit cells, applied last")


class CreateGridResponse(BaseModel):
    """Response for a created grid."""
    success: bool
    grid_id: str
    cell_count: int


class EdgeRequest(BaseModel):
    """Set the wall/door state between two adjacent cells."""
    a: CellPosition
    b: CellPosition
    edge_type: str = Field(default="wall", description="none, wall, door, window, arrow_slit")
    is_open: bool = Field(default=False, description="Only used for doors")


class LinkRequest(BaseModel):
    """Add a vertical link between two cells."""
    lower: CellPosition
    upper: CellPosition
    link_type: str = Field(default="stairs", description="stairs, ladder, ramp, jumpable")
    cost_feet: Optional[int] = Field(default=None, description="Defaults per link type")


class PlaceEntityRequest(BaseModel):
    """Register an entity and place it on the grid."""
    name: str
    team: str = Field(default="player", description="player, enemy, neutral")
    size: str = Field(default="medium", description="tiny .. gargantuan")
    speed_feet: int = Field(default=30, ge=0)
    anchor: CellPosition
    entity_id: Optional[str] = None


class MoveEntityRequest(BaseModel):
    """Move an entity to a new anchor cell."""
    anchor: CellPosition


class MovementQuery(BaseModel):
    """Options shared by movement queries."""
    movement_type: str = Field(default="walk", description="walk, fly, swim, climb")
    speed_feet: Optional[int] = Field(default=None, ge=0, description="Defaults to the mover's speed")
    ignores_difficult_terrain: bool = False
    mover_id: Optional[str] = Field(default=None, description="Makes the query occupancy-aware")


class PathRequest(MovementQuery):
    """Request a path between two cells."""
    start: Optional[CellPosition] = Field(default=None, description="Defaults to the mover's anchor")
    goal: CellPosition


class PathResponse(BaseModel):
    """Response containing a path."""
    found: bool
    path: List[List[int]]
    total_cost: int
    description: str
    blocked_by: Optional[str] = None


class ZoneRequest(MovementQuery):
    """Request a movement zone."""
    origin: Optional[CellPosition] = Field(default=None, description="Defaults to the mover's anchor")
    budget_feet: Optional[int] = Field(default=None, ge=0, description="Defaults to the speed")


class ActionZoneRequest(MovementQuery):
    """Request a multi-Stride movement zone."""
    origin: Optional[CellPosition] = Field(default=None, description="Defaults to the mover's anchor")
    max_actions: Optional[int] = Field(default=None, ge=0, description="Defaults to MAX_STRIDE_ACTIONS")


# =============================================================================
# HELPERS
# =============================================================================

def _to_coord(position: CellPosition) -> CellCoord:
    return CellCoord(position.x, position.elevation, position.z)


def _parse_enum(enum_cls: Type[Enum], value: str, field: str):
    try:
        return enum_cls(value.lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationError(field, f"Invalid {field} '{value}'. Expected one of: {allowed}", value)


def _get_encounter_or_404(grid_id: str) -> EncounterMap:
    encounter = get_encounter(grid_id)
    if encounter is None:
        raise GridNotFoundError(grid_id)
    return encounter


def _get_entity_or_404(encounter: EncounterMap, entity_id: str) -> EntityData:
    entity = encounter.registry.get(entity_id)
    if entity is None:
        raise EntityNotFoundError(entity_id)
    return entity


def _require_cell(grid: GridData, cell: CellCoord) -> None:
    if not grid.has_cell(cell):
        raise InvalidCellError(cell)


def _build_profile(query: MovementQuery, mover: Optional[EntityData]) -> MovementProfile:
    settings = get_settings()
    if query.speed_feet is not None:
        speed = query.speed_feet
    elif mover is not None:
        speed = mover.speed_feet
    else:
        speed = settings.DEFAULT_SPEED_FEET

    return MovementProfile(
        movement_type=_parse_enum(MovementType, query.movement_type, "movement_type"),
        speed_feet=speed,
        creature_size_cells=mover.size_cells if mover is not None else 1,
        ignores_difficult_terrain=query.ignores_difficult_terrain
    )


def _resolve_mover(encounter: EncounterMap, query: MovementQuery) -> Optional[EntityData]:
    if query.mover_id is None:
        return None
    return _get_entity_or_404(encounter, query.mover_id)


def _resolve_origin(
    encounter: EncounterMap,
    position: Optional[CellPosition],
    mover: Optional[EntityData],
    field: str
) -> CellCoord:
    if position is not None:
        return _to_coord(position)
    if mover is not None:
        anchor = encounter.occupancy.get_anchor(mover.id)
        if anchor is not None:
            return anchor
    raise ValidationError(field, f"'{field}' is required when the mover is not placed")


def _edge_from_request(request: EdgeRequest) -> EdgeData:
    edge_type = _parse_enum(EdgeType, request.edge_type, "edge_type")
    if edge_type == EdgeType.WALL:
        return EdgeData.create_wall()
    if edge_type == EdgeType.DOOR:
        return EdgeData.create_door(open=request.is_open)
    if edge_type in (EdgeType.WINDOW, EdgeType.ARROW_SLIT):
        return EdgeData(edge_type=edge_type, blocks_movement=True, blocks_line_of_sight=False)
    return EdgeData()


def _cell_entries(cells: Dict[CellCoord, int], value_key: str) -> List[Dict[str, int]]:
    return [
        {"x": cell.x, "elevation": cell.elevation, "z": cell.z, value_key: value}
        for cell, value in sorted(cells.items())
    ]


# =============================================================================
# GRID ENDPOINTS
# =============================================================================

@router.post("", response_model=CreateGridResponse, status_code=status.HTTP_201_CREATED)
async def create_grid(request: CreateGridRequest):
    """
    Create an encounter grid.

    Builds a walkable width x depth rectangle, then applies obstacles,
    difficult terrain and finally any explicit cells.
    """
    grid = GridData.from_settings(get_settings())

    if request.width > 0 and request.depth > 0:
        fill_rect(grid, 0, request.width - 1, 0, request.depth - 1, elevation=request.elevation)

    for position in request.obstacles:
        grid.set_cell(_to_coord(position), CellData.create_blocked())

    for position in request.difficult_terrain:
        grid.set_cell(_to_coord(position), CellData.create_walkable(CellTerrain.DIFFICULT))

    for definition in request.cells:
        if definition.blocked:
            cell = CellData.create_blocked()
        else:
            terrain = _parse_enum(CellTerrain, definition.terrain, "terrain")
            if terrain == CellTerrain.IMPASSABLE:
                cell = CellData.create_impassable()
            else:
                cell = CellData.create_walkable(terrain)
        grid.set_cell(_to_coord(definition), CellData(cell.terrain, cell.flags, definition.cover_value))

    grid_id = create_encounter(grid)
    return CreateGridResponse(success=True, grid_id=grid_id, cell_count=grid.cell_count)


@router.get("/{grid_id}")
async def get_grid(grid_id: str) -> Dict[str, Any]:
    """Get the serialized grid with entity placements."""
    encounter = _get_encounter_or_404(grid_id)
    return {
        "grid_id": grid_id,
        "version": encounter.grid.version,
        "grid": encounter.grid.to_dict(),
        "entities": [entity.to_dict() for entity in encounter.registry.get_all()],
        "occupancy": encounter.occupancy.to_dict()
    }


@router.delete("/{grid_id}")
async def delete_grid(grid_id: str):
    """Drop an encounter grid together with its entities."""
    if not remove_encounter(grid_id):
        raise GridNotFoundError(grid_id)
    return {"success": True, "grid_id": grid_id}

@router.post("/{grid_id}/edges")
async def set_edge(grid_id: str, request: EdgeRequest):
    """Set a wall, door or window between two planar-adjacent cells."""
    encounter = _get_encounter_or_404(grid_id)
    a = _to_coord(request.a)
    b = _to_coord(request.b)

    if a.elevation != b.elevation or abs(a.x - b.x) + abs(a.z - b.z) != 1:
        raise ValidationError("b", "Edges connect planar-adjacent cells on one elevation", str(b))

    edge = _edge_from_request(request)
    encounter.grid.set_edge(EdgeKey(a, b), edge)
    return {
        "success": True,
        "edge_type": edge.edge_type.value,
        "blocks_movement": edge.blocks_movement,
        "version": encounter.grid.version
    }


@router.post("/{grid_id}/links")
async def add_link(grid_id: str, request: LinkRequest):
    """Add a vertical link (stairs, ladder, ...) between two existing cells."""
    encounter = _get_encounter_or_404(grid_id)
    lower = _to_coord(request.lower)
    upper = _to_coord(request.upper)
    _require_cell(encounter.grid, lower)
    _require_cell(encounter.grid, upper)

    link_type = _parse_enum(VerticalLinkType, request.link_type, "link_type")
    cost = request.cost_feet if request.cost_feet is not None else DEFAULT_LINK_COST_FEET[link_type]
    encounter.grid.add_vertical_link(VerticalLink(lower, upper, link_type, cost))
    return {
        "success": True,
        "link_type": link_type.value,
        "cost_feet": cost,
        "version": encounter.grid.version
    }


# =============================================================================
# ENTITY ENDPOINTS
# =============================================================================

@router.post("/{grid_id}/entities", status_code=status.HTTP_201_CREATED)
async def place_entity(grid_id: str, request: PlaceEntityRequest):
    """Register an entity and place it with its full footprint."""
    encounter = _get_encounter_or_404(grid_id)
    anchor = _to_coord(request.anchor)
    _require_cell(encounter.grid, anchor)

    entity = EntityData(
        name=request.name,
        team=_parse_enum(Team, request.team, "team"),
        size=_parse_enum(CreatureSize, request.size, "size"),
        speed_feet=request.speed_feet
    )
    if request.entity_id:
        entity.id = request.entity_id

    if encounter.registry.exists(entity.id):
        raise OccupancyConflictError(entity.id, anchor, entity.size_cells)

    encounter.registry.register(entity)
    if not encounter.occupancy.place(entity.id, anchor, entity.size_cells):
        encounter.registry.unregister(entity.id)
        raise OccupancyConflictError(entity.id, anchor, entity.size_cells)

    return {
        "success": True,
        "entity": entity.to_dict(),
        "cells": [cell.to_list() for cell in encounter.occupancy.get_occupied_cells(entity.id)]
    }


@router.post("/{grid_id}/entities/{entity_id}/move")
async def move_entity(grid_id: str, entity_id: str, request: MoveEntityRequest):
    """Move an entity. The previous placement is kept if the move fails."""
    encounter = _get_encounter_or_404(grid_id)
    entity = _get_entity_or_404(encounter, entity_id)
    anchor = _to_coord(request.anchor)
    _require_cell(encounter.grid, anchor)

    if not encounter.occupancy.move(entity_id, anchor):
        size_cells = encounter.occupancy.get_size(entity_id) or entity.size_cells
        raise OccupancyConflictError(entity_id, anchor, size_cells)

    return {
        "success": True,
        "entity_id": entity_id,
        "cells": [cell.to_list() for cell in encounter.occupancy.get_occupied_cells(entity_id)]
    }


@router.delete("/{grid_id}/entities/{entity_id}")
async def remove_entity(grid_id: str, entity_id: str):
    """Remove an entity from the grid and the registry."""
    encounter = _get_encounter_or_404(grid_id)
    _get_entity_or_404(encounter, entity_id)

    encounter.occupancy.remove(entity_id)
    encounter.registry.unregister(entity_id)
    return {"success": True, "entity_id": entity_id}


# =============================================================================
# MOVEMENT ENDPOINTS
# =============================================================================

@router.post("/{grid_id}/path", response_model=PathResponse)
async def get_path(grid_id: str, request: PathRequest):
    """
    Find the cheapest path between two cells.

    With `mover_id` the search respects occupancy: hostile entities block,
    allies and neutrals can be passed through, and the goal must be free.
    """
    encounter = _get_encounter_or_404(grid_id)
    mover = _resolve_mover(encounter, request)
    start = _resolve_origin(encounter, request.start, mover, "start")
    profile = _build_profile(request, mover)

    result = find_path(
        encounter.grid,
        start,
        _to_coord(request.goal),
        profile,
        mover=mover.id if mover else None,
        occupancy=encounter.occupancy if mover else None
    )
    return PathResponse(
        found=result.found,
        path=[cell.to_list() for cell in result.path],
        total_cost=result.total_cost,
        description=result.description,
        blocked_by=result.blocked_by
    )


@router.post("/{grid_id}/zone")
async def get_zone(grid_id: str, request: ZoneRequest):
    """Get every cell reachable within the movement budget, with its cost."""
    encounter = _get_encounter_or_404(grid_id)
    mover = _resolve_mover(encounter, request)
    origin = _resolve_origin(encounter, request.origin, mover, "origin")
    profile = _build_profile(request, mover)
    budget = request.budget_feet if request.budget_feet is not None else profile.speed_feet

    zone = get_movement_zone(
        encounter.grid,
        origin,
        profile,
        budget,
        mover=mover.id if mover else None,
        occupancy=encounter.occupancy if mover else None
    )
    return {
        "origin": origin.to_list(),
        "budget_feet": budget,
        "cells": _cell_entries(zone, "cost")
    }


@router.post("/{grid_id}/zone/actions")
async def get_action_zone(grid_id: str, request: ActionZoneRequest):
    """Get every cell reachable with up to N Stride actions, with the actions needed."""
    encounter = _get_encounter_or_404(grid_id)
    mover = _resolve_mover(encounter, request)
    origin = _resolve_origin(encounter, request.origin, mover, "origin")
    profile = _build_profile(request, mover)
    max_actions = request.max_actions if request.max_actions is not None else get_settings().MAX_STRIDE_ACTIONS

    zone = get_movement_zone_by_actions(
        encounter.grid,
        origin,
        profile,
        max_actions,
        mover=mover.id if mover else None,
        occupancy=encounter.occupancy if mover else None
    )
    return {
        "origin": origin.to_list(),
        "max_actions": max_actions,
        "cells": _cell_entries(zone.min_actions, "actions")
    }
