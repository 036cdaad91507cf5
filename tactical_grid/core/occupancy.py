"""
Occupancy Map.

Tracks which entity stands on which cells. Entities may cover an N x N
footprint anchored at its minimum (x, z) corner on a single elevation.

Two indices are kept in sync: cell -> entity and entity -> cells. If
they ever disagree an OccupancyInvariantError is raised.
"""
import logging
from typing import Dict, List, Optional

from .entities import EntityRegistry, Team
from .errors import OccupancyInvariantError
from .grid import CellCoord

logger = logging.getLogger("tactical_grid.occupancy")


class OccupancyMap:
    """Cell ownership for the entities of one encounter."""

    def __init__(self, registry: Optional[EntityRegistry] = None):
        self._registry = registry if registry is not None else EntityRegistry()
        self._occupied: Dict[CellCoord, str] = {}
        self._entity_cells: Dict[str, List[CellCoord]] = {}
        self._entity_sizes: Dict[str, int] = {}

    @property
    def registry(self) -> EntityRegistry:
        return self._registry

    @property
    def occupied_cell_count(self) -> int:
        return len(self._occupied)

    # =========================================================================
    # FOOTPRINTS
    # =========================================================================

    @staticmethod
    def get_footprint(anchor: CellCoord, size_cells: int) -> List[CellCoord]:
        """N x N cells starting at `anchor`, anchor first."""
        return [
            CellCoord(anchor.x + dx, anchor.elevation, anchor.z + dz)
            for dx in range(size_cells)
            for dz in range(size_cells)
        ]

    def _is_footprint_free(self, cells: List[CellCoord], entity_id: Optional[str]) -> bool:
        for cell in cells:
            occupant = self._occupied.get(cell)
            if occupant is not None and occupant != entity_id:
                return False
        return True

    # =========================================================================
    # MUTATION
    # =========================================================================

    def place(self, entity_id: str, anchor: CellCoord, size_cells: int = 1) -> bool:
        """
        Place an entity. All-or-nothing.

        Returns:
            False if any footprint cell belongs to another entity or the size
            is invalid. Re-placing an already placed entity moves it.
        """
        if size_cells < 1:
            logger.warning(f"[OccupancyMap] Invalid footprint size {size_cells} for {entity_id}")
            return False

        cells = self.get_footprint(anchor, size_cells)
        if not self._is_footprint_free(cells, entity_id):
            logger.debug(f"[OccupancyMap] Cannot place {entity_id} at {anchor} (size {size_cells})")
            return False

        if entity_id in self._entity_cells:
            self.remove(entity_id)

        for cell in cells:
            self._occupied[cell] = entity_id
        self._entity_cells[entity_id] = cells
        self._entity_sizes[entity_id] = size_cells
        return True

    def remove(self, entity_id: str) -> None:
        """Remove an entity. No-op if it is not placed."""
        cells = self._entity_cells.get(entity_id)
        if cells is None:
            return

        for cell in cells:
            occupant = self._occupied.get(cell)
            if occupant != entity_id:
                raise OccupancyInvariantError(
                    f"Cell {cell} recorded for {entity_id} is held by {occupant}",
                    details={"entity_id": entity_id, "cell": str(cell), "occupant": occupant}
                )

        for cell in cells:
            del self._occupied[cell]
        del self._entity_cells[entity_id]
        self._entity_sizes.pop(entity_id, None)

    def move(self, entity_id: str, new_anchor: CellCoord, size_cells: Optional[int] = None) -> bool:
        """
        Move an entity to a new anchor. All-or-nothing.

        The size defaults to the entity's current footprint, then to its
        registered creature size.
        """
        if size_cells is None:
            size_cells = self._entity_sizes.get(entity_id)
        if size_cells is None:
            entity = self._registry.get(entity_id)
            size_cells = entity.size_cells if entity is not None else 1

        return self.place(entity_id, new_anchor, size_cells)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def is_occupied(self, cell: CellCoord) -> bool:
        return cell in self._occupied

    def get_occupant(self, cell: CellCoord) -> Optional[str]:
        return self._occupied.get(cell)

    def get_occupied_cells(self, entity_id: str) -> List[CellCoord]:
        """Copy of the cells held by an entity (empty if not placed)."""
        return list(self._entity_cells.get(entity_id, ()))

    def get_anchor(self, entity_id: str) -> Optional[CellCoord]:
        cells = self._entity_cells.get(entity_id)
        return cells[0] if cells else None

    def get_size(self, entity_id: str) -> Optional[int]:
        return self._entity_sizes.get(entity_id)

    def can_traverse(self, cell: CellCoord, mover: Optional[str]) -> bool:
        """
        Whether `mover` may pass through `cell`.

        Free cells, the mover's own cells, allies and neutrals are passable.
        Unknown entities on either side never block.
        """
        occupant = self._occupied.get(cell)
        if occupant is None or occupant == mover:
            return True

        occupant_data = self._registry.get(occupant)
        mover_data = self._registry.get(mover) if mover is not None else None
        if occupant_data is None or mover_data is None:
            return True

        if occupant_data.team == Team.NEUTRAL:
            return True
        return occupant_data.team == mover_data.team

    def can_occupy(self, cell: CellCoord, mover: Optional[str]) -> bool:
        """Whether `mover` may end its movement on `cell`."""
        occupant = self._occupied.get(cell)
        return occupant is None or occupant == mover

    def can_occupy_footprint(self, anchor: CellCoord, size_cells: int, mover: Optional[str]) -> bool:
        if size_cells < 1:
            return False
        return self._is_footprint_free(self.get_footprint(anchor, size_cells), mover)

    def verify_integrity(self) -> None:
        """Raise OccupancyInvariantError if the two indices disagree."""
        recorded = 0
        for entity_id, cells in self._entity_cells.items():
            for cell in cells:
                occupant = self._occupied.get(cell)
                if occupant != entity_id:
                    raise OccupancyInvariantError(
                        f"Cell {cell} recorded for {entity_id} is held by {occupant}",
                        details={"entity_id": entity_id, "cell": str(cell), "occupant": occupant}
                    )
            recorded += len(cells)

        if recorded != len(self._occupied):
            raise OccupancyInvariantError(
                "Occupied cells without an owning entity",
                details={"recorded": recorded, "occupied": len(self._occupied)}
            )

    def to_dict(self):
        return {
            entity_id: [cell.to_list() for cell in cells]
            for entity_id, cells in self._entity_cells.items()
        }
