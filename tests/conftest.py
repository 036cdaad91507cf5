"""
Tactical Grid - Test Configuration and Fixtures
Shared test utilities and fixtures for pytest.
"""
import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tactical_grid.core.entities import CreatureSize, EntityData, EntityRegistry, Team
from tactical_grid.core.grid import CellCoord, GridData, fill_rect
from tactical_grid.core.movement import MovementProfile
from tactical_grid.core.occupancy import OccupancyMap


# ==================== Grid Fixtures ====================

@pytest.fixture
def flat_grid() -> GridData:
    """10x10 walkable grid at elevation 0."""
    grid = GridData()
    fill_rect(grid, 0, 9, 0, 9)
    return grid


@pytest.fixture
def two_floor_grid() -> GridData:
    """Two 5x5 floors (elevation 0 and 1) without links."""
    grid = GridData()
    fill_rect(grid, 0, 4, 0, 4, elevation=0)
    fill_rect(grid, 0, 4, 0, 4, elevation=1)
    return grid


@pytest.fixture
def walk_profile() -> MovementProfile:
    """Default walking profile (30 ft, medium)."""
    return MovementProfile.default()


# ==================== Entity Fixtures ====================

@pytest.fixture
def registry() -> EntityRegistry:
    """Registry with a player, an ally, an enemy and a neutral."""
    registry = EntityRegistry()
    registry.register(EntityData(name="Valeros", team=Team.PLAYER, id="player-1"))
    registry.register(EntityData(name="Kyra", team=Team.PLAYER, id="player-2"))
    registry.register(EntityData(name="Goblin", team=Team.ENEMY, id="enemy-1"))
    registry.register(EntityData(name="Villager", team=Team.NEUTRAL, id="neutral-1"))
    registry.register(EntityData(name="Ogre", team=Team.ENEMY, size=CreatureSize.LARGE, id="ogre-1"))
    return registry


@pytest.fixture
def occupancy(registry) -> OccupancyMap:
    """Empty occupancy map backed by the shared registry."""
    return OccupancyMap(registry)


def cell(x: int, z: int, elevation: int = 0) -> CellCoord:
    """Shorthand for a cell coordinate."""
    return CellCoord(x, elevation, z)
