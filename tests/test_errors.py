"""Tests for structured error types."""
from tactical_grid.core.errors import (
    ErrorCode,
    GameError,
    GridNotFoundError,
    InvalidCellError,
    OccupancyConflictError,
    ValidationError,
)

from conftest import cell


class TestGameError:
    """Test GameError serialization."""

    def test_to_dict(self):
        """Errors serialize into the response envelope."""
        error = GameError(code=ErrorCode.CONFLICT, message="Nope", details={"a": 1}, recovery_hint="Retry")

        data = error.to_dict()

        assert data["error"]["code"] == "CONFLICT"
        assert data["error"]["message"] == "Nope"
        assert data["error"]["details"] == {"a": 1}
        assert data["error"]["recoverable"] is True
        assert data["error"]["recovery_hint"] == "Retry"

    def test_defaults(self):
        """Default error is an unknown 500."""
        error = GameError()

        assert error.code == ErrorCode.UNKNOWN
        assert error.http_status == 500


class TestErrorSubclasses:
    """Test error subclasses carry the right status codes."""

    def test_grid_not_found(self):
        """Missing grids are 404."""
        error = GridNotFoundError("abc")

        assert error.http_status == 404
        assert error.details == {"grid_id": "abc"}

    def test_invalid_cell(self):
        """Invalid cells are 400 and name the cell."""
        error = InvalidCellError(cell(1, 2))

        assert error.http_status == 400
        assert error.code == ErrorCode.GRID_CELL_INVALID
        assert error.details["cell"] == "(1, 0, 2)"

    def test_occupancy_conflict(self):
        """Occupancy conflicts are 409."""
        error = OccupancyConflictError("ogre-1", cell(0, 0), 2)

        assert error.http_status == 409
        assert error.details["size_cells"] == 2

    def test_validation_error(self):
        """Validation errors name the field."""
        error = ValidationError("terrain", "Invalid terrain", "lava")

        assert error.http_status == 400
        assert error.details == {"field": "terrain", "value": "lava"}
