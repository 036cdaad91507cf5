"""
Tactical Grid - Custom Error Types
Structured exceptions for grid and occupancy errors with recovery hints.

The movement core reports ordinary failures (missing cells, blocked
placements, unreachable goals) through return values. These exceptions are
raised by the HTTP layer when it turns such failures into responses, and by
the occupancy map when one of its internal indices is found corrupted.
"""
from typing import Dict, Any, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the movement engine."""
    # General errors
    UNKNOWN = "UNKNOWN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"

    # Grid errors
    GRID_NOT_FOUND = "GRID_NOT_FOUND"
    GRID_CELL_INVALID = "GRID_CELL_INVALID"

    # Entity / occupancy errors
    ENTITY_NOT_FOUND = "ENTITY_NOT_FOUND"
    OCCUPANCY_CONFLICT = "OCCUPANCY_CONFLICT"
    OCCUPANCY_INVARIANT_VIOLATED = "OCCUPANCY_INVARIANT_VIOLATED"


class GameError(Exception):
    """
    Base exception for all engine errors.

    Provides structured error information with:
    - Error code for programmatic handling
    - Human-readable message
    - Additional context details
    - Recovery hints for the client
    """

    def __init__(
        self,
        code: ErrorCode = ErrorCode.UNKNOWN,
        message: str = "An unexpected error occurred",
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
        recovery_hint: Optional[str] = None,
        http_status: int = 500
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable
        self.recovery_hint = recovery_hint
        self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON response."""
        return {
            "error": {
                "code": self.code.value,
                "message": self.message,
                "details": self.details,
                "recoverable": self.recoverable,
                "recovery_hint": self.recovery_hint
            }
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


# =============================================================================
# Grid Errors
# =============================================================================

class GridError(GameError):
    """Grid-related errors."""

    def __init__(
        self,
        code: ErrorCode = ErrorCode.GRID_CELL_INVALID,
        message: str = "Grid error",
        **kwargs
    ):
        kwargs.setdefault("http_status", 400)
        super().__init__(code=code, message=message, **kwargs)


class GridNotFoundError(GridError):
    """Raised when an encounter grid is not found."""

    def __init__(self, grid_id: Optional[str] = None):
        details = {}
        if grid_id:
            details["grid_id"] = grid_id
        super().__init__(
            code=ErrorCode.GRID_NOT_FOUND,
            message="Grid not found",
            details=details,
            http_status=404,
            recovery_hint="Create a grid before querying it"
        )


class InvalidCellError(GridError):
    """Raised when a request names a cell that is not part of the grid."""

    def __init__(self, cell: Any, reason: str = "Cell does not exist"):
        super().__init__(
            code=ErrorCode.GRID_CELL_INVALID,
            message=reason,
            details={"cell": str(cell)},
            recovery_hint="Pick a cell that exists on the grid"
        )


# =============================================================================
# Entity / Occupancy Errors
# =============================================================================

class EntityNotFoundError(GameError):
    """Raised when an entity is not registered."""

    def __init__(self, entity_id: Optional[str] = None):
        details = {}
        if entity_id:
            details["entity_id"] = entity_id
        super().__init__(
            code=ErrorCode.ENTITY_NOT_FOUND,
            message="Entity not found",
            details=details,
            http_status=404,
            recovery_hint="Place the entity on the grid first"
        )


class OccupancyConflictError(GameError):
    """Raised when a placement or move would overlap another entity."""

    def __init__(self, entity_id: str, anchor: Any, size_cells: int = 1):
        super().__init__(
            code=ErrorCode.OCCUPANCY_CONFLICT,
            message="Footprint is blocked by another entity",
            details={
                "entity_id": entity_id,
                "anchor": str(anchor),
                "size_cells": size_cells
            },
            http_status=409,
            recovery_hint="Choose an unoccupied destination"
        )


class OccupancyInvariantError(GameError):
    """
    Raised when the occupancy indices disagree with each other.

    This is never an input problem: it means the code maintaining the
    occupancy map has a bug.
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            code=ErrorCode.OCCUPANCY_INVARIANT_VIOLATED,
            message=message,
            details=details,
            recoverable=False,
            http_status=500
        )


# =============================================================================
# Validation Error
# =============================================================================

class ValidationError(GameError):
    """Input validation errors."""

    def __init__(self, field: str, message: str, value: Any = None):
        details = {"field": field}
        if value is not None:
            details["value"] = str(value)
        super().__init__(
            code=ErrorCode.VALIDATION_ERROR,
            message=message,
            details=details,
            http_status=400,
            recovery_hint=f"Check the value for '{field}'"
        )
