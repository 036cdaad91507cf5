"""Middleware package for the tactical grid service."""

from tactical_grid.middleware.error_handler import setup_error_handlers

__all__ = [
    "setup_error_handlers",
]
