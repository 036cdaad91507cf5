"""Tests for the grid HTTP API."""
import pytest
from fastapi.testclient import TestClient

from tactical_grid.core.encounter_storage import active_encounters, clear_encounters
from tactical_grid.core.grid import CellCoord
from tactical_grid.main import app


@pytest.fixture
def client():
    """Test client with clean encounter storage."""
    clear_encounters()
    with TestClient(app) as test_client:
        yield test_client
    clear_encounters()


@pytest.fixture
def grid_id(client) -> str:
    """A 10x10 encounter grid."""
    response = client.post("/api/grids", json={"width": 10, "depth": 10})
    return response.json()["grid_id"]


def pos(x: int, z: int, elevation: int = 0) -> dict:
    return {"x": x, "elevation": elevation, "z": z}


class TestHealth:
    """Test service endpoints."""

    def test_health(self, client):
        """Health check reports healthy."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestGridEndpoints:
    """Test grid authoring endpoints."""

    def test_create_grid(self, client):
        """Creating a grid stores it and reports the cell count."""
        response = client.post("/api/grids", json={
            "width": 5,
            "depth": 4,
            "obstacles": [pos(1, 1)],
            "difficult_terrain": [pos(2, 2)],
        })

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["cell_count"] == 20
        assert data["grid_id"] in active_encounters

    def test_create_grid_with_explicit_cells(self, client):
        """Explicit cells are added on top of the rectangle."""
        response = client.post("/api/grids", json={
            "width": 0,
            "depth": 0,
            "cells": [pos(0, 0), {**pos(1, 0), "terrain": "greater_difficult"}],
        })

        assert response.json()["cell_count"] == 2

    def test_invalid_terrain(self, client):
        """Unknown terrain names are rejected with a structured error."""
        response = client.post("/api/grids", json={"cells": [{**pos(0, 0), "terrain": "lava"}]})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_get_grid(self, client, grid_id):
        """The serialized grid is returned."""
        response = client.get(f"/api/grids/{grid_id}")

        assert response.status_code == 200
        data = response.json()
        assert len(data["grid"]["cells"]) == 100
        assert data["occupancy"] == {}

    def test_unknown_grid(self, client):
        """Unknown grid ids give a 404 with an error id."""
        response = client.get("/api/grids/missing")

        assert response.status_code == 404
        error = response.json()["error"]
        assert error["code"] == "GRID_NOT_FOUND"
        assert len(error["error_id"]) == 8
        assert "timestamp" in error

    def test_delete_grid(self, client, grid_id):
        """A deleted grid is gone from storage and later lookups give 404."""
        response = client.delete(f"/api/grids/{grid_id}")

        assert response.status_code == 200
        assert response.json() == {"success": True, "grid_id": grid_id}
        assert grid_id not in active_encounters
        assert client.get(f"/api/grids/{grid_id}").status_code == 404

    def test_delete_unknown_grid(self, client):
        """Deleting an unknown grid gives 404."""
        response = client.delete("/api/grids/missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "GRID_NOT_FOUND"

    def test_set_wall(self, client, grid_id):
        """A wall changes the path cost."""
        client.post(f"/api/grids/{grid_id}/edges", json={"a": pos(0, 0), "b": pos(1, 0)})

        response = client.post(f"/api/grids/{grid_id}/path", json={"start": pos(0, 0), "goal": pos(1, 0)})

        assert response.json()["total_cost"] == 15

    def test_edge_requires_adjacent_cells(self, client, grid_id):
        """Edges between non-adjacent cells are rejected."""
        response = client.post(f"/api/grids/{grid_id}/edges", json={"a": pos(0, 0), "b": pos(2, 0)})

        assert response.status_code == 400

    def test_add_link_requires_existing_cells(self, client, grid_id):
        """Links to missing cells are rejected."""
        response = client.post(f"/api/grids/{grid_id}/links", json={
            "lower": pos(0, 0),
            "upper": pos(0, 0, elevation=1),
        })

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "GRID_CELL_INVALID"

    def test_add_link_and_climb(self, client):
        """A link lets paths change elevation."""
        grid_id = client.post("/api/grids", json={
            "width": 3,
            "depth": 1,
            "cells": [pos(0, 0, elevation=1), pos(1, 0, elevation=1)],
        }).json()["grid_id"]

        link = client.post(f"/api/grids/{grid_id}/links", json={
            "lower": pos(0, 0),
            "upper": pos(0, 0, elevation=1),
            "link_type": "ladder",
        })
        path = client.post(f"/api/grids/{grid_id}/path", json={
            "start": pos(0, 0),
            "goal": pos(1, 0, elevation=1),
        })

        assert link.json()["cost_feet"] == 10
        assert path.json()["found"] is True
        assert path.json()["total_cost"] == 15


class TestEntityEndpoints:
    """Test entity placement endpoints."""

    def test_place_entity(self, client, grid_id):
        """Placing a large entity returns its footprint."""
        response = client.post(f"/api/grids/{grid_id}/entities", json={
            "name": "Ogre",
            "team": "enemy",
            "size": "large",
            "anchor": pos(2, 2),
            "entity_id": "ogre-1",
        })

        assert response.status_code == 201
        assert len(response.json()["cells"]) == 4

    def test_place_conflict(self, client, grid_id):
        """Placing onto another entity gives 409 and does not register it."""
        client.post(f"/api/grids/{grid_id}/entities", json={"name": "A", "anchor": pos(2, 2), "entity_id": "a"})

        response = client.post(f"/api/grids/{grid_id}/entities", json={
            "name": "B", "anchor": pos(2, 2), "entity_id": "b"
        })

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "OCCUPANCY_CONFLICT"
        assert active_encounters[grid_id].registry.exists("b") is False

    def test_move_entity(self, client, grid_id):
        """Entities can be moved to a free cell."""
        client.post(f"/api/grids/{grid_id}/entities", json={"name": "A", "anchor": pos(0, 0), "entity_id": "a"})

        response = client.post(f"/api/grids/{grid_id}/entities/a/move", json={"anchor": pos(5, 5)})

        assert response.status_code == 200
        assert response.json()["cells"] == [[5, 0, 5]]

    def test_move_conflict_reports_footprint_size(self, client, grid_id):
        """A blocked move gives 409 with the size of the footprint that was tried."""
        client.post(f"/api/grids/{grid_id}/entities", json={
            "name": "Ogre", "size": "large", "anchor": pos(0, 0), "entity_id": "ogre-1"
        })
        client.post(f"/api/grids/{grid_id}/entities", json={"name": "A", "anchor": pos(5, 5), "entity_id": "a"})

        response = client.post(f"/api/grids/{grid_id}/entities/ogre-1/move", json={"anchor": pos(4, 4)})

        assert response.status_code == 409
        assert response.json()["error"]["details"]["size_cells"] == 2
        assert active_encounters[grid_id].occupancy.get_anchor("ogre-1") == CellCoord(0, 0, 0)

    def test_move_unknown_entity(self, client, grid_id):
        """Moving an unknown entity gives 404."""
        response = client.post(f"/api/grids/{grid_id}/entities/nobody/move", json={"anchor": pos(5, 5)})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ENTITY_NOT_FOUND"

    def test_remove_entity(self, client, grid_id):
        """Removed entities free their cells."""
        client.post(f"/api/grids/{grid_id}/entities", json={"name": "A", "anchor": pos(0, 0), "entity_id": "a"})

        response = client.delete(f"/api/grids/{grid_id}/entities/a")

        assert response.status_code == 200
        assert active_encounters[grid_id].occupancy.occupied_cell_count == 0


class TestMovementEndpoints:
    """Test path and zone endpoints."""

    def test_path(self, client, grid_id):
        """Path endpoint returns cells and cost."""
        response = client.post(f"/api/grids/{grid_id}/path", json={"start": pos(0, 0), "goal": pos(3, 3)})

        data = response.json()
        assert data["found"] is True
        assert data["total_cost"] == 20
        assert data["path"][0] == [0, 0, 0]

    def test_path_for_mover_uses_anchor(self, client, grid_id):
        """With a mover the start defaults to its anchor and enemies block the goal."""
        client.post(f"/api/grids/{grid_id}/entities", json={"name": "Hero", "anchor": pos(0, 0), "entity_id": "hero"})
        client.post(f"/api/grids/{grid_id}/entities", json={
            "name": "Goblin", "team": "enemy", "anchor": pos(4, 0), "entity_id": "gob"
        })

        blocked = client.post(f"/api/grids/{grid_id}/path", json={"goal": pos(4, 0), "mover_id": "hero"})
        free = client.post(f"/api/grids/{grid_id}/path", json={"goal": pos(3, 0), "mover_id": "hero"})

        assert blocked.json()["found"] is False
        assert blocked.json()["blocked_by"] == "gob"
        assert free.json()["total_cost"] == 15

    def test_zone(self, client, grid_id):
        """Zone endpoint returns every reachable cell with its cost."""
        response = client.post(f"/api/grids/{grid_id}/zone", json={"origin": pos(0, 0), "budget_feet": 5})

        cells = response.json()["cells"]
        assert len(cells) == 4
        assert {"x": 1, "elevation": 0, "z": 1, "cost": 5} in cells

    def test_zone_defaults_budget_to_speed(self, client, grid_id):
        """Without a budget the speed is used."""
        response = client.post(f"/api/grids/{grid_id}/zone", json={"origin": pos(0, 0), "speed_feet": 10})

        assert response.json()["budget_feet"] == 10

    def test_zone_requires_origin(self, client, grid_id):
        """Zones without origin or placed mover are rejected."""
        response = client.post(f"/api/grids/{grid_id}/zone", json={"budget_feet": 10})

        assert response.status_code == 400

    def test_action_zone(self, client, grid_id):
        """Multi-Stride zone reports the actions per cell."""
        response = client.post(f"/api/grids/{grid_id}/zone/actions", json={
            "origin": pos(0, 0), "speed_feet": 10, "max_actions": 2
        })

        cells = {(c["x"], c["z"]): c["actions"] for c in response.json()["cells"]}
        assert cells[(0, 0)] == 0
        assert cells[(2, 0)] == 1
        assert cells[(4, 0)] == 2
        assert (5, 0) not in cells

    def test_invalid_request_body(self, client, grid_id):
        """Malformed bodies give a structured 422."""
        response = client.post(f"/api/grids/{grid_id}/path", json={"start": pos(0, 0)})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
