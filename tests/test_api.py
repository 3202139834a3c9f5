"""
API tests for api/main.py endpoints

Record loading and the drag session are swapped for a temp data directory
and an in-memory override store through FastAPI dependency overrides.
"""

from concurrent.futures import ThreadPoolExecutor

import pytest
from fastapi.testclient import TestClient

import api.main
from api.main import app, get_data_ctx, get_drag_session
from core.data import load_travel_data
from core.overrides import InMemoryOverrideStore, MarkerDragSession


@pytest.fixture
def store():
    return InMemoryOverrideStore()


@pytest.fixture
def client(data_dir, store):
    session = MarkerDragSession(store)
    app.dependency_overrides[get_data_ctx] = lambda: load_travel_data(data_dir)
    app.dependency_overrides[get_drag_session] = lambda: session
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestMeta:
    def test_years(self, client):
        response = client.get("/meta/years")
        assert response.status_code == 200
        body = response.json()
        assert body["years"] == [2024, 2023]
        assert body["default_year"] in (2024, 2023)


class TestPages:
    def test_habits(self, client):
        response = client.post("/habits", json={"year": "all"})
        assert response.status_code == 200
        body = response.json()
        assert body["trip_count"] == 4
        assert body["stats"]["companions"]["other"] == 0
        assert len(body["top"]["transport"]) <= 3
        assert "duration_distribution" in body["charts"]

    def test_habits_empty_year(self, client):
        body = client.post("/habits", json={"year": 1990}).json()
        assert body["trip_count"] == 0
        assert body["stats"] is None

    def test_yearly(self, client):
        body = client.post("/yearly", json={"year": 2024}).json()
        assert body["kpis"]["trip_count"] == 3
        assert len(body["kpis"]["monthly_trips"]) == 12

    def test_expenses(self, client):
        body = client.post("/expenses", json={"year": 2023}).json()
        assert body["kpis"]["total_expenses"] == 2000
        assert body["stats"]["by_category_total"] == {"lodging": 2000}

    def test_map(self, client):
        body = client.post("/map", json={"year": "all"}).json()
        keys = [m["key"] for m in body["markers"]]
        assert keys == ["Tokyo, Japan", "台北", "London, United Kingdom"]
        assert body["markers"][0]["trip_count"] == 2
        assert body["dropped"] == []

    def test_export_trips(self, client):
        response = client.post("/export/trips", json={"year": 2023})
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "London work" in response.text


class TestDragEndpoints:
    def test_drag_gesture_persists(self, client, store):
        assert client.post("/map/drag/press", json={"key": "台北"}).json()["accepted"] is True
        assert client.post("/map/drag/press", json={"key": "Tokyo, Japan"}).json()["accepted"] is False
        moved = client.post("/map/drag/move", json={"x": 300, "y": 150, "width": 600, "height": 300}).json()
        assert moved["coordinate"] == pytest.approx([0.0, 0.0])
        assert store.writes == 0
        released = client.post("/map/drag/release").json()
        assert released["committed"] == "台北"
        assert store.get()["台北"] == pytest.approx((0.0, 0.0))

        body = client.post("/map", json={"year": "all"}).json()
        taipei = next(m for m in body["markers"] if m["key"] == "台北")
        assert taipei["overridden"] is True
        assert taipei["percent_position"] == pytest.approx([50.0, 50.0])

    def test_reset_conflicts_while_dragging(self, client):
        client.post("/map/drag/press", json={"key": "台北"})
        assert client.post("/map/overrides/reset").status_code == 409
        client.post("/map/drag/release")
        response = client.post("/map/overrides/reset")
        assert response.status_code == 200
        assert response.json()["overrides"] == {}

    def test_invalid_container_rejected(self, client):
        response = client.post("/map/drag/move", json={"x": 1, "y": 1, "width": 0, "height": 10})
        assert response.status_code == 422


class TestDragSessionDependency:
    def test_concurrent_first_calls_share_one_session(self, tmp_path, monkeypatch):
        monkeypatch.setattr(api.main, "_session", None)
        monkeypatch.setattr(api.main, "OVERRIDES_PATH", tmp_path / "overrides.json")
        with ThreadPoolExecutor(max_workers=8) as pool:
            sessions = list(pool.map(lambda _: get_drag_session(), range(32)))
        assert len({id(s) for s in sessions}) == 1
