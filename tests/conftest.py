"""
Shared fixtures for the travel analytics test suite.
"""

import json

import pytest

from core.data import normalize_expenses, normalize_trips


RAW_TRIPS = [
    {
        "id": "t1",
        "title": "Tokyo spring",
        "destination": "Tokyo, Japan",
        "startDate": "2024-04-02",
        "endDate": "2024-04-06",
        "companionType": "Friends",
        "transport": "Plane",
        "accommodation": "Hotel",
        "type": "Leisure",
        "members": ["u1", "u2", "u3"],
    },
    {
        "id": "t2",
        "title": "Taipei weekend",
        "destination": "台北",
        "country": "台灣",
        "startDate": "2024-07-12",
        "endDate": "2024-07-13",
        "companionType": "個人",
        "transport": "Train",
    },
    {
        "id": "t3",
        "title": "London work",
        "destination": "London, United Kingdom",
        "coordinates": [-0.1278, 51.5074],
        "startDate": "2023-11-20",
        "endDate": "2023-12-05",
        "companionType": "business",
        "transport": "Plane",
        "accommodation": "Hotel",
        "type": "Business",
        "memberCount": 2,
    },
    {
        "id": "t4",
        "title": "Tokyo again",
        "destination": "Tokyo, Japan",
        "startDate": "2024-12-28",
        "endDate": "2025-01-03",
        "companionType": "family",
        "members": ["u1", "u4"],
    },
]

RAW_EXPENSES = [
    {"id": "e1", "tripId": "t1", "amount": 500, "category": "food", "date": "2024-04-03", "title": "Sushi"},
    {"id": "e2", "tripId": "t1", "amount": 1500, "category": "transport", "date": "2024-04-02", "title": "Flight"},
    {"id": "e3", "tripId": "t2", "amount": 300, "date": "2024-07-12", "title": "Hostel"},
    {"id": "e4", "tripId": "t3", "amount": 2000, "category": "lodging", "date": "2023-11-21", "title": "Hotel"},
]


@pytest.fixture
def raw_trips():
    return [dict(t) for t in RAW_TRIPS]


@pytest.fixture
def trips():
    return normalize_trips(RAW_TRIPS)


@pytest.fixture
def expenses():
    return normalize_expenses(RAW_EXPENSES)


@pytest.fixture
def data_dir(tmp_path):
    """A record-store directory with trips, expenses and one budget."""
    (tmp_path / "trips.json").write_text(json.dumps(RAW_TRIPS, ensure_ascii=False), encoding="utf-8")
    (tmp_path / "expenses.json").write_text(json.dumps(RAW_EXPENSES[:3]), encoding="utf-8")
    budgets = [{"id": "b1", "expenses": [RAW_EXPENSES[3]]}, {"id": "b2"}]
    (tmp_path / "budgets.json").write_text(json.dumps(budgets), encoding="utf-8")
    return tmp_path
