"""
Unit tests for the aggregation reducers (core/stats.py)
"""

import pytest

from core.data import UNCATEGORIZED, UNSPECIFIED, normalize_expenses, normalize_trips
from core.stats import (
    DURATION_BUCKETS,
    analyze_accommodation,
    analyze_companions,
    analyze_duration,
    analyze_seasons,
    analyze_transport,
    calculate_year_expense_stats,
    calculate_yearly_stats,
    compute_habit_summary,
    count_preferences,
    top_preferences,
)


@pytest.fixture
def two_trips():
    return normalize_trips([
        {"id": "a", "startDate": "2024-01-05", "endDate": "2024-01-08"},
        {"id": "b", "startDate": "2024-07-01", "endDate": "2024-07-03"},
    ])


class TestDuration:
    def test_winter_and_summer_scenario(self, two_trips):
        stats = analyze_duration(two_trips)
        assert stats.shortest == 3
        assert stats.longest == 4
        assert stats.average == pytest.approx(3.5)
        assert stats.distribution == {"1-3": 1, "4-7": 1, "8-14": 0, "15+": 0}

    def test_tie_goes_to_first_bucket(self, two_trips):
        assert analyze_duration(two_trips).most_common == "1-3"

    def test_average_between_bounds(self, trips):
        stats = analyze_duration(trips)
        assert stats.shortest >= 1
        assert stats.shortest <= stats.average <= stats.longest

    def test_bucket_boundaries_inclusive(self):
        trips = normalize_trips([
            {"id": "a", "startDate": "2024-01-01", "endDate": "2024-01-07"},
            {"id": "b", "startDate": "2024-01-01", "endDate": "2024-01-14"},
            {"id": "c", "startDate": "2024-01-01", "endDate": "2024-01-15"},
        ])
        assert analyze_duration(trips).distribution == {"1-3": 0, "4-7": 1, "8-14": 1, "15+": 1}

    def test_malformed_dates_are_excluded(self):
        trips = normalize_trips([
            {"id": "a", "startDate": "2024-01-01", "endDate": "2024-01-02"},
            {"id": "b", "startDate": "nope", "endDate": "2024-01-02"},
            {"id": "c", "startDate": "2024-01-05", "endDate": "2024-01-01"},
        ])
        stats = analyze_duration(trips)
        assert stats.undated == 2
        assert stats.shortest == stats.longest == 2

    def test_empty_is_zero_record(self):
        stats = analyze_duration([])
        assert stats.average == 0.0 and stats.most_common is None
        assert set(stats.distribution) == set(DURATION_BUCKETS)


class TestSeasons:
    def test_scenario(self, two_trips):
        stats = analyze_seasons(two_trips)
        assert stats.counts() == {"spring": 0, "summer": 1, "autumn": 0, "winter": 1}

    def test_buckets_sum_to_trip_count(self, trips):
        undated = normalize_trips([{"id": "x"}])
        stats = analyze_seasons(trips + undated)
        assert sum(stats.counts().values()) + stats.undated == len(trips) + 1

    def test_habit_summary_agrees(self, trips):
        assert compute_habit_summary(trips).season_preference == analyze_seasons(trips).counts()


class TestCompanions:
    def test_bilingual_case_insensitive(self, trips):
        stats = analyze_companions(trips)
        assert stats.counts() == {"solo": 1, "family": 1, "friends": 1, "partner": 0, "business": 1, "other": 0}

    def test_unknown_and_missing_are_other(self):
        trips = normalize_trips([{"id": "a", "companionType": "pets"}, {"id": "b"}])
        stats = analyze_companions(trips)
        assert stats.other == 2
        assert sum(stats.counts().values()) == 2

    def test_group_size_variants(self, trips):
        # sizes: 3 (members), 1 (default), 2 (memberCount), 2 (members)
        stats = analyze_companions(trips)
        assert stats.average_group_size == pytest.approx(8 / 4)
        assert stats.average_multi_person_group_size == pytest.approx(7 / 3)
        assert stats.solo_trips == 1 and stats.group_trips == 3

    def test_empty(self):
        stats = analyze_companions([])
        assert stats.average_group_size == 0.0
        assert stats.average_multi_person_group_size == 0.0


class TestPreferences:
    def test_omit_mode(self, trips):
        assert analyze_transport(trips) == {"Plane": 2, "Train": 1}
        assert analyze_accommodation(trips) == {"Hotel": 2}

    def test_sentinel_mode(self, trips):
        assert count_preferences(trips, "accommodation", missing=UNSPECIFIED) == {"Hotel": 2, UNSPECIFIED: 2}
        summary = compute_habit_summary(trips)
        assert summary.travel_type_preference == {"Leisure": 1, UNCATEGORIZED: 2, "Business": 1}

    def test_top_n_stable_and_truncated(self):
        top = top_preferences({"bus": 1, "car": 3, "train": 1, "plane": 3}, limit=3)
        assert [p.name for p in top] == ["car", "plane", "bus"]
        assert sum(p.percentage for p in top) <= 100

    def test_top_n_covers_everything(self):
        top = top_preferences({"a": 1, "b": 2, "c": 4}, limit=5)
        assert sum(p.percentage for p in top) == pytest.approx(100.0)

    def test_top_n_empty(self):
        assert top_preferences({}) == []


class TestYearlyStats:
    def test_rollup(self, trips):
        stats = calculate_yearly_stats(trips, 2024)
        assert stats.trip_count == 3
        assert stats.total_days == 5 + 2 + 7
        assert stats.total_countries == 2  # Japan, 台灣
        assert stats.total_cities == 2  # Tokyo, 台北
        assert stats.total_members == 4
        assert stats.trip_types == {"Leisure": 1, UNCATEGORIZED: 2}
        assert stats.monthly_trips[3] == 1 and stats.monthly_trips[6] == 1 and stats.monthly_trips[11] == 1
        assert sum(stats.monthly_trips) == 3

    def test_empty_year(self, trips):
        stats = calculate_yearly_stats(trips, 1999)
        assert stats.trip_count == 0
        assert stats.monthly_trips == [0] * 12


class TestYearExpenses:
    def test_scenario(self):
        trips = normalize_trips([{"id": "t1", "title": "Trip one", "startDate": "2024-03-01", "endDate": "2024-03-04"}])
        expenses = normalize_expenses([
            {"id": "e1", "tripId": "t1", "amount": 500, "category": "food", "date": "2024-03-01"},
            {"id": "e2", "tripId": "t1", "amount": 1500, "category": "transport", "date": "2024-03-02"},
        ])
        stats = calculate_year_expense_stats(trips, expenses, 2024)
        assert stats.total_expenses == 2000
        assert stats.by_category_total == {"food": 500, "transport": 1500}
        assert stats.by_trip_total == {"t1": 2000}
        assert stats.trip_names == {"t1": "Trip one"}
        assert stats.monthly_expenses[2] == 2000
        assert [e["id"] for e in stats.top_expenses] == ["e2", "e1"]
        assert stats.category_shares[0].category == "transport"
        assert stats.category_shares[0].percentage == pytest.approx(75.0)

    def test_only_year_trip_expenses(self, trips, expenses):
        stats = calculate_year_expense_stats(trips, expenses, 2024)
        assert stats.total_expenses == 2300
        assert stats.by_category_total == {"food": 500, "transport": 1500, "Other": 300}
        assert stats.average_per_trip == pytest.approx(1150)
        assert stats.average_per_month == pytest.approx(2300 / 12)

    def test_top_ten_stable(self):
        trips = normalize_trips([{"id": "t", "startDate": "2024-01-01", "endDate": "2024-01-01"}])
        expenses = normalize_expenses([{"id": f"e{i}", "tripId": "t", "amount": 10} for i in range(12)])
        stats = calculate_year_expense_stats(trips, expenses, 2024)
        assert [e["id"] for e in stats.top_expenses] == [f"e{i}" for i in range(10)]

    def test_no_expenses(self, trips):
        stats = calculate_year_expense_stats(trips, [], 2024)
        assert stats.total_expenses == 0.0
        assert stats.monthly_expenses == [0.0] * 12
