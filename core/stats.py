"""Typed reducers over trips and expenses.

Every function here is pure and order-independent: it takes an already
year-filtered collection and returns a frozen statistics record. Records
with malformed dates or missing fields degrade to zero/absent values; no
reducer raises on bad input.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from core.data import (
    SEASONS,
    UNCATEGORIZED,
    UNSPECIFIED,
    Expense,
    Trip,
    percentage,
    season_of,
)
from core.filters import YearSelection, filter_expenses_by_trips, filter_trips_by_year

DURATION_BUCKETS = ("1-3", "4-7", "8-14", "15+")

COMPANION_CATEGORIES = ("solo", "family", "friends", "partner", "business", "other")
COMPANION_ALIASES = {
    "solo": "solo",
    "個人": "solo",
    "family": "family",
    "家庭": "family",
    "friends": "friends",
    "朋友": "friends",
    "partner": "partner",
    "伴侶": "partner",
    "business": "business",
    "商務": "business",
}


@dataclass(frozen=True)
class DurationStats:
    average: float = 0.0
    shortest: int = 0
    longest: int = 0
    most_common: Optional[str] = None
    distribution: Dict[str, int] = field(default_factory=lambda: {b: 0 for b in DURATION_BUCKETS})
    trip_count: int = 0
    undated: int = 0


@dataclass(frozen=True)
class SeasonStats:
    spring: int = 0
    summer: int = 0
    autumn: int = 0
    winter: int = 0
    undated: int = 0

    def counts(self) -> Dict[str, int]:
        return {s: getattr(self, s) for s in SEASONS}


@dataclass(frozen=True)
class CompanionStats:
    solo: int = 0
    family: int = 0
    friends: int = 0
    partner: int = 0
    business: int = 0
    other: int = 0
    average_group_size: float = 0.0
    average_multi_person_group_size: float = 0.0
    solo_trips: int = 0
    group_trips: int = 0

    def counts(self) -> Dict[str, int]:
        return {c: getattr(self, c) for c in COMPANION_CATEGORIES}


@dataclass(frozen=True)
class PreferenceShare:
    name: str
    count: int
    percentage: float


@dataclass(frozen=True)
class HabitSummary:
    average_stay_duration: float = 0.0
    transport_preference: Dict[str, int] = field(default_factory=dict)
    accommodation_preference: Dict[str, int] = field(default_factory=dict)
    travel_type_preference: Dict[str, int] = field(default_factory=dict)
    season_preference: Dict[str, int] = field(default_factory=lambda: {s: 0 for s in SEASONS})
    solo_trips: int = 0
    group_trips: int = 0
    average_group_size: float = 0.0


@dataclass(frozen=True)
class YearStats:
    year: YearSelection
    trip_count: int = 0
    total_days: int = 0
    total_countries: int = 0
    total_cities: int = 0
    total_members: int = 0
    trip_types: Dict[str, int] = field(default_factory=dict)
    monthly_trips: List[int] = field(default_factory=lambda: [0] * 12)


@dataclass(frozen=True)
class CategoryShare:
    category: str
    amount: float
    percentage: float


@dataclass(frozen=True)
class YearExpenseStats:
    year: YearSelection
    total_expenses: float = 0.0
    by_category_total: Dict[str, float] = field(default_factory=dict)
    by_trip_total: Dict[str, float] = field(default_factory=dict)
    trip_names: Dict[str, str] = field(default_factory=dict)
    monthly_expenses: List[float] = field(default_factory=lambda: [0.0] * 12)
    top_expenses: List[Dict[str, object]] = field(default_factory=list)
    category_shares: List[CategoryShare] = field(default_factory=list)
    average_per_trip: float = 0.0
    average_per_month: float = 0.0


def duration_bucket(days: int) -> str:
    if days <= 3:
        return "1-3"
    if days <= 7:
        return "4-7"
    if days <= 14:
        return "8-14"
    return "15+"


def analyze_duration(trips: Sequence[Trip]) -> DurationStats:
    durations = pd.Series([t.duration_days for t in trips], dtype="float64").dropna()
    undated = len(trips) - len(durations)
    if durations.empty:
        return DurationStats(trip_count=len(trips), undated=undated)

    distribution = durations.map(duration_bucket).value_counts().reindex(list(DURATION_BUCKETS), fill_value=0)
    # idxmax keeps the first label on ties, i.e. the shortest bucket
    most_common = str(distribution.idxmax())

    return DurationStats(
        average=float(durations.mean()),
        shortest=int(durations.min()),
        longest=int(durations.max()),
        most_common=most_common,
        distribution={str(k): int(v) for k, v in distribution.items()},
        trip_count=len(trips),
        undated=undated,
    )


def analyze_seasons(trips: Sequence[Trip]) -> SeasonStats:
    months = [t.month for t in trips if t.month is not None]
    counts = Counter(season_of(m) for m in months)
    return SeasonStats(
        spring=counts["spring"],
        summer=counts["summer"],
        autumn=counts["autumn"],
        winter=counts["winter"],
        undated=len(trips) - len(months),
    )


def companion_category(value: Optional[str]) -> str:
    if not value:
        return "other"
    return COMPANION_ALIASES.get(value.strip().lower(), "other")


def analyze_companions(trips: Sequence[Trip]) -> CompanionStats:
    """Companion categories plus the two group-size averages.

    ``average_group_size`` divides by every trip; ``average_multi_person_group_size``
    only considers trips with more than one member.
    """
    counts = Counter(companion_category(t.companion_type) for t in trips)
    sizes = [t.group_size for t in trips]
    multi = [s for s in sizes if s > 1]
    return CompanionStats(
        **{c: counts[c] for c in COMPANION_CATEGORIES},
        average_group_size=sum(sizes) / len(sizes) if sizes else 0.0,
        average_multi_person_group_size=sum(multi) / len(multi) if multi else 0.0,
        solo_trips=len(sizes) - len(multi),
        group_trips=len(multi),
    )


def count_preferences(trips: Iterable[Trip], attr: str, *, missing: Optional[str] = None) -> Dict[str, int]:
    """Frequency of a categorical trip attribute in first-seen order.

    With ``missing=None`` trips lacking the attribute are left out; otherwise
    they are counted under the ``missing`` label.
    """
    counts: Dict[str, int] = {}
    for trip in trips:
        value = getattr(trip, attr, None) or missing
        if value is None:
            continue
        counts[value] = counts.get(value, 0) + 1
    return counts


def analyze_transport(trips: Iterable[Trip]) -> Dict[str, int]:
    return count_preferences(trips, "transport")


def analyze_accommodation(trips: Iterable[Trip]) -> Dict[str, int]:
    return count_preferences(trips, "accommodation")


def top_preferences(preferences: Dict[str, int], limit: int = 3) -> List[PreferenceShare]:
    total = sum(preferences.values())
    shares = [PreferenceShare(name, count, percentage(count, total)) for name, count in preferences.items()]
    shares.sort(key=lambda s: s.count, reverse=True)
    return shares[: max(0, limit)]


def compute_habit_summary(trips: Sequence[Trip]) -> HabitSummary:
    durations = [t.duration_days or 0 for t in trips]
    companions = analyze_companions(trips)
    return HabitSummary(
        average_stay_duration=sum(durations) / len(durations) if durations else 0.0,
        transport_preference=count_preferences(trips, "transport", missing=UNSPECIFIED),
        accommodation_preference=count_preferences(trips, "accommodation", missing=UNSPECIFIED),
        travel_type_preference=count_preferences(trips, "trip_type", missing=UNCATEGORIZED),
        season_preference=analyze_seasons(trips).counts(),
        solo_trips=companions.solo_trips,
        group_trips=companions.group_trips,
        average_group_size=companions.average_multi_person_group_size,
    )


def calculate_yearly_stats(trips: Sequence[Trip], year: YearSelection) -> YearStats:
    year_trips = filter_trips_by_year(trips, year)

    countries = {t.resolved_country for t in year_trips if t.resolved_country}
    cities = {t.city for t in year_trips if t.city}
    members = {m for t in year_trips for m in (t.members or ())}

    monthly = [0] * 12
    for t in year_trips:
        if t.month is not None:
            monthly[t.month - 1] += 1

    return YearStats(
        year=year,
        trip_count=len(year_trips),
        total_days=sum(t.duration_days or 0 for t in year_trips),
        total_countries=len(countries),
        total_cities=len(cities),
        total_members=len(members),
        trip_types=count_preferences(year_trips, "trip_type", missing=UNCATEGORIZED),
        monthly_trips=monthly,
    )


def calculate_year_expense_stats(
    trips: Sequence[Trip],
    expenses: Sequence[Expense],
    year: YearSelection,
    *,
    top: int = 10,
) -> YearExpenseStats:
    year_trips = filter_trips_by_year(trips, year)
    year_expenses = filter_expenses_by_trips(expenses, year_trips)
    if not year_expenses:
        return YearExpenseStats(year=year)

    names = {t.id: t.title or t.destination_key for t in year_trips}
    df = pd.DataFrame(
        {
            "trip_id": [e.trip_id for e in year_expenses],
            "category": [e.category for e in year_expenses],
            "amount": [e.amount for e in year_expenses],
            "month": [e.date.month if e.date is not None else None for e in year_expenses],
        }
    )

    total = float(df["amount"].sum())
    by_category = df.groupby("category", sort=False)["amount"].sum()
    by_trip = df.groupby("trip_id", sort=False)["amount"].sum()

    monthly = [0.0] * 12
    dated = df.dropna(subset=["month"])
    for month, amount in dated.groupby("month")["amount"].sum().items():
        monthly[int(month) - 1] = float(amount)

    ranked = sorted(year_expenses, key=lambda e: e.amount, reverse=True)[: max(0, top)]
    top_expenses = [
        {
            "id": e.id,
            "title": e.title,
            "trip_id": e.trip_id,
            "trip_name": names.get(e.trip_id),
            "category": e.category,
            "date": e.date.date().isoformat() if e.date is not None else None,
            "amount": e.amount,
        }
        for e in ranked
    ]

    shares = sorted(
        (CategoryShare(str(c), float(a), percentage(float(a), total)) for c, a in by_category.items()),
        key=lambda s: s.amount,
        reverse=True,
    )

    return YearExpenseStats(
        year=year,
        total_expenses=total,
        by_category_total={str(k): float(v) for k, v in by_category.items()},
        by_trip_total={str(k): float(v) for k, v in by_trip.items()},
        trip_names={str(k): names[k] for k in by_trip.index if k in names},
        monthly_expenses=monthly,
        top_expenses=top_expenses,
        category_shares=shares,
        average_per_trip=total / len(by_trip) if len(by_trip) else 0.0,
        average_per_month=total / 12,
    )
