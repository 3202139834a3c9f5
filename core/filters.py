from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Union

if TYPE_CHECKING:
    from core.data import Expense, Trip

YearSelection = Union[int, str]
ALL_YEARS = "all"


@dataclass(frozen=True)
class MapSettings:
    min_marker_size: float = 8.0
    max_marker_size: float = 24.0
    marker_step: float = 4.0
    popular_regions: int = 5


@dataclass(frozen=True)
class AnalyticsFilters:
    year: YearSelection = ALL_YEARS
    top_n: int = 3
    top_expenses: int = 10
    map_settings: MapSettings = field(default_factory=MapSettings)


def _as_year(value: object) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except Exception:
        return None


def _as_int(value: object, default: int, lo: int, hi: int) -> int:
    try:
        out = int(value)  # type: ignore[arg-type]
    except Exception:
        out = default
    return max(lo, min(hi, out))


def _as_float(value: object, default: float) -> float:
    if isinstance(value, bool):
        return default
    try:
        out = float(value)  # type: ignore[arg-type]
    except Exception:
        return default
    if math.isnan(out) or math.isinf(out):
        return default
    return out


def default_year(available_years: Sequence[int], *, today: Optional[date] = None) -> YearSelection:
    """Current calendar year when present in the data, else the most recent one."""
    if not available_years:
        return ALL_YEARS
    current = (today or date.today()).year
    if current in available_years:
        return current
    return max(available_years)


def normalize_filters(
    raw: dict,
    *,
    available_years: Optional[List[int]] = None,
    today: Optional[date] = None,
) -> AnalyticsFilters:
    available_years = sorted(available_years or [], reverse=True)

    raw_year = raw.get("year")
    if isinstance(raw_year, str) and raw_year.strip().lower() == ALL_YEARS:
        year: YearSelection = ALL_YEARS
    else:
        parsed = _as_year(raw_year)
        year = parsed if parsed is not None else default_year(available_years, today=today)

    top_n = _as_int(raw.get("top_n", 3), 3, 1, 20)
    top_expenses = _as_int(raw.get("top_expenses", 10), 10, 1, 100)

    m = raw.get("map_settings") or {}
    min_size = _as_float(m.get("min_marker_size"), 8.0)
    max_size = _as_float(m.get("max_marker_size"), 24.0)
    map_settings = MapSettings(
        min_marker_size=min(min_size, max_size),
        max_marker_size=max(min_size, max_size),
        marker_step=_as_float(m.get("marker_step"), 4.0),
        popular_regions=_as_int(m.get("popular_regions", 5), 5, 1, 50),
    )
    return AnalyticsFilters(year=year, top_n=top_n, top_expenses=top_expenses, map_settings=map_settings)


def filter_trips_by_year(trips: Iterable["Trip"], year: YearSelection) -> List["Trip"]:
    """Trips whose start date falls in ``year``; undated trips only survive ``"all"``."""
    trips = list(trips)
    if year == ALL_YEARS:
        return trips
    wanted = _as_year(year)
    return [t for t in trips if t.year is not None and t.year == wanted]


def filter_expenses_by_trips(expenses: Iterable["Expense"], trips: Iterable["Trip"]) -> List["Expense"]:
    trip_ids = {t.id for t in trips}
    return [e for e in expenses if e.trip_id in trip_ids]
