from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from core.filters import AnalyticsFilters, filter_expenses_by_trips, filter_trips_by_year


logger = logging.getLogger(__name__)

DATA_DIR = Path(os.environ.get("TRAVEL_DATA_DIR", Path(__file__).resolve().parents[1] / "data"))
OVERRIDES_PATH = Path(os.environ.get("TRAVEL_OVERRIDES_PATH", DATA_DIR / "coordinate_overrides.json"))

TRIPS_FILE = "trips.json"
EXPENSES_FILE = "expenses.json"
BUDGETS_FILE = "budgets.json"

OTHER_CATEGORY = "Other"
UNSPECIFIED = "Unspecified"
UNCATEGORIZED = "Uncategorized"

SEASONS = ("spring", "summer", "autumn", "winter")
_SEASON_BY_MONTH = {
    3: "spring", 4: "spring", 5: "spring",
    6: "summer", 7: "summer", 8: "summer",
    9: "autumn", 10: "autumn", 11: "autumn",
    12: "winter", 1: "winter", 2: "winter",
}

Coordinate = Tuple[float, float]


def season_of(month: int) -> str:
    """Meteorological season for a 1-based calendar month."""
    try:
        return _SEASON_BY_MONTH[int(month)]
    except (KeyError, TypeError, ValueError):
        raise ValueError(f"month must be in 1..12, got {month!r}") from None


def percentage(value: float, total: float) -> float:
    return (value / total) * 100 if total > 0 else 0.0


def round_half_up(value: object, ndigits: int = 0) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    q = Decimal(10) ** -ndigits
    return float(Decimal(str(value)).quantize(q, rounding=ROUND_HALF_UP))


def clean_text(value: object) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    s = str(value).strip()
    if not s or s.lower() in {"nan", "none", "null"}:
        return None
    return s


def parse_date(value: object) -> Optional[pd.Timestamp]:
    """Lenient date parsing; anything unparseable becomes ``None``."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        ts = pd.Timestamp(value)
    except Exception:
        return None
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts


def parse_coordinates(value: object) -> Optional[Coordinate]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return None
    out: List[float] = []
    for v in value:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        f = float(v)
        if math.isnan(f) or math.isinf(f):
            return None
        out.append(f)
    return out[0], out[1]


def inclusive_days(start: Optional[pd.Timestamp], end: Optional[pd.Timestamp]) -> Optional[int]:
    if start is None or end is None or end < start:
        return None
    return int(math.floor((end - start) / pd.Timedelta(days=1))) + 1


def split_destination(text: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Split ``"City, Country"``; the country part only exists when a comma does."""
    if not text:
        return None, None
    parts = [p.strip() for p in text.split(",")]
    city = parts[0] or None
    country = (parts[1] or None) if len(parts) > 1 else None
    return city, country


@dataclass(frozen=True)
class Trip:
    id: str
    title: Optional[str] = None
    destination: Optional[str] = None
    country: Optional[str] = None
    coordinates: Optional[Coordinate] = None
    start_date: Optional[pd.Timestamp] = None
    end_date: Optional[pd.Timestamp] = None
    companion_type: Optional[str] = None
    transport: Optional[str] = None
    accommodation: Optional[str] = None
    trip_type: Optional[str] = None
    members: Optional[Tuple[str, ...]] = None
    member_count: Optional[int] = None

    @property
    def duration_days(self) -> Optional[int]:
        return inclusive_days(self.start_date, self.end_date)

    @property
    def year(self) -> Optional[int]:
        return int(self.start_date.year) if self.start_date is not None else None

    @property
    def month(self) -> Optional[int]:
        return int(self.start_date.month) if self.start_date is not None else None

    @property
    def group_size(self) -> int:
        if self.members is not None:
            return len(self.members)
        if self.member_count and self.member_count > 0:
            return self.member_count
        return 1

    @property
    def destination_key(self) -> str:
        return self.destination or self.title or f"Trip-{self.id}"

    @property
    def resolved_country(self) -> Optional[str]:
        return self.country or split_destination(self.destination)[1]

    @property
    def city(self) -> Optional[str]:
        return split_destination(self.destination)[0]


@dataclass(frozen=True)
class Expense:
    id: str
    trip_id: Optional[str]
    amount: float = 0.0
    category: str = OTHER_CATEGORY
    date: Optional[pd.Timestamp] = None
    title: Optional[str] = None


def _as_amount(value: object) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        out = float(value)  # type: ignore[arg-type]
    except Exception:
        return 0.0
    if math.isnan(out) or math.isinf(out) or out < 0:
        return 0.0
    return out


def _as_member_count(value: object) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)  # type: ignore[arg-type]
    except Exception:
        return None


def normalize_trip(raw: Dict[str, Any], index: int = 0) -> Trip:
    members = raw.get("members")
    trip_id = clean_text(raw.get("id")) or str(index)
    return Trip(
        id=trip_id,
        title=clean_text(raw.get("title")),
        destination=clean_text(raw.get("destination")),
        country=clean_text(raw.get("country")),
        coordinates=parse_coordinates(raw.get("coordinates")),
        start_date=parse_date(raw.get("startDate")),
        end_date=parse_date(raw.get("endDate")),
        companion_type=clean_text(raw.get("companionType")),
        transport=clean_text(raw.get("transport")),
        accommodation=clean_text(raw.get("accommodation")),
        trip_type=clean_text(raw.get("type")),
        members=tuple(str(m) for m in members if m is not None) if isinstance(members, (list, tuple)) else None,
        member_count=_as_member_count(raw.get("memberCount")),
    )


def normalize_expense(raw: Dict[str, Any], index: int = 0) -> Expense:
    return Expense(
        id=clean_text(raw.get("id")) or str(index),
        trip_id=clean_text(raw.get("tripId")),
        amount=_as_amount(raw.get("amount")),
        category=clean_text(raw.get("category")) or OTHER_CATEGORY,
        date=parse_date(raw.get("date")),
        title=clean_text(raw.get("title")),
    )


def normalize_trips(records: Iterable[object]) -> List[Trip]:
    out: List[Trip] = []
    for idx, rec in enumerate(records or []):
        if isinstance(rec, Trip):
            out.append(rec)
        elif isinstance(rec, dict):
            out.append(normalize_trip(rec, idx))
        else:
            logger.warning("Skipping trip record %d of type %s", idx, type(rec).__name__)
    return out


def normalize_expenses(records: Iterable[object]) -> List[Expense]:
    out: List[Expense] = []
    for idx, rec in enumerate(records or []):
        if isinstance(rec, Expense):
            out.append(rec)
        elif isinstance(rec, dict):
            out.append(normalize_expense(rec, idx))
        else:
            logger.warning("Skipping expense record %d of type %s", idx, type(rec).__name__)
    return out


def available_years(trips: Iterable[Trip]) -> List[int]:
    return sorted({t.year for t in trips if t.year is not None}, reverse=True)


def trips_frame(trips: Iterable[Trip]) -> pd.DataFrame:
    rows = [
        {
            "id": t.id,
            "title": t.title,
            "destination": t.destination_key,
            "country": t.resolved_country,
            "start_date": t.start_date,
            "end_date": t.end_date,
            "duration_days": t.duration_days,
            "companion_type": t.companion_type,
            "transport": t.transport,
            "accommodation": t.accommodation,
            "type": t.trip_type,
            "group_size": t.group_size,
        }
        for t in trips
    ]
    df = pd.DataFrame(rows, columns=[
        "id", "title", "destination", "country", "start_date", "end_date", "duration_days",
        "companion_type", "transport", "accommodation", "type", "group_size",
    ])
    df["duration_days"] = pd.to_numeric(df["duration_days"], errors="coerce").astype("Int64")
    return df


def expenses_frame(expenses: Iterable[Expense]) -> pd.DataFrame:
    rows = [
        {"id": e.id, "trip_id": e.trip_id, "title": e.title, "category": e.category, "date": e.date, "amount": e.amount}
        for e in expenses
    ]
    return pd.DataFrame(rows, columns=["id", "trip_id", "title", "category", "date", "amount"])


def _read_json_list(path: Path) -> List[Any]:
    if not path.exists():
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return []
    if not isinstance(data, list):
        logger.warning("Expected a JSON list in %s, got %s", path, type(data).__name__)
        return []
    return data


def load_travel_data(data_dir: Optional[Path] = None) -> Dict[str, Any]:
    """Load trips and expenses; budget-attached expenses are merged into the expense list."""
    data_dir = Path(data_dir) if data_dir is not None else DATA_DIR
    trips = normalize_trips(_read_json_list(data_dir / TRIPS_FILE))

    raw_expenses = list(_read_json_list(data_dir / EXPENSES_FILE))
    for budget in _read_json_list(data_dir / BUDGETS_FILE):
        if isinstance(budget, dict) and isinstance(budget.get("expenses"), list):
            raw_expenses.extend(budget["expenses"])
    expenses = normalize_expenses(raw_expenses)

    logger.debug("Loaded %d trips and %d expenses from %s", len(trips), len(expenses), data_dir)
    return {"trips": trips, "expenses": expenses, "years": available_years(trips), "data_dir": data_dir}


def prepare_context(filters: AnalyticsFilters, data_ctx: Dict[str, Any]) -> Dict[str, Any]:
    trips: List[Trip] = data_ctx.get("trips", []) or []
    expenses: List[Expense] = data_ctx.get("expenses", []) or []
    filtered_trips = filter_trips_by_year(trips, filters.year)
    return {
        "trips": trips,
        "expenses": expenses,
        "years": data_ctx.get("years") or available_years(trips),
        "filtered_trips": filtered_trips,
        "filtered_expenses": filter_expenses_by_trips(expenses, filtered_trips),
    }
