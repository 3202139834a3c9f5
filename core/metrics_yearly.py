from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

from core.charts import counts_bar, monthly_bar, to_vega_spec
from core.data import Trip
from core.filters import AnalyticsFilters
from core.stats import calculate_yearly_stats


def compute_yearly(filters: AnalyticsFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    trips: List[Trip] = ctx.get("trips", []) or []
    stats = calculate_yearly_stats(trips, filters.year)

    charts: Dict[str, Any] = {"monthly_trips": to_vega_spec(monthly_bar(stats.monthly_trips, value_title="Trips", value_format="d"))}
    if stats.trip_types:
        charts["trip_types"] = to_vega_spec(counts_bar(stats.trip_types, label_title="Trip Type"))

    return {
        "filters": asdict(filters),
        "years": ctx.get("years", []),
        "kpis": asdict(stats),
        "charts": charts,
    }
