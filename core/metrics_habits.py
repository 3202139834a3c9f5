from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List

from core.charts import counts_bar, share_pie, to_vega_spec
from core.data import Trip
from core.filters import AnalyticsFilters
from core.stats import (
    analyze_accommodation,
    analyze_companions,
    analyze_duration,
    analyze_seasons,
    analyze_transport,
    compute_habit_summary,
    top_preferences,
)


def compute_habits(filters: AnalyticsFilters, ctx: Dict[str, Any]) -> Dict[str, Any]:
    trips: List[Trip] = ctx.get("filtered_trips", []) or []
    if not trips:
        return {"filters": asdict(filters), "trip_count": 0, "stats": None, "top": {}, "charts": {}}

    duration = analyze_duration(trips)
    seasons = analyze_seasons(trips)
    companions = analyze_companions(trips)
    transport = analyze_transport(trips)
    accommodation = analyze_accommodation(trips)
    summary = compute_habit_summary(trips)

    top = {
        "transport": [asdict(p) for p in top_preferences(summary.transport_preference, filters.top_n)],
        "accommodation": [asdict(p) for p in top_preferences(summary.accommodation_preference, filters.top_n)],
        "travel_type": [asdict(p) for p in top_preferences(summary.travel_type_preference, filters.top_n)],
        "season": [asdict(p) for p in top_preferences(summary.season_preference, filters.top_n)],
    }

    charts: Dict[str, Any] = {
        "duration_distribution": to_vega_spec(counts_bar(duration.distribution, label_title="Days")),
        "seasons": to_vega_spec(share_pie(seasons.counts(), label_title="Season")),
        "companions": to_vega_spec(share_pie(companions.counts(), label_title="Companion")),
    }
    if transport:
        charts["transport"] = to_vega_spec(counts_bar(transport, label_title="Transport"))
    if accommodation:
        charts["accommodation"] = to_vega_spec(counts_bar(accommodation, label_title="Accommodation"))

    return {
        "filters": asdict(filters),
        "trip_count": len(trips),
        "stats": {
            "duration": asdict(duration),
            "seasons": asdict(seasons),
            "companions": asdict(companions),
            "transport": transport,
            "accommodation": accommodation,
            "summary": asdict(summary),
        },
        "top": top,
        "charts": charts,
    }
