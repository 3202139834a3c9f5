from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Mapping, Optional

from core.charts import marker_scatter, to_vega_spec
from core.data import Coordinate, Trip
from core.filters import AnalyticsFilters
from core.geo import popular_regions, render_destinations


def compute_map(
    filters: AnalyticsFilters,
    ctx: Dict[str, Any],
    *,
    overrides: Optional[Mapping[str, Coordinate]] = None,
) -> Dict[str, Any]:
    trips: List[Trip] = ctx.get("filtered_trips", []) or []
    settings = filters.map_settings
    rendered = render_destinations(trips, overrides, settings)
    markers = rendered["markers"]

    recent = sorted(
        (t for t in trips if t.start_date is not None),
        key=lambda t: t.start_date,
        reverse=True,
    )
    return {
        "filters": asdict(filters),
        "trip_count": len(trips),
        "markers": markers,
        "dropped": rendered["dropped"],
        "popular_regions": popular_regions(trips, settings.popular_regions),
        "trips": [
            {
                "id": t.id,
                "title": t.title,
                "destination": t.destination_key,
                "start_date": t.start_date.date().isoformat(),
                "end_date": t.end_date.date().isoformat() if t.end_date is not None else None,
            }
            for t in recent
        ],
        "charts": {"markers": to_vega_spec(marker_scatter(markers))} if markers else {},
    }
