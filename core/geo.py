from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from core.data import Coordinate, Trip
from core.filters import MapSettings

logger = logging.getLogger(__name__)

# [longitude, latitude]; lookups try exact country match first, then substring
# match against the destination text in this order.
COUNTRY_COORDINATES: Dict[str, Coordinate] = {
    "日本": (139.6917, 35.6895),
    "台灣": (121.5654, 25.0330),
    "臺灣": (121.5654, 25.0330),
    "香港": (114.1694, 22.3193),
    "韓國": (126.9780, 37.5665),
    "中國": (116.4074, 39.9042),
    "泰國": (100.5018, 13.7563),
    "新加坡": (103.8198, 1.3521),
    "越南": (105.8342, 21.0278),
    "美國": (-74.0060, 40.7128),
    "加拿大": (-75.6972, 45.4215),
    "英國": (-0.1278, 51.5074),
    "法國": (2.3522, 48.8566),
    "德國": (13.4050, 52.5200),
    "義大利": (12.4964, 41.9028),
    "西班牙": (-3.7038, 40.4168),
    "澳洲": (149.1300, -35.2809),
    "紐西蘭": (174.7762, -41.2865),
    "Japan": (139.6917, 35.6895),
    "Taiwan": (121.5654, 25.0330),
    "Hong Kong": (114.1694, 22.3193),
    "Korea": (126.9780, 37.5665),
    "China": (116.4074, 39.9042),
    "Thailand": (100.5018, 13.7563),
    "Singapore": (103.8198, 1.3521),
    "Vietnam": (105.8342, 21.0278),
    "USA": (-74.0060, 40.7128),
    "United States": (-74.0060, 40.7128),
    "Canada": (-75.6972, 45.4215),
    "United Kingdom": (-0.1278, 51.5074),
    "France": (2.3522, 48.8566),
    "Germany": (13.4050, 52.5200),
    "Italy": (12.4964, 41.9028),
    "Spain": (-3.7038, 40.4168),
    "Australia": (149.1300, -35.2809),
    "New Zealand": (174.7762, -41.2865),
}

# Taipei
FALLBACK_COORDINATE: Coordinate = (121.5654, 25.0330)


class CoordinateOutOfRange(ValueError):
    pass


@dataclass
class Destination:
    key: str
    coordinate: Coordinate
    trips: List[Trip] = field(default_factory=list)

    @property
    def trip_count(self) -> int:
        return len(self.trips)


def is_valid_coordinate(lng: float, lat: float) -> bool:
    return -180 <= lng <= 180 and -90 <= lat <= 90


def project(lng: float, lat: float) -> Tuple[float, float]:
    """Equirectangular projection of lon/lat onto a 0-100% plane (x right, y down)."""
    if not is_valid_coordinate(lng, lat):
        raise CoordinateOutOfRange(f"coordinate out of range: ({lng}, {lat})")
    return (lng + 180) / 360 * 100, (90 - lat) / 180 * 100


def inverse_project(x_pct: float, y_pct: float) -> Tuple[float, float]:
    return x_pct / 100 * 360 - 180, 90 - y_pct / 100 * 180


def resolve_coordinate(trip: Trip) -> Coordinate:
    if trip.coordinates is not None:
        return trip.coordinates
    if trip.country and trip.country in COUNTRY_COORDINATES:
        return COUNTRY_COORDINATES[trip.country]
    if trip.destination:
        for name, coord in COUNTRY_COORDINATES.items():
            if name in trip.destination:
                return coord
    return FALLBACK_COORDINATE


def build_destinations(trips: Sequence[Trip]) -> List[Destination]:
    """Group trips by destination key; a destination keeps the first resolved coordinate."""
    destinations: Dict[str, Destination] = {}
    for trip in trips:
        key = trip.destination_key
        dest = destinations.get(key)
        if dest is None:
            destinations[key] = Destination(key=key, coordinate=resolve_coordinate(trip), trips=[trip])
        else:
            dest.trips.append(trip)
    return list(destinations.values())


def marker_size(trip_count: int, settings: Optional[MapSettings] = None) -> float:
    settings = settings or MapSettings()
    size = settings.min_marker_size + settings.marker_step * max(0, trip_count - 1)
    return max(settings.min_marker_size, min(settings.max_marker_size, size))


def render_destinations(
    trips: Sequence[Trip],
    overrides: Optional[Mapping[str, Coordinate]] = None,
    settings: Optional[MapSettings] = None,
) -> Dict[str, List]:
    """Final marker records for the map view.

    Overrides win over computed coordinates. Destinations whose final
    coordinate falls outside the lon/lat range are listed under ``dropped``
    instead of being clamped.
    """
    overrides = overrides or {}
    markers: List[Dict[str, object]] = []
    dropped: List[str] = []
    for dest in build_destinations(trips):
        override = overrides.get(dest.key)
        lng, lat = override if override is not None else dest.coordinate
        try:
            x_pct, y_pct = project(lng, lat)
        except CoordinateOutOfRange:
            logger.warning("Dropping destination %r from map: (%s, %s) out of range", dest.key, lng, lat)
            dropped.append(dest.key)
            continue
        markers.append(
            {
                "key": dest.key,
                "coordinate": [lng, lat],
                "percent_position": [x_pct, y_pct],
                "trip_count": dest.trip_count,
                "marker_size": marker_size(dest.trip_count, settings),
                "overridden": override is not None,
            }
        )
    return {"markers": markers, "dropped": dropped}


def popular_regions(trips: Sequence[Trip], limit: int = 5) -> List[Dict[str, object]]:
    regions: Dict[str, List[Trip]] = {}
    for trip in trips:
        country = trip.resolved_country
        if country:
            regions.setdefault(country, []).append(trip)
    ranked = sorted(regions.items(), key=lambda kv: len(kv[1]), reverse=True)[:limit]
    return [
        {
            "name": name,
            "count": len(region_trips),
            "trip_titles": [t.title or t.destination_key for t in region_trips[:3]],
        }
        for name, region_trips in ranked
    ]
