from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, Field


class MapSettingsModel(BaseModel):
    min_marker_size: float = 8.0
    max_marker_size: float = 24.0
    marker_step: float = 4.0
    popular_regions: int = 5


class AnalyticsFiltersModel(BaseModel):
    year: Optional[Union[int, str]] = None
    top_n: int = 3
    top_expenses: int = 10
    map_settings: MapSettingsModel = Field(default_factory=MapSettingsModel)


class DragPressRequest(BaseModel):
    key: str


class DragMoveRequest(BaseModel):
    x: float
    y: float
    width: float = Field(gt=0)
    height: float = Field(gt=0)
