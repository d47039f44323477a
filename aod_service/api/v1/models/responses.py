"""
API response models using Pydantic.
"""
from typing import List, Optional
from pydantic import Field

from aod_service.domain.models import (
    AirQualitySummary,
    DailyAirQuality,
    DomainModel,
    Hotspot,
    HotspotSummary,
    ZoneAODResult,
)


class DataRange(DomainModel):
    """First and last date covered by a response."""
    start: Optional[str] = None
    end: Optional[str] = None


class TrendPoint(DomainModel):
    """Single point of an AQI trend line."""
    date: Optional[str] = None
    aqi: int
    aod: float


class CityAirQualityResponse(DomainModel):
    """Response model for the city air quality endpoint."""
    city: str = Field(description="City key, upper-case")
    data_range: DataRange
    current_aqi: int = Field(description="Average AQI over the whole series")
    current_aqi_level: str
    current_aqi_color: str
    recent_aqi: int = Field(description="Average AQI over the last 30 observations")
    recent_aqi_level: str
    statistics: AirQualitySummary
    daily: List[DailyAirQuality]
    trend: List[TrendPoint]
    data_source: str = "NASA MODIS MCD19A2 v061"

    class Config:
        json_schema_extra = {
            "example": {
                "city": "NYC",
                "dataRange": {"start": "2025-03-01", "end": "2025-03-03"},
                "currentAqi": 28,
                "currentAqiLevel": "Good",
                "currentAqiColor": "#00E400",
                "recentAqi": 28,
                "recentAqiLevel": "Good",
            }
        }


class CityHotspotsResponse(DomainModel):
    """Response model for the city hotspots endpoint."""
    city: str
    area: str = Field(description="Display name of the area")
    area_id: str
    hotspots: List[Hotspot]
    statistics: HotspotSummary
    data_range: DataRange
    data_source: str


class ZoneSeriesResponse(DomainModel):
    """Response model for the zone average endpoint."""
    city: str
    area: str
    area_id: str
    results: List[ZoneAODResult]
    valid_results: int = Field(description="Files with at least one valid pixel in the zone")


class GDALVersionResponse(DomainModel):
    """Response model for the GDAL availability endpoint."""
    available: bool
    version: Optional[str] = None
    gdal_bin_dir: str
