"""
Domain service: AOD to AQI conversion and air quality summaries.

AOD is first converted to an estimated PM2.5 concentration, then to an AQI
with the EPA piecewise-linear breakpoint formula.
"""
import math
from dataclasses import dataclass
from typing import Optional

from aod_service.domain.models import (
    AirQualitySummary,
    BandSummary,
    BatchResult,
    DailyAirQuality,
    FileAODResult,
    Hotspot,
    HotspotSummary,
)

# Urban AOD to PM2.5 (ug/m3) factor; the literature range is roughly 25-50
PM25_PER_AOD = 35.0


@dataclass(frozen=True)
class AQIBreakpoint:
    c_low: float
    c_high: float
    i_low: int
    i_high: int
    level: str
    color: str


PM25_BREAKPOINTS = (
    AQIBreakpoint(0.0, 12.0, 0, 50, "Good", "#00E400"),
    AQIBreakpoint(12.1, 35.4, 51, 100, "Moderate", "#FFFF00"),
    AQIBreakpoint(35.5, 55.4, 101, 150, "Unhealthy for Sensitive Groups", "#FF7E00"),
    AQIBreakpoint(55.5, 150.4, 151, 200, "Unhealthy", "#FF0000"),
    AQIBreakpoint(150.5, 250.4, 201, 300, "Very Unhealthy", "#8F3F97"),
    AQIBreakpoint(250.5, 500.4, 301, 500, "Hazardous", "#7E0023"),
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3, -2.5 -> -2)."""
    return math.floor(value + 0.5)


def aod_to_pm25(aod: float) -> float:
    return aod * PM25_PER_AOD


def aod_to_aqi(aod: Optional[float]) -> Optional[int]:
    """
    Estimate the AQI of an AOD value.

    Concentrations falling between two breakpoint ranges (e.g. 12.05) or
    above the table use the highest breakpoint, then the result is clamped
    to 0-500.

    Args:
        aod: Aerosol optical depth

    Returns:
        AQI, or None for a missing or negative AOD
    """
    if aod is None or aod < 0:
        return None

    pm25 = aod_to_pm25(aod)
    bp = PM25_BREAKPOINTS[-1]
    for candidate in PM25_BREAKPOINTS:
        if candidate.c_low <= pm25 <= candidate.c_high:
            bp = candidate
            break

    aqi = round_half_up(
        (bp.i_high - bp.i_low) / (bp.c_high - bp.c_low)
        * (pm25 - bp.c_low)
        + bp.i_low
    )
    return max(0, min(500, aqi))


def _category(aqi: int) -> AQIBreakpoint:
    for candidate in PM25_BREAKPOINTS:
        if aqi <= candidate.i_high:
            return candidate
    return PM25_BREAKPOINTS[-1]


def aqi_level(aqi: int) -> str:
    """Health category name of an AQI."""
    return _category(aqi).level


def aqi_color(aqi: int) -> str:
    """Display color of an AQI."""
    return _category(aqi).color


def _round3(value: float) -> float:
    return round_half_up(value * 1000) / 1000


def build_daily_series(results: list[FileAODResult]) -> list[DailyAirQuality]:
    """
    Convert file-level AOD results into a date-ordered AQI series.

    Results without an AOD or whose AQI cannot be computed are dropped.

    Args:
        results: Successful file-level results

    Returns:
        DailyAirQuality entries sorted by date (undated entries last)
    """
    daily = []
    for result in results:
        aqi = aod_to_aqi(result.aod)
        if aqi is None:
            continue
        daily.append(DailyAirQuality(
            date=result.date,
            julian_day=result.julian_day,
            year=result.year,
            aod=_round3(result.aod),
            aqi=aqi,
            aqi_level=aqi_level(aqi),
            filename=result.filename,
            valid_bands=result.valid_bands,
            total_bands=result.total_bands,
            bands_info=[
                BandSummary(
                    band=band.band,
                    mean=_round3(band.scaled_mean),
                    valid_percent=band.valid_percent,
                )
                for band in result.bands
                if band.has_valid_data
            ],
        ))

    daily.sort(key=lambda d: (d.date is None, d.date or ""))
    return daily


def summarize_daily(
    daily: list[DailyAirQuality],
    batch: BatchResult,
    recent_days: int = 30,
) -> AirQualitySummary:
    """
    Summary statistics of a daily series.

    Args:
        daily: Non-empty daily series
        batch: Batch result the series was built from
        recent_days: Window for the recent average

    Returns:
        AirQualitySummary
    """
    aqi_values = [d.aqi for d in daily]
    aod_values = [d.aod for d in daily]
    recent = aqi_values[-recent_days:]

    return AirQualitySummary(
        average_aqi=round_half_up(sum(aqi_values) / len(aqi_values)),
        average_aod=_round3(sum(aod_values) / len(aod_values)),
        max_aqi=max(aqi_values),
        min_aqi=min(aqi_values),
        recent_aqi=round_half_up(sum(recent) / len(recent)),
        total_observations=len(daily),
        valid_files=batch.valid_files,
        total_files=batch.total_files,
        error_files=batch.error_files,
        success_rate=round_half_up(100 * batch.valid_files / batch.total_files) if batch.total_files else 0,
    )


def summarize_hotspots(
    hotspots: list[Hotspot],
    processed_files: int,
    total_files: int,
) -> HotspotSummary:
    """
    Summary statistics of a merged hotspot list.

    Args:
        hotspots: Non-empty hotspot list
        processed_files: Files that contributed hotspots
        total_files: Files scanned

    Returns:
        HotspotSummary
    """
    aod_values = [h.aod for h in hotspots]
    aqi_values = [h.aqi for h in hotspots]
    return HotspotSummary(
        total_hotspots=len(hotspots),
        max_aod=max(aod_values),
        min_aod=min(aod_values),
        avg_aod=sum(aod_values) / len(aod_values),
        max_aqi=max(aqi_values),
        min_aqi=min(aqi_values),
        avg_aqi=sum(aqi_values) / len(aqi_values),
        processed_files=processed_files,
        total_files=total_files,
    )
