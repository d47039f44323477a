"""
Domain service: Hotspot ranking and zone averaging over a pixel grid.

Both queries are read-only over one file's PixelGridResult.
"""
import logging
import os
from typing import Iterable, Optional

import numpy as np

from aod_service.config import settings
from aod_service.domain.models import (
    Hotspot,
    HotspotResult,
    PixelGridResult,
    ZoneAODResult,
    ZoneBounds,
)
from aod_service.services.domain.air_quality import round_half_up
from aod_service.utils.spatial_helpers import (
    in_bounds_mask,
    is_valid_aod,
    pixels_to_arrays,
    top_n_descending,
    valid_aod_mask,
)

logger = logging.getLogger(__name__)

NO_HOTSPOT_PIXELS = "No valid pixels for hotspot detection"
NO_PIXELS_IN_ZONE = "No pixels found in specified zone"
NO_VALID_PIXELS_IN_ZONE = "No valid AOD values in specified zone"

CRITICAL_AOD = 1.5
HIGH_AOD = 1.0


def classify_severity(aod: float) -> str:
    """Severity class of a hotspot AOD."""
    if aod > CRITICAL_AOD:
        return "critical"
    if aod > HIGH_AOD:
        return "high"
    return "moderate"


def estimate_hotspot_aqi(aod: float) -> int:
    """Coarse AQI estimate used for hotspot display."""
    return round_half_up(aod * 100 + 50)


def extract_hotspots(
    grid: PixelGridResult,
    max_hotspots: Optional[int] = None,
    radius: Optional[float] = None,
) -> HotspotResult:
    """
    Rank the highest-AOD pixels of one file.

    Args:
        grid: Pixel extraction result
        max_hotspots: Number of hotspots to return (defaults to settings)
        radius: Radius attached to each hotspot in meters (defaults to settings)

    Returns:
        HotspotResult with hotspots ranked 1..N by descending AOD
    """
    if max_hotspots is None:
        max_hotspots = settings.default_max_hotspots
    if radius is None:
        radius = settings.hotspot_radius_m

    if not grid.success:
        return HotspotResult(
            success=False,
            total_pixels=grid.total_pixels,
            filename=grid.filename,
            error=grid.error,
        )

    valid = [p for p in grid.pixels if is_valid_aod(p.aod)]
    if not valid:
        return HotspotResult(
            success=False,
            total_pixels=grid.total_pixels,
            valid_pixels=0,
            filename=grid.filename,
            error=NO_HOTSPOT_PIXELS,
        )

    aods = np.array([p.aod for p in valid], dtype=np.float64)
    stem = os.path.splitext(grid.filename or "raster")[0]

    hotspots = []
    for position, index in enumerate(top_n_descending(aods, max_hotspots)):
        pixel = valid[index]
        rank = position + 1
        hotspots.append(Hotspot(
            id=f"{stem}-{rank}",
            lat=pixel.lat,
            lng=pixel.lng,
            aod=pixel.aod,
            aqi=estimate_hotspot_aqi(pixel.aod),
            severity=classify_severity(pixel.aod),
            radius=radius,
            rank=rank,
        ))

    return HotspotResult(
        success=True,
        hotspots=hotspots,
        total_pixels=grid.total_pixels,
        valid_pixels=len(valid),
        filename=grid.filename,
    )


def zone_average(
    grid: PixelGridResult,
    bounds: Optional[ZoneBounds],
) -> ZoneAODResult:
    """
    Average AOD of the pixels inside a rectangular zone.

    Args:
        grid: Pixel extraction result
        bounds: Zone bounds, inclusive on all four edges; None covers the
            whole raster

    Returns:
        ZoneAODResult; ``aod`` is None when the zone holds no pixel or no
        valid pixel, each case with its own error message
    """
    if not grid.success:
        return ZoneAODResult(
            success=False,
            total_pixels=grid.total_pixels,
            filename=grid.filename,
            date=grid.date,
            error=grid.error,
        )

    lats, lngs, aods = pixels_to_arrays(grid.pixels)
    if bounds is None:
        in_zone = np.ones(len(aods), dtype=bool)
    else:
        in_zone = in_bounds_mask(lats, lngs, bounds)

    if not in_zone.any():
        return ZoneAODResult(
            success=False,
            aod=None,
            pixel_count=0,
            total_pixels=grid.total_pixels,
            zone_coverage=0,
            filename=grid.filename,
            date=grid.date,
            error=NO_PIXELS_IN_ZONE,
        )

    zone_aods = aods[in_zone & valid_aod_mask(aods)]
    if zone_aods.size == 0:
        return ZoneAODResult(
            success=False,
            aod=None,
            pixel_count=0,
            total_pixels=grid.total_pixels,
            zone_coverage=0,
            filename=grid.filename,
            date=grid.date,
            error=NO_VALID_PIXELS_IN_ZONE,
        )

    coverage = round_half_up(100 * zone_aods.size / grid.total_pixels) if grid.total_pixels else 0
    return ZoneAODResult(
        success=True,
        aod=float(zone_aods.mean()),
        pixel_count=int(zone_aods.size),
        total_pixels=grid.total_pixels,
        zone_coverage=int(coverage),
        filename=grid.filename,
        date=grid.date,
    )


def merge_hotspots(
    per_file: Iterable[HotspotResult],
    max_hotspots: Optional[int],
    bounds: Optional[ZoneBounds] = None,
    dates: Optional[dict[str, Optional[str]]] = None,
) -> list[Hotspot]:
    """
    Merge per-file hotspots and re-rank them across files.

    Args:
        per_file: Successful or failed per-file hotspot results
        max_hotspots: Number of hotspots to keep, or None for all of them
        bounds: Optional zone; hotspots outside are dropped
        dates: Filename to acquisition date, stamped on each hotspot

    Returns:
        Hotspots sorted by descending AOD, ranked 1..N
    """
    dates = dates or {}
    merged = []
    for result in per_file:
        if not result.success:
            continue
        for hotspot in result.hotspots:
            if bounds is not None and not bounds.contains(hotspot.lat, hotspot.lng):
                continue
            merged.append(hotspot.model_copy(update={
                "filename": result.filename,
                "date": dates.get(result.filename),
            }))

    merged.sort(key=lambda h: h.aod, reverse=True)
    if max_hotspots is not None:
        merged = merged[:max_hotspots]
    return [
        hotspot.model_copy(update={"rank": position + 1})
        for position, hotspot in enumerate(merged)
    ]
