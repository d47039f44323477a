"""
Spatial analysis helper functions.

Provides utilities for:
- Zone (bounding box) membership tests
- AOD validity masks
- Descending top-N ranking
"""
import numpy as np
import shapely
from shapely.geometry import box
import logging

from aod_service.domain.models import GeoPixel, ZoneBounds

logger = logging.getLogger(__name__)

# Physically plausible optical depth range (exclusive)
AOD_VALID_MIN = 0.0
AOD_VALID_MAX = 2.0


def is_valid_aod(aod: float) -> bool:
    """Check that an AOD value lies strictly inside the plausible range."""
    return AOD_VALID_MIN < aod < AOD_VALID_MAX


def valid_aod_mask(aod: np.ndarray) -> np.ndarray:
    """Vectorized is_valid_aod."""
    aod = np.asarray(aod, dtype=np.float64)
    return (aod > AOD_VALID_MIN) & (aod < AOD_VALID_MAX)


def pixels_to_arrays(pixels: list[GeoPixel]) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Split pixels into latitude, longitude and AOD arrays.

    Args:
        pixels: Geo-referenced pixels

    Returns:
        Tuple of (lats, lngs, aods) arrays
    """
    if not pixels:
        empty = np.empty(0, dtype=np.float64)
        return empty, empty.copy(), empty.copy()
    values = np.array([(p.lat, p.lng, p.aod) for p in pixels], dtype=np.float64)
    return values[:, 0], values[:, 1], values[:, 2]


def in_bounds_mask(
    lats: np.ndarray,
    lngs: np.ndarray,
    bounds: ZoneBounds,
) -> np.ndarray:
    """
    Check which points fall inside a zone, edges included.

    Args:
        lats: Latitudes
        lngs: Longitudes
        bounds: Zone bounds

    Returns:
        Boolean mask, True for points inside or on the boundary
    """
    if len(lats) == 0:
        return np.zeros(0, dtype=bool)

    zone = box(bounds.west, bounds.south, bounds.east, bounds.north)
    # intersects (unlike contains) keeps points lying on the boundary
    return shapely.intersects_xy(zone, np.asarray(lngs), np.asarray(lats))


def top_n_descending(values: np.ndarray, n: int) -> np.ndarray:
    """
    Indices of the n largest values, largest first.

    Ties keep their original order.

    Args:
        values: Values to rank
        n: Number of indices to return

    Returns:
        Index array of length min(n, len(values))
    """
    values = np.asarray(values, dtype=np.float64)
    order = np.argsort(-values, kind="stable")
    return order[:max(0, n)]
