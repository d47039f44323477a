"""
Geospatial projection utilities for raster coordinate transformations.
"""
from functools import lru_cache
from typing import Optional, Tuple
import logging

import numpy as np
from pyproj import CRS, Transformer
from pyproj.exceptions import CRSError

from aod_service.domain.models import GeoTransform

logger = logging.getLogger(__name__)


def pixel_to_map(
    rows: np.ndarray,
    cols: np.ndarray,
    geotransform: GeoTransform,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Apply the affine geotransform to pixel indices.

    Uses the GDAL convention for the upper-left corner of cell (row, col)::

        x = x0 + col * dx + row * rx
        y = y0 + col * ry + row * dy

    Args:
        rows: Row indices
        cols: Column indices
        geotransform: Raster geotransform

    Returns:
        Tuple of (x, y) arrays in the raster's native CRS
    """
    x0, dx, rx, y0, ry, dy = geotransform.as_gdal()
    rows = np.asarray(rows, dtype=np.float64)
    cols = np.asarray(cols, dtype=np.float64)
    xs = x0 + cols * dx + rows * rx
    ys = y0 + cols * ry + rows * dy
    return xs, ys


@lru_cache(maxsize=16)
def get_wgs84_transformer(crs_wkt: str) -> Optional[Transformer]:
    """
    Build a transformer from a native CRS to WGS84.

    Args:
        crs_wkt: Native CRS as WKT

    Returns:
        Transformer, or None when the CRS is already geographic or unreadable
    """
    try:
        native_crs = CRS.from_wkt(crs_wkt)
    except CRSError as e:
        logger.warning(f"Unreadable coordinate system, assuming geographic: {e}")
        return None

    if native_crs.is_geographic:
        return None

    return Transformer.from_crs(
        native_crs,
        "EPSG:4326",   # WGS84 (lat/lon)
        always_xy=True  # Ensure (x, y) -> (lon, lat) order
    )


def map_to_latlon(
    xs: np.ndarray,
    ys: np.ndarray,
    crs_wkt: Optional[str] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert native map coordinates to latitude/longitude.

    Args:
        xs: Native x coordinates
        ys: Native y coordinates
        crs_wkt: Native CRS as WKT; None means geographic

    Returns:
        Tuple of (latitudes, longitudes) arrays
    """
    transformer = get_wgs84_transformer(crs_wkt) if crs_wkt else None
    if transformer is None:
        # Geographic CRS: x = lon, y = lat
        return np.asarray(ys), np.asarray(xs)

    lons, lats = transformer.transform(xs, ys)
    return np.asarray(lats), np.asarray(lons)


def pixels_to_latlon(
    rows: np.ndarray,
    cols: np.ndarray,
    geotransform: GeoTransform,
    crs_wkt: Optional[str] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Project pixel indices to latitude/longitude.

    Args:
        rows: Row indices
        cols: Column indices
        geotransform: Raster geotransform
        crs_wkt: Native CRS as WKT; None means geographic

    Returns:
        Tuple of (latitudes, longitudes) arrays
    """
    xs, ys = pixel_to_map(rows, cols, geotransform)
    return map_to_latlon(xs, ys, crs_wkt)
