"""
Domain service: Geo-referenced pixel sampling from AOD GeoTIFFs.

Extraction runs in four steps:
1. Read raster size, geotransform and coordinate system from gdalinfo
2. Translate band 1 to an ASCII grid with gdal_translate
3. Sample the grid on a stride so roughly sample_target x sample_target
   cells are read whatever the native resolution
4. Drop nodata and out-of-range cells, convert raw values to AOD and
   project the surviving cells to latitude/longitude
"""
import logging
import math
import os
from dataclasses import dataclass
from typing import Optional

import numpy as np

from aod_service.config import settings
from aod_service.domain.models import GeoPixel, GeoTransform, PixelGridResult
from aod_service.infrastructure.gdal_client import (
    GDALClient,
    GDALError,
    GDALExecutionError,
    GDALUnavailableError,
)
from aod_service.services.domain.gdalinfo_parser import (
    RasterParseError,
    parse_ascii_grid,
    parse_coordinate_system,
    parse_geotransform,
    parse_raster_size,
)
from aod_service.utils.geo_projection import pixels_to_latlon
from aod_service.utils.spatial_helpers import valid_aod_mask

logger = logging.getLogger(__name__)

NO_VALID_PIXELS = "No valid pixels found in raster"


def sampling_stride(width: int, height: int, sample_target: int) -> int:
    """
    Grid stride giving about sample_target samples per axis.

    Args:
        width: Raster width in pixels
        height: Raster height in pixels
        sample_target: Desired number of samples per axis

    Returns:
        max(1, floor(sqrt(width * height) / sample_target))
    """
    if sample_target <= 0:
        return 1
    return max(1, math.floor(math.sqrt(width * height) / sample_target))


@dataclass
class ExtractionConfig:
    """Configuration for pixel extraction."""

    sample_target: int = 200
    """Target number of samples per axis"""

    nodata: float = -28672
    """Nodata sentinel of the translated grid"""

    raw_min: float = 0
    """Lowest raw value accepted as a measurement"""

    raw_max: float = 6000
    """Highest raw value accepted as a measurement"""

    aod_scale: float = 0.001
    """Raw value to AOD scale factor"""

    band: int = 1
    """Band translated to the ASCII grid"""

    @classmethod
    def from_settings(cls) -> "ExtractionConfig":
        return cls(
            sample_target=settings.sample_target,
            nodata=settings.nodata_value,
            raw_min=settings.raw_min,
            raw_max=settings.raw_max,
            aod_scale=settings.aod_scale_factor,
        )


class PixelGridExtractor:
    """
    Domain service turning one GeoTIFF into a sparse set of GeoPixels.

    Per-file failures are returned as unsuccessful results. Only an
    unavailable GDAL toolchain propagates.
    """

    def __init__(
        self,
        client: GDALClient,
        config: Optional[ExtractionConfig] = None,
        registry: Optional[dict[str, list[float]]] = None,
    ):
        """
        Initialize the extractor.

        Args:
            client: GDAL client
            config: Extraction parameters (defaults to settings)
            registry: Region name to fallback geotransform (defaults to settings)
        """
        self.client = client
        self.config = config or ExtractionConfig.from_settings()
        self.registry = registry if registry is not None else settings.fallback_geotransforms

    async def extract(self, path: str, region: Optional[str] = None) -> PixelGridResult:
        """
        Extract geo-referenced AOD pixels from a raster.

        Args:
            path: Raster file path
            region: Region whose fallback geotransform applies if the
                metadata cannot be parsed

        Returns:
            PixelGridResult

        Raises:
            GDALUnavailableError: If the GDAL tools cannot be invoked
        """
        absolute_path = os.path.abspath(path)
        filename = os.path.basename(path)

        try:
            if not os.path.exists(absolute_path):
                raise FileNotFoundError(f"File not found: {absolute_path}")

            info = await self.client.gdalinfo(absolute_path)
            raster_size = parse_raster_size(info)
            geotransform = parse_geotransform(info, region=region, registry=self.registry)
            crs_wkt = parse_coordinate_system(info)

            async with self.client.translate_band_to_grid(
                absolute_path, band=self.config.band
            ) as grid_text:
                _, grid = parse_ascii_grid(grid_text)

            pixels = self.sample_pixels(grid, geotransform, crs_wkt)

        except GDALUnavailableError:
            raise
        except GDALExecutionError as e:
            logger.debug(f"Pixel extraction failed for {filename}: {e}")
            return PixelGridResult(
                success=False,
                pixels=[],
                filename=filename,
                error=e.stderr or str(e),
            )
        except (GDALError, RasterParseError, OSError) as e:
            logger.debug(f"Pixel extraction failed for {filename}: {e}")
            return PixelGridResult(
                success=False,
                pixels=[],
                filename=filename,
                error=str(e),
            )

        if not pixels:
            return PixelGridResult(
                success=False,
                pixels=[],
                total_pixels=0,
                geotransform=geotransform,
                raster_size=raster_size,
                filename=filename,
                error=NO_VALID_PIXELS,
            )

        logger.debug(f"{filename}: {len(pixels)} valid pixels (geotransform from {geotransform.source})")
        return PixelGridResult(
            success=True,
            pixels=pixels,
            total_pixels=len(pixels),
            geotransform=geotransform,
            raster_size=raster_size,
            filename=filename,
        )

    def sample_pixels(
        self,
        grid: np.ndarray,
        geotransform: GeoTransform,
        crs_wkt: Optional[str] = None,
    ) -> list[GeoPixel]:
        """
        Sample a raw grid and convert the kept cells to GeoPixels.

        Args:
            grid: Raw values, shape (rows, cols)
            geotransform: Raster geotransform
            crs_wkt: Native CRS as WKT; None means geographic

        Returns:
            GeoPixels in row-major sampling order
        """
        height, width = grid.shape
        stride = sampling_stride(width, height, self.config.sample_target)

        rows = np.arange(0, height, stride)
        cols = np.arange(0, width, stride)
        row_idx, col_idx = np.meshgrid(rows, cols, indexing="ij")
        raw = grid[row_idx, col_idx]

        measured = (
            (raw != self.config.nodata)
            & (raw >= self.config.raw_min)
            & (raw <= self.config.raw_max)
        )
        aod = raw * self.config.aod_scale
        keep = measured & valid_aod_mask(aod)

        lats, lngs = pixels_to_latlon(
            row_idx[keep], col_idx[keep], geotransform, crs_wkt
        )
        return [
            GeoPixel(lat=float(lat), lng=float(lng), aod=float(value))
            for lat, lng, value in zip(lats, lngs, aod[keep])
        ]
