"""
Domain service: File-level AOD aggregation from band statistics.

Multi-band daily products (e.g. MODIS MCD19A2) differ in coverage per band,
so bands are combined as a mean weighted by their valid-pixel fraction:
a sparse band must not dilute a nearly complete one.
"""
import logging
import os
from typing import Optional

from aod_service.domain.models import BandStatistics, FileAODResult
from aod_service.infrastructure.gdal_client import (
    GDALClient,
    GDALError,
    GDALUnavailableError,
)
from aod_service.services.domain.gdalinfo_parser import (
    RasterParseError,
    parse_band_statistics,
)

logger = logging.getLogger(__name__)

NO_VALID_BANDS = "No valid AOD data found in any band"


def select_valid_bands(bands: list[BandStatistics]) -> list[BandStatistics]:
    """Bands with computed statistics and a non-zero valid-pixel percentage."""
    return [b for b in bands if b.has_valid_data and b.valid_percent > 0]


def weighted_aod(bands: list[BandStatistics]) -> Optional[float]:
    """
    Weighted mean of scaled band means, weight = validPercent / 100.

    Args:
        bands: Valid bands (see select_valid_bands)

    Returns:
        Aggregate AOD, or None when the total weight is zero
    """
    total_aod = 0.0
    total_weight = 0.0

    for band in bands:
        weight = band.valid_percent / 100
        total_aod += band.scaled_mean * weight
        total_weight += weight

    if total_weight <= 0:
        return None
    return total_aod / total_weight


def aggregate_bands(
    bands: list[BandStatistics],
    filename: Optional[str] = None,
) -> FileAODResult:
    """
    Combine a file's bands into one AOD value.

    Args:
        bands: All parsed bands of the file
        filename: Source filename

    Returns:
        FileAODResult; ``aod`` is None and ``has_valid_data`` False when no
        band qualifies
    """
    valid = select_valid_bands(bands)
    aod = weighted_aod(valid) if valid else None

    if aod is None:
        return FileAODResult(
            has_valid_data=False,
            aod=None,
            bands=bands,
            valid_bands=0,
            total_bands=len(bands),
            filename=filename,
            error=NO_VALID_BANDS,
        )

    return FileAODResult(
        has_valid_data=True,
        aod=aod,
        bands=bands,
        valid_bands=len(valid),
        total_bands=len(bands),
        filename=filename,
    )


class AODFileReader:
    """
    Domain service reading the aggregate AOD of a single GeoTIFF.

    Per-file failures are returned as error results. Only an unavailable
    GDAL toolchain propagates, since no other file could succeed either.
    """

    def __init__(self, client: GDALClient):
        self.client = client

    async def extract(self, path: str) -> FileAODResult:
        """
        Run ``gdalinfo -stats`` on a file and aggregate its bands.

        Args:
            path: Raster file path

        Returns:
            FileAODResult

        Raises:
            GDALUnavailableError: If gdalinfo cannot be invoked
        """
        absolute_path = os.path.abspath(path)
        filename = os.path.basename(path)

        try:
            if not os.path.exists(absolute_path):
                raise FileNotFoundError(f"File not found: {absolute_path}")

            output = await self.client.gdalinfo(absolute_path, stats=True)
            bands = parse_band_statistics(output)
            result = aggregate_bands(bands, filename=filename)

        except GDALUnavailableError:
            raise
        except (GDALError, RasterParseError, OSError) as e:
            logger.debug(f"AOD extraction failed for {filename}: {e}")
            return FileAODResult(
                has_valid_data=False,
                aod=None,
                bands=[],
                filename=filename,
                error=str(e),
            )

        logger.debug(
            f"{filename}: aod={result.aod} "
            f"({result.valid_bands}/{result.total_bands} valid bands)"
        )
        return result
