"""
Application service: Orchestration layer for city air quality operations.
"""
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Optional

from aod_service.config import settings
from aod_service.domain.models import (
    AirQualitySummary,
    DailyAirQuality,
    Hotspot,
    HotspotSummary,
    ZoneAODResult,
)
from aod_service.domain.regions import CityArea, get_city_area
from aod_service.services.application.batch_processor import DirectoryBatchProcessor
from aod_service.services.domain.air_quality import (
    build_daily_series,
    summarize_daily,
    summarize_hotspots,
)
from aod_service.services.domain.hotspot_aggregator import (
    extract_hotspots,
    merge_hotspots,
    zone_average,
)

logger = logging.getLogger(__name__)

CITY_NAME_PATTERN = re.compile(r"[A-Za-z0-9_-]+")


class CityNotFoundError(LookupError):
    """The city or area is unknown, or the city has no data directory."""
    pass


class NoAirQualityDataError(Exception):
    """Processing finished but produced nothing to report."""
    pass


@dataclass
class CityAirQuality:
    """Daily air quality series of a city with its summary."""
    city: str
    daily: list[DailyAirQuality]
    summary: AirQualitySummary


@dataclass
class CityHotspots:
    """Merged hotspots of a city area."""
    city: str
    area_id: str
    area: CityArea
    hotspots: list[Hotspot]
    summary: HotspotSummary


@dataclass
class ZoneSeries:
    """Per-file zone averages of a city area."""
    city: str
    area_id: str
    area: CityArea
    results: list[ZoneAODResult] = field(default_factory=list)


class AirQualityService:
    """
    Application service for city-level air quality operations.

    Orchestrates directory processing and domain aggregation.
    No business logic here, only coordination between the batch
    processor and the domain services.
    """

    def __init__(
        self,
        processor: DirectoryBatchProcessor,
        data_root: Optional[str] = None,
        product: Optional[str] = None,
    ):
        """
        Initialize the service with dependencies.

        Args:
            processor: Directory batch processor
            data_root: Root holding one directory per city (defaults to settings)
            product: Product sub-directory (defaults to settings)
        """
        self.processor = processor
        self.data_root = data_root or settings.data_root
        self.product = product or settings.data_product

    def city_data_dir(self, city: str) -> str:
        """
        Data directory of a city.

        Raises:
            CityNotFoundError: If the name is not a plain directory name or
                the directory does not exist
        """
        if not CITY_NAME_PATTERN.fullmatch(city):
            raise CityNotFoundError(f"Invalid city name: {city!r}")

        directory = os.path.join(self.data_root, city.lower(), self.product)
        if not os.path.isdir(directory):
            raise CityNotFoundError(f"No NASA data found for city: {city}")
        return directory

    def resolve_area(self, city: str, area: str) -> CityArea:
        try:
            return get_city_area(city, area)
        except KeyError:
            raise CityNotFoundError(f"Unknown area '{area}' for city: {city}")

    async def get_air_quality(self, city: str) -> CityAirQuality:
        """
        Daily AQI series of a city.

        Raises:
            CityNotFoundError: If the city has no data directory
            NoAirQualityDataError: If no file yields a usable AOD
        """
        directory = self.city_data_dir(city)
        batch = await self.processor.process_aod_directory(directory)

        if batch.valid_files == 0:
            raise NoAirQualityDataError("No valid AOD data found in any GeoTIFF files")

        daily = build_daily_series(batch.data)
        if not daily:
            raise NoAirQualityDataError("No valid AQI values could be calculated from AOD data")

        return CityAirQuality(
            city=city.upper(),
            daily=daily,
            summary=summarize_daily(daily, batch),
        )

    async def get_hotspots(
        self,
        city: str,
        area_id: str,
        max_hotspots: int,
    ) -> CityHotspots:
        """
        Highest-AOD points of a city area over its most recent files.

        Raises:
            CityNotFoundError: If the city or area is unknown
            NoAirQualityDataError: If no hotspot falls inside the area
        """
        area = self.resolve_area(city, area_id)
        directory = self.city_data_dir(city)

        await self.processor.client.probe_version()
        rasters = await self.processor.discover(directory)
        recent = rasters[-settings.hotspot_recent_files:]

        grids = await self.processor.process_files(
            recent,
            lambda raster: self.processor.pixel_extractor.extract(raster.path, region=city),
        )
        per_file = [extract_hotspots(grid, max_hotspots) for grid in grids]

        in_area = merge_hotspots(
            per_file,
            None,
            bounds=area.bounds,
            dates={raster.filename: raster.date for raster in recent},
        )
        if not in_area:
            raise NoAirQualityDataError("No hotspots found in the specified area")

        # files with any hotspot in the area, counted before the top-N cut
        processed_files = len({h.filename for h in in_area})
        hotspots = in_area[:max_hotspots]
        logger.info(f"{len(hotspots)} hotspots for {city}/{area_id} from {processed_files} files")

        return CityHotspots(
            city=city.upper(),
            area_id=area_id,
            area=area,
            hotspots=hotspots,
            summary=summarize_hotspots(hotspots, processed_files, len(recent)),
        )

    async def get_zone_series(self, city: str, area_id: str) -> ZoneSeries:
        """
        Zone-averaged AOD of a city area for every file.

        Raises:
            CityNotFoundError: If the city or area is unknown
            NoAirQualityDataError: If no file has pixels
        """
        area = self.resolve_area(city, area_id)
        directory = self.city_data_dir(city)

        batch = await self.processor.process_pixel_directory(directory, region=city)
        if batch.valid_files == 0:
            raise NoAirQualityDataError("No valid pixel data found in any GeoTIFF files")

        results = [zone_average(grid, area.bounds) for grid in batch.data]
        return ZoneSeries(city=city.upper(), area_id=area_id, area=area, results=results)
