"""
Dependency injection for FastAPI.
"""
from typing import Annotated
from fastapi import Depends

from aod_service.infrastructure.gdal_client import (
    GDALClient,
    get_gdal_client,
)
from aod_service.services.domain.aod_aggregator import AODFileReader
from aod_service.services.domain.pixel_grid_extractor import PixelGridExtractor
from aod_service.services.application.batch_processor import DirectoryBatchProcessor
from aod_service.services.application.air_quality_service import AirQualityService


def get_batch_processor(
    client: Annotated[GDALClient, Depends(get_gdal_client)],
) -> DirectoryBatchProcessor:
    """
    Dependency factory for DirectoryBatchProcessor.

    Args:
        client: GDAL client (injected)

    Returns:
        DirectoryBatchProcessor instance
    """
    return DirectoryBatchProcessor(
        client=client,
        aod_reader=AODFileReader(client),
        pixel_extractor=PixelGridExtractor(client),
    )


def get_air_quality_service(
    processor: Annotated[DirectoryBatchProcessor, Depends(get_batch_processor)],
) -> AirQualityService:
    """
    Dependency factory for AirQualityService.

    Args:
        processor: Directory batch processor (injected)

    Returns:
        AirQualityService instance
    """
    return AirQualityService(processor=processor)


# Type aliases for cleaner route signatures
GDALClientDep = Annotated[GDALClient, Depends(get_gdal_client)]
AirQualityServiceDep = Annotated[AirQualityService, Depends(get_air_quality_service)]
