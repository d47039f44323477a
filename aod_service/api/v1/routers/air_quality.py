"""
API router for city air quality endpoints.
"""
from fastapi import APIRouter, HTTPException, Path, Query, Request
from typing import Annotated

from aod_service.api.dependencies import AirQualityServiceDep, GDALClientDep
from aod_service.api.v1.models.responses import (
    CityAirQualityResponse,
    CityHotspotsResponse,
    DataRange,
    GDALVersionResponse,
    TrendPoint,
    ZoneSeriesResponse,
)
from aod_service.config import settings
from aod_service.infrastructure.gdal_client import GDALUnavailableError
from aod_service.middleware.rate_limit import DATA_RATE_LIMIT, limiter
from aod_service.services.application.air_quality_service import (
    CityNotFoundError,
    NoAirQualityDataError,
)
from aod_service.services.application.batch_processor import DataDirectoryError
from aod_service.services.domain.air_quality import aqi_color, aqi_level


router = APIRouter(
    tags=["air-quality"],
)

COMMON_RESPONSES = {
    404: {"description": "Unknown city or area, or no usable data"},
    429: {"description": "Rate limit exceeded"},
    503: {"description": "GDAL toolchain unavailable"},
}

CityPath = Annotated[str, Path(description="City key, e.g. 'nyc' or 'mumbai'")]


SERVICE_ERRORS = (
    GDALUnavailableError,
    CityNotFoundError,
    DataDirectoryError,
    NoAirQualityDataError,
)


def _http_error(e: Exception) -> HTTPException:
    """Translate a service exception into an HTTP error."""
    if isinstance(e, GDALUnavailableError):
        return HTTPException(status_code=503, detail=f"GDAL is not available: {e}")
    return HTTPException(status_code=404, detail=str(e))


@router.get(
    "/cities/{city}/air-quality",
    response_model=CityAirQualityResponse,
    summary="Get daily air quality for a city",
    description="""
    Compute the daily AQI series of a city from its MODIS MCD19A2 GeoTIFFs.

    This endpoint:
    1. Runs `gdalinfo -stats` on every GeoTIFF of the city directory, in batches
    2. Combines each file's bands into one AOD (weighted by valid-pixel percentage)
    3. Converts AOD to AQI with the EPA PM2.5 breakpoints
    4. Returns the chronological series with summary statistics
    """,
    responses=COMMON_RESPONSES,
)
@limiter.limit(DATA_RATE_LIMIT)
async def get_city_air_quality(
    request: Request,
    city: CityPath,
    service: AirQualityServiceDep,
) -> CityAirQualityResponse:
    """
    Get daily air quality for a city.

    Args:
        request: Incoming request (used by the rate limiter)
        city: City key
        service: Air quality service (injected dependency)

    Returns:
        CityAirQualityResponse
    """
    try:
        result = await service.get_air_quality(city)
    except SERVICE_ERRORS as e:
        raise _http_error(e)

    summary = result.summary
    return CityAirQualityResponse(
        city=result.city,
        data_range=DataRange(start=result.daily[0].date, end=result.daily[-1].date),
        current_aqi=summary.average_aqi,
        current_aqi_level=aqi_level(summary.average_aqi),
        current_aqi_color=aqi_color(summary.average_aqi),
        recent_aqi=summary.recent_aqi,
        recent_aqi_level=aqi_level(summary.recent_aqi),
        statistics=summary,
        daily=result.daily,
        trend=[TrendPoint(date=d.date, aqi=d.aqi, aod=d.aod) for d in result.daily],
    )


@router.get(
    "/cities/{city}/hotspots",
    response_model=CityHotspotsResponse,
    summary="Get AOD hotspots for a city area",
    description="""
    Rank the highest-AOD pixels of a city over its most recent GeoTIFFs.

    Each file is sampled on a ~200x200 grid, its top pixels become hotspots,
    then hotspots from all files are filtered to the requested area and
    re-ranked.
    """,
    responses=COMMON_RESPONSES,
)
@limiter.limit(DATA_RATE_LIMIT)
async def get_city_hotspots(
    request: Request,
    city: CityPath,
    service: AirQualityServiceDep,
    area: Annotated[str, Query(description="Area key, e.g. 'citywide' or 'northeastern'")] = "citywide",
    max_hotspots: Annotated[int, Query(ge=1, le=100, description="Number of hotspots")] = settings.default_max_hotspots,
) -> CityHotspotsResponse:
    """
    Get AOD hotspots for a city area.

    Args:
        request: Incoming request (used by the rate limiter)
        city: City key
        service: Air quality service (injected dependency)
        area: Area key
        max_hotspots: Number of hotspots to return

    Returns:
        CityHotspotsResponse
    """
    try:
        result = await service.get_hotspots(city, area, max_hotspots)
    except SERVICE_ERRORS as e:
        raise _http_error(e)

    dates = sorted(h.date for h in result.hotspots if h.date)
    return CityHotspotsResponse(
        city=result.city,
        area=result.area.name,
        area_id=result.area_id,
        hotspots=result.hotspots,
        statistics=result.summary,
        data_range=DataRange(
            start=dates[0] if dates else None,
            end=dates[-1] if dates else None,
        ),
        data_source=f"NASA MODIS MCD19A2 v061 - {result.area.name} Hotspots (Real Pixel Data)",
    )


@router.get(
    "/cities/{city}/zones/{area}/aod",
    response_model=ZoneSeriesResponse,
    summary="Get zone-averaged AOD for a city area",
    responses=COMMON_RESPONSES,
)
@limiter.limit(DATA_RATE_LIMIT)
async def get_zone_aod(
    request: Request,
    city: CityPath,
    area: Annotated[str, Path(description="Area key, e.g. 'northeastern'")],
    service: AirQualityServiceDep,
) -> ZoneSeriesResponse:
    """
    Get the zone-averaged AOD of every file for a city area.

    Args:
        request: Incoming request (used by the rate limiter)
        city: City key
        area: Area key
        service: Air quality service (injected dependency)

    Returns:
        ZoneSeriesResponse
    """
    try:
        result = await service.get_zone_series(city, area)
    except SERVICE_ERRORS as e:
        raise _http_error(e)

    return ZoneSeriesResponse(
        city=result.city,
        area=result.area.name,
        area_id=result.area_id,
        results=result.results,
        valid_results=sum(1 for r in result.results if r.success),
    )


@router.get(
    "/gdal/version",
    response_model=GDALVersionResponse,
    summary="Check GDAL availability",
    tags=["health"],
)
async def get_gdal_version(client: GDALClientDep) -> GDALVersionResponse:
    """
    Probe the GDAL toolchain.

    Args:
        client: GDAL client (injected dependency)

    Returns:
        GDALVersionResponse
    """
    try:
        version = await client.probe_version()
    except GDALUnavailableError:
        return GDALVersionResponse(available=False, gdal_bin_dir=client.gdal_bin_dir)

    return GDALVersionResponse(
        available=True,
        version=version,
        gdal_bin_dir=client.gdal_bin_dir,
    )
