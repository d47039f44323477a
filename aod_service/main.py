"""
FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from aod_service.config import settings
from aod_service.infrastructure.gdal_client import GDALUnavailableError, get_gdal_client
from aod_service.middleware.error_handler import ErrorHandlerMiddleware
from aod_service.middleware.rate_limit import limiter
from aod_service.api.v1.routers import air_quality

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Logs configuration and checks the GDAL toolchain on startup. A missing
    toolchain is reported but does not stop the service; data endpoints
    answer 503 until it is installed.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Log level: {settings.log_level}")
    logger.info(f"GDAL bin dir: {settings.gdal_bin_dir} "
                f"(timeout={settings.gdal_timeout_seconds}s)")
    logger.info(f"Batch config: batch_size={settings.batch_size}, "
                f"sample_target={settings.sample_target}")
    logger.info(f"Rate limit: {settings.rate_limit_requests} requests/minute")

    try:
        version = await get_gdal_client().probe_version()
        logger.info(f"GDAL available: {version}")
    except GDALUnavailableError as e:
        logger.warning(f"GDAL is not available: {e}")

    yield

    # Shutdown
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    Satellite Air Quality API for Urban Planning

    This API turns NASA MODIS MCD19A2 aerosol optical depth (AOD) GeoTIFFs
    into city-level air quality indicators.

    ## Features

    - **Daily Air Quality**: File-level AOD from GDAL band statistics, converted
      to AQI with EPA PM2.5 breakpoints
    - **Hotspots**: Highest-AOD pixels ranked across recent observations
    - **Zone Averages**: AOD averaged inside named city areas
    - **Bounded Processing**: GeoTIFFs processed in concurrent batches with a
      timeout on every GDAL process
    - **Rate Limiting**: Protects the GDAL toolchain from overload

    ## Processing Pipeline

    1. Discovers dated GeoTIFFs (`...A{year}{julianDay}...tif`) in chronological order
    2. Runs `gdalinfo -stats` and parses per-band statistics
    3. Weights each band's scaled mean by its valid-pixel percentage
    4. For pixel queries, translates band 1 to an ASCII grid and samples it
       on a ~200x200 lattice projected to latitude/longitude
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add rate limiter to app state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware with configurable origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add global error handling middleware
app.add_middleware(ErrorHandlerMiddleware)

# Include routers
app.include_router(air_quality.router, prefix="/api/v1")


@app.get("/", tags=["health"])
async def root():
    """
    Root endpoint for health check.

    Returns:
        Status message
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
        "version": settings.app_version,
    }


@app.get("/health", tags=["health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        Health status
    """
    return {
        "status": "healthy",
        "service": settings.app_name,
    }
