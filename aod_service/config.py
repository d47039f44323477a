"""
Application configuration using Pydantic settings.
"""
import os

from pydantic_settings import BaseSettings
from pydantic import Field


def _default_gdal_bin_dir() -> str:
    """GDAL binary directory for the host operating system."""
    if os.name == "nt":
        return r"C:\ProgramData\miniconda3\envs\gdal\Library\bin"
    return "/usr/bin"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # GDAL Toolchain
    gdal_bin_dir: str = Field(
        default_factory=_default_gdal_bin_dir,
        description="Directory containing the gdalinfo and gdal_translate executables"
    )
    gdal_timeout_seconds: float = Field(
        default=120.0,
        description="Maximum time to wait for a single GDAL process before killing it"
    )

    # Retry Configuration (process spawn failures only)
    max_retry_attempts: int = Field(
        default=3,
        description="Maximum number of attempts to spawn a GDAL process"
    )
    retry_backoff_multiplier: float = Field(
        default=0.5,
        description="Multiplier for exponential backoff"
    )
    retry_min_wait: float = Field(
        default=0.5,
        description="Minimum wait time in seconds between retries"
    )
    retry_max_wait: float = Field(
        default=4.0,
        description="Maximum wait time in seconds between retries"
    )

    # Data Layout
    data_root: str = Field(
        default=os.path.join("public", "data"),
        description="Root directory holding one sub-directory per city"
    )
    data_product: str = Field(
        default="MCD19A2",
        description="Product sub-directory under each city directory"
    )

    # Batch Processing
    batch_size: int = Field(
        default=5,
        description="Number of files processed concurrently per batch"
    )
    batch_error_sample_size: int = Field(
        default=5,
        description="Number of failed file results returned for diagnostics"
    )

    # Pixel Extraction Parameters
    sample_target: int = Field(
        default=200,
        description="Target number of samples per axis when striding the pixel grid"
    )
    nodata_value: int = Field(
        default=-28672,
        description="Nodata sentinel declared on the translated ASCII grid"
    )
    raw_min: int = Field(
        default=0,
        description="Lowest raw pixel value considered a measurement"
    )
    raw_max: int = Field(
        default=6000,
        description="Highest raw pixel value considered a measurement"
    )
    aod_scale_factor: float = Field(
        default=0.001,
        description="Scale factor converting raw pixel values to AOD"
    )
    fallback_geotransforms: dict[str, list[float]] = Field(
        default={
            "nyc": [-74.3, 0.009, 0.0, 41.0, 0.0, -0.009],
            "mumbai": [72.75, 0.009, 0.0, 19.3, 0.0, -0.009],
        },
        description="Approximate geotransform per region, used when gdalinfo "
                    "output cannot be parsed"
    )

    # Hotspot Parameters
    default_max_hotspots: int = Field(
        default=10,
        description="Number of hotspots returned when the caller does not specify"
    )
    hotspot_radius_m: float = Field(
        default=1000.0,
        description="Radius attached to every hotspot, in meters"
    )
    hotspot_recent_files: int = Field(
        default=30,
        description="Number of most recent files scanned for city hotspots"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins (use specific origins in production)"
    )

    # Rate Limiting
    rate_limit_requests: int = Field(
        default=100,
        description="Maximum requests per minute per client"
    )

    # Application Settings
    app_name: str = Field(
        default="Urban Air Quality AOD Service",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
