"""
Domain models for satellite raster observations and AOD measurements.

These models represent the core domain entities and should be independent
of any infrastructure concerns (GDAL invocation, HTTP, filesystem).
Fields are snake_case in Python and camelCase when serialized.
"""
import os
import re
import datetime
from typing import Generic, List, Literal, Optional, Sequence, Tuple, TypeVar

from pydantic import BaseModel, Field, model_validator
from pydantic.alias_generators import to_camel


ACQUISITION_PATTERN = re.compile(r"A(\d{4})(\d{3})")

Severity = Literal["critical", "high", "moderate"]
GeoTransformSource = Literal["metadata", "origin_pixel_size", "region_fallback"]


class DomainModel(BaseModel):
    """Base model serializing to camelCase field names."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class RasterFile(DomainModel):
    """One dated satellite observation on disk."""
    path: str
    filename: str
    year: Optional[int] = None
    julian_day: Optional[int] = None
    date: Optional[str] = Field(default=None, description="ISO acquisition date")

    @classmethod
    def from_path(cls, path: str) -> "RasterFile":
        """
        Identify a raster file, parsing the acquisition date from its name.

        Filenames embed the date as ``A{year}{julianDay}``, e.g.
        ``MCD19A2.A2025060.h12v04.061.tif``. Files without the pattern, or
        whose digits do not form a real date, keep ``None`` for year, day
        and date.
        """
        filename = os.path.basename(path)
        match = ACQUISITION_PATTERN.search(filename)
        if not match:
            return cls(path=path, filename=filename)

        year = int(match.group(1))
        julian_day = int(match.group(2))
        try:
            acquired = datetime.date(year, 1, 1) + datetime.timedelta(days=julian_day - 1)
        except (ValueError, OverflowError):
            return cls(path=path, filename=filename)
        return cls(
            path=path,
            filename=filename,
            year=year,
            julian_day=julian_day,
            date=acquired.isoformat(),
        )


class BandStatistics(DomainModel):
    """Summary statistics of one raster band as reported by gdalinfo."""
    band: int = Field(description="1-based band index")
    has_valid_data: bool = False
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    mean: Optional[float] = None
    stddev: Optional[float] = None
    valid_percent: float = Field(default=0.0, description="Valid pixel percentage (0-100)")
    no_data_value: Optional[float] = None
    scale: float = 1.0
    offset: float = 0.0

    @property
    def scaled_mean(self) -> Optional[float]:
        """Mean converted to physical units."""
        if self.mean is None:
            return None
        return self.mean * self.scale + self.offset


class DatedResult(DomainModel):
    """Per-file result carrying the acquisition date of its source."""
    filename: Optional[str] = None
    date: Optional[str] = None
    julian_day: Optional[int] = None
    year: Optional[int] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def attach_acquisition(self, raster: RasterFile) -> None:
        """Copy acquisition date fields from the source raster."""
        self.date = raster.date
        self.julian_day = raster.julian_day
        self.year = raster.year


class FileAODResult(DatedResult):
    """File-level aggregate AOD."""
    has_valid_data: bool = False
    aod: Optional[float] = None
    bands: List[BandStatistics] = Field(default_factory=list)
    valid_bands: int = 0
    total_bands: int = 0

    @property
    def succeeded(self) -> bool:
        return self.has_valid_data


class GeoTransform(DomainModel):
    """Six-coefficient affine transform from pixel (row, col) to map (x, y)."""
    origin_x: float
    pixel_width: float
    row_rotation: float = 0.0
    origin_y: float
    column_rotation: float = 0.0
    pixel_height: float
    source: GeoTransformSource = "metadata"

    @classmethod
    def from_gdal(
        cls,
        coefficients: Sequence[float],
        source: GeoTransformSource = "metadata",
    ) -> "GeoTransform":
        """Build from GDAL's (x0, dx, rx, y0, ry, dy) ordering."""
        if len(coefficients) != 6:
            raise ValueError(f"A geotransform needs 6 coefficients, got {len(coefficients)}")
        x0, dx, rx, y0, ry, dy = (float(c) for c in coefficients)
        return cls(
            origin_x=x0,
            pixel_width=dx,
            row_rotation=rx,
            origin_y=y0,
            column_rotation=ry,
            pixel_height=dy,
            source=source,
        )

    def as_gdal(self) -> Tuple[float, float, float, float, float, float]:
        return (
            self.origin_x,
            self.pixel_width,
            self.row_rotation,
            self.origin_y,
            self.column_rotation,
            self.pixel_height,
        )

    @property
    def degraded(self) -> bool:
        """True when the transform did not come from the raster metadata."""
        return self.source != "metadata"


class RasterSize(DomainModel):
    """Raster dimensions in pixels."""
    width: int
    height: int


class GeoPixel(DomainModel):
    """A sampled raster cell projected to geographic coordinates."""
    lat: float
    lng: float
    aod: float


class PixelGridResult(DatedResult):
    """Sampled, geo-referenced pixels of one raster file."""
    success: bool = False
    pixels: List[GeoPixel] = Field(default_factory=list)
    total_pixels: int = 0
    geotransform: Optional[GeoTransform] = None
    raster_size: Optional[RasterSize] = None

    @property
    def succeeded(self) -> bool:
        return self.success


class Hotspot(DomainModel):
    """A ranked high-AOD point."""
    id: str
    lat: float
    lng: float
    aod: float
    aqi: int
    severity: Severity
    radius: float
    rank: int
    date: Optional[str] = None
    filename: Optional[str] = None


class HotspotResult(DomainModel):
    """Top-N hotspots of one raster file."""
    success: bool = False
    hotspots: List[Hotspot] = Field(default_factory=list)
    total_pixels: int = 0
    valid_pixels: int = 0
    filename: Optional[str] = None
    error: Optional[str] = None


class ZoneBounds(DomainModel):
    """Rectangular geographic bound, inclusive on all four edges."""
    north: float
    south: float
    east: float
    west: float

    @model_validator(mode="after")
    def _check_ordering(self) -> "ZoneBounds":
        if self.south > self.north:
            raise ValueError(f"south ({self.south}) must not exceed north ({self.north})")
        if self.west > self.east:
            raise ValueError(f"west ({self.west}) must not exceed east ({self.east})")
        return self

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east


class ZoneAODResult(DomainModel):
    """Average AOD within a zone of one raster file."""
    success: bool = False
    aod: Optional[float] = None
    pixel_count: int = 0
    total_pixels: int = 0
    zone_coverage: int = 0
    filename: Optional[str] = None
    date: Optional[str] = None
    error: Optional[str] = None


ResultT = TypeVar("ResultT", bound=DatedResult)


class BatchResult(DomainModel, Generic[ResultT]):
    """Directory-level aggregate of per-file results."""
    success: bool = False
    total_files: int = 0
    valid_files: int = 0
    error_files: int = 0
    data: List[ResultT] = Field(default_factory=list)
    errors: List[ResultT] = Field(default_factory=list)


class BandSummary(DomainModel):
    """Scaled mean of one valid band, for display."""
    band: int
    mean: float
    valid_percent: float


class DailyAirQuality(DomainModel):
    """One day of city-level air quality derived from a file's AOD."""
    date: Optional[str] = None
    julian_day: Optional[int] = None
    year: Optional[int] = None
    aod: float
    aqi: int
    aqi_level: str
    filename: Optional[str] = None
    valid_bands: int = 0
    total_bands: int = 0
    bands_info: List[BandSummary] = Field(default_factory=list)


class AirQualitySummary(DomainModel):
    """Statistics over a daily air quality series."""
    average_aqi: int
    average_aod: float
    max_aqi: int
    min_aqi: int
    recent_aqi: int
    total_observations: int
    valid_files: int
    total_files: int
    error_files: int
    success_rate: int


class HotspotSummary(DomainModel):
    """Statistics over a merged hotspot list."""
    total_hotspots: int
    max_aod: float
    min_aod: float
    avg_aod: float
    max_aqi: int
    min_aqi: int
    avg_aqi: float
    processed_files: int
    total_files: int
