"""
Domain service: Parsers for GDAL text output.

gdalinfo prints a semi-structured report with labelled lines and no schema
guarantee, so parsing is tolerant: a missing field keeps its default instead
of failing the whole report. The band parser is a small state machine driven
by named line rules:

    BAND_HEADER     ``Band N Block=...``         enter a new band section
    BAND_OTHER      ``Band ...`` (no ``Block=``)  leave the current section
    NODATA          ``NoData Value=V``
    OFFSET_SCALE    ``Offset: O,   Scale:S``
    STATISTICS      ``Minimum=.., Maximum=.., Mean=.., StdDev=..``
    VALID_PERCENT   ``STATISTICS_VALID_PERCENT=P``

The metadata parsers extract raster size, the affine geotransform (with a
three-tier fallback) and the coordinate system WKT. The ASCII grid parser
reads the output of ``gdal_translate -of AAIGrid``.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from aod_service.domain.models import BandStatistics, GeoTransform, RasterSize
from aod_service.infrastructure.gdal_constants import AsciiGridFormat

logger = logging.getLogger(__name__)

NUMBER = r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?|[-+]?nan|[-+]?inf"


class RasterParseError(ValueError):
    """Expected patterns are absent from otherwise successful GDAL output."""
    pass


class LineRules:
    """Named line patterns of the gdalinfo report."""

    BAND_HEADER = re.compile(r"^Band (\d+) Block=")
    NODATA = re.compile(rf"NoData Value=({NUMBER})", re.IGNORECASE)
    OFFSET = re.compile(rf"Offset:\s*({NUMBER})")
    SCALE = re.compile(rf"Scale:\s*({NUMBER})")
    STATISTICS = re.compile(
        rf"Minimum=({NUMBER}), Maximum=({NUMBER}), Mean=({NUMBER}), StdDev=({NUMBER})"
    )
    VALID_PERCENT = re.compile(rf"STATISTICS_VALID_PERCENT=({NUMBER})")

    SIZE = re.compile(r"^Size is (\d+),\s*(\d+)")
    GEOTRANSFORM = re.compile(r"^GeoTransform\s*=\s*(.*)$")
    ORIGIN = re.compile(rf"^Origin\s*=\s*\(({NUMBER}),\s*({NUMBER})\)")
    PIXEL_SIZE = re.compile(rf"^Pixel Size\s*=\s*\(({NUMBER}),\s*({NUMBER})\)")
    COORDINATE_SYSTEM = re.compile(r"^Coordinate System is:?\s*(.*)$")


@dataclass
class _BandSection:
    """Fields accumulated while inside one band section."""
    band: int
    fields: dict = field(default_factory=dict)

    def close(self) -> BandStatistics:
        return BandStatistics(band=self.band, **self.fields)


class BandStatisticsParser:
    """
    Line-oriented state machine turning a gdalinfo report into band records.

    States are ``outside`` (no band seen, or a non-header ``Band`` line left
    the section) and ``in_band``. Entering a section closes the previous
    one; end of input closes the open one.
    """

    def __init__(self):
        self.bands: list[BandStatistics] = []
        self._current: Optional[_BandSection] = None
        self._in_band = False

    def parse(self, text: str) -> list[BandStatistics]:
        for raw_line in text.splitlines():
            self.feed(raw_line.strip())
        self._close_section()
        return self.bands

    def feed(self, line: str) -> None:
        header = LineRules.BAND_HEADER.match(line)
        if header:
            self._enter_section(int(header.group(1)))
            return

        if not self._in_band:
            return

        self._apply_field_rules(line)

        if line.startswith("Band ") and "Block=" not in line:
            self._in_band = False

    def _enter_section(self, band: int) -> None:
        self._close_section()
        self._current = _BandSection(band=band)
        self._in_band = True

    def _close_section(self) -> None:
        if self._current is not None:
            self.bands.append(self._current.close())
            self._current = None

    def _apply_field_rules(self, line: str) -> None:
        fields = self._current.fields

        nodata = LineRules.NODATA.search(line)
        if nodata:
            fields["no_data_value"] = float(nodata.group(1))

        if "Offset:" in line and "Scale:" in line:
            offset = LineRules.OFFSET.search(line)
            scale = LineRules.SCALE.search(line)
            if offset:
                fields["offset"] = float(offset.group(1))
            if scale:
                fields["scale"] = float(scale.group(1))

        stats = LineRules.STATISTICS.search(line)
        if stats:
            fields["has_valid_data"] = True
            fields["minimum"] = float(stats.group(1))
            fields["maximum"] = float(stats.group(2))
            fields["mean"] = float(stats.group(3))
            fields["stddev"] = float(stats.group(4))

        valid_percent = LineRules.VALID_PERCENT.search(line)
        if valid_percent:
            fields["valid_percent"] = float(valid_percent.group(1))


def parse_band_statistics(text: str) -> list[BandStatistics]:
    """
    Parse a ``gdalinfo -stats`` report into per-band statistics.

    Args:
        text: gdalinfo output

    Returns:
        One BandStatistics per ``Band N Block=`` header, in input order
    """
    return BandStatisticsParser().parse(text)


def parse_raster_size(text: str) -> RasterSize:
    """
    Extract raster width and height from a gdalinfo report.

    Raises:
        RasterParseError: If no ``Size is W, H`` line is present
    """
    for line in text.splitlines():
        match = LineRules.SIZE.match(line.strip())
        if match:
            return RasterSize(width=int(match.group(1)), height=int(match.group(2)))
    raise RasterParseError("Could not parse raster size from gdalinfo output")


def _numbers(text: str) -> list[float]:
    return [float(n) for n in re.findall(NUMBER, text)]


def _parse_geotransform_block(lines: list[str]) -> Optional[list[float]]:
    """Read the coefficients of a ``GeoTransform =`` block, one-line or three-line."""
    for i, line in enumerate(lines):
        match = LineRules.GEOTRANSFORM.match(line.strip())
        if not match:
            continue
        coefficients = _numbers(match.group(1))
        for follow in lines[i + 1:i + 3]:
            if len(coefficients) >= 6:
                break
            coefficients.extend(_numbers(follow))
        if len(coefficients) >= 6:
            return coefficients[:6]
    return None


def _parse_origin_pixel_size(lines: list[str]) -> Optional[list[float]]:
    origin = pixel_size = None
    for line in lines:
        stripped = line.strip()
        origin = origin or LineRules.ORIGIN.match(stripped)
        pixel_size = pixel_size or LineRules.PIXEL_SIZE.match(stripped)
    if not (origin and pixel_size):
        return None
    return [
        float(origin.group(1)),
        float(pixel_size.group(1)),
        0.0,
        float(origin.group(2)),
        0.0,
        float(pixel_size.group(2)),
    ]


def parse_geotransform(
    text: str,
    region: Optional[str] = None,
    registry: Optional[dict[str, list[float]]] = None,
) -> GeoTransform:
    """
    Extract the affine geotransform from a gdalinfo report.

    Tries, in order: an explicit ``GeoTransform =`` block, the
    ``Origin``/``Pixel Size`` pair, then the approximate transform
    registered for ``region``. The returned transform's ``source`` records
    which tier produced it.

    Args:
        text: Plain gdalinfo output
        region: Region name used to look up the fallback transform
        registry: Region name to GDAL-ordered coefficients

    Returns:
        GeoTransform

    Raises:
        RasterParseError: If every tier fails
    """
    lines = text.splitlines()

    coefficients = _parse_geotransform_block(lines)
    if coefficients:
        return GeoTransform.from_gdal(coefficients, source="metadata")

    coefficients = _parse_origin_pixel_size(lines)
    if coefficients:
        logger.debug("Geotransform built from Origin/Pixel Size lines")
        return GeoTransform.from_gdal(coefficients, source="origin_pixel_size")

    if region and registry and region.lower() in registry:
        logger.warning(
            f"Could not parse geotransform; using approximate transform for region '{region}'"
        )
        return GeoTransform.from_gdal(registry[region.lower()], source="region_fallback")

    raise RasterParseError("Could not parse geotransform from gdalinfo output")


def parse_coordinate_system(text: str) -> Optional[str]:
    """
    Extract the coordinate system WKT from a gdalinfo report.

    Returns:
        WKT string, or None when the report has no coordinate system
    """
    lines = text.splitlines()
    for i, line in enumerate(lines):
        match = LineRules.COORDINATE_SYSTEM.match(line.strip())
        if not match:
            continue

        inline = match.group(1).strip()
        if inline in ("", "``", "`'"):
            collected = []
        else:
            collected = [inline]

        depth = inline.count("[") - inline.count("]")
        started = "[" in inline
        for follow in lines[i + 1:]:
            if started and depth <= 0:
                break
            if not started and "[" not in follow:
                break
            collected.append(follow.strip())
            depth += follow.count("[") - follow.count("]")
            started = True

        wkt = "".join(collected).strip()
        return wkt or None
    return None


def _is_numeric_token(token: str) -> bool:
    try:
        float(token)
    except ValueError:
        return False
    return True


def parse_ascii_grid(text: str) -> tuple[dict[str, float], np.ndarray]:
    """
    Parse an Arc/Info ASCII grid.

    Header lines (``ncols``, ``nrows``, ``xllcorner`` ...) are read until the
    first line that starts with a number; everything from there on is data.

    Args:
        text: Contents of the ``.asc`` file

    Returns:
        Tuple of:
            - Header values keyed by lower-case name
            - 2D array of raw values, shape (nrows, ncols)

    Raises:
        RasterParseError: If the grid holds no data or its shape is inconsistent
    """
    lines = text.splitlines()
    header: dict[str, float] = {}
    data_start = None

    for i, line in enumerate(lines):
        tokens = line.split()
        if not tokens:
            continue
        if _is_numeric_token(tokens[0]):
            data_start = i
            break
        key = tokens[0].lower()
        if key in AsciiGridFormat.HEADER_KEYS and len(tokens) > 1:
            header[key] = float(tokens[1])

    if data_start is None:
        raise RasterParseError("ASCII grid contains no numeric data")

    data_lines = [line for line in lines[data_start:] if line.strip()]
    nrows = int(header.get("nrows", len(data_lines)))
    ncols = int(header.get("ncols", len(data_lines[0].split())))

    values = np.array(" ".join(data_lines).split(), dtype=np.float64)
    if values.size != nrows * ncols:
        raise RasterParseError(
            f"ASCII grid has {values.size} values, expected {nrows}x{ncols}"
        )
    return header, values.reshape(nrows, ncols)
