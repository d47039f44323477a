"""
GDAL command-line constants.

This module contains the executable names, flags and output-format constants
used when shelling out to the GDAL toolchain. Centralizing these values makes
it easy to follow GDAL version changes in one place.
"""
import os


class GDALExecutables:
    """GDAL executable names."""

    GDALINFO = "gdalinfo"
    GDAL_TRANSLATE = "gdal_translate"

    @classmethod
    def suffix(cls) -> str:
        """
        Platform-dependent executable suffix.

        Returns:
            ".exe" on Windows, an empty string elsewhere
        """
        return ".exe" if os.name == "nt" else ""

    @classmethod
    def resolve(cls, bin_dir: str, name: str) -> str:
        """
        Build the full path of a GDAL executable.

        Args:
            bin_dir: Directory holding the GDAL binaries
            name: Executable name without suffix

        Returns:
            Absolute or relative path to the executable
        """
        return os.path.join(bin_dir, f"{name}{cls.suffix()}")


class GDALFlags:
    """Command-line flags passed to the GDAL tools."""

    VERSION = "--version"
    STATS = "-stats"
    OUTPUT_FORMAT = "-of"
    BAND = "-b"
    SCALE = "-scale"
    ASSIGN_NODATA = "-a_nodata"

    @classmethod
    def translate_to_ascii_grid(
        cls,
        band: int,
        raw_min: int,
        raw_max: int,
        nodata: int,
    ) -> list[str]:
        """
        Arguments for gdal_translate producing an ASCII grid of one band.

        Args:
            band: 1-based band index
            raw_min: Lower bound of the rescale range
            raw_max: Upper bound of the rescale range
            nodata: Nodata sentinel declared on the output

        Returns:
            Argument list (without source and destination paths)
        """
        return [
            cls.OUTPUT_FORMAT, AsciiGridFormat.DRIVER,
            cls.BAND, str(band),
            cls.SCALE, str(raw_min), str(raw_max), str(raw_min), str(raw_max),
            cls.ASSIGN_NODATA, str(nodata),
        ]


class AsciiGridFormat:
    """Arc/Info ASCII grid (AAIGrid) output constants."""

    DRIVER = "AAIGrid"
    EXTENSION = ".asc"

    # Side-car files GDAL writes next to the grid
    PROJECTION_EXTENSION = ".prj"
    AUX_SUFFIX = ".aux.xml"

    HEADER_KEYS = (
        "ncols",
        "nrows",
        "xllcorner",
        "yllcorner",
        "xllcenter",
        "yllcenter",
        "cellsize",
        "dx",
        "dy",
        "nodata_value",
    )
