"""
Infrastructure layer: GDAL command-line client with timeout and retry logic.
"""
import asyncio
import logging
import os
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from aod_service.config import settings
from aod_service.infrastructure.gdal_constants import (
    AsciiGridFormat,
    GDALExecutables,
    GDALFlags,
)

logger = logging.getLogger(__name__)


class GDALError(Exception):
    """Base exception for GDAL invocation errors."""
    pass


class GDALUnavailableError(GDALError):
    """The GDAL executable cannot be found or invoked at all."""
    pass


class GDALSpawnError(GDALError):
    """The operating system refused to start the GDAL process."""
    pass


class GDALExecutionError(GDALError):
    """The GDAL process ran but exited with a non-zero status."""

    def __init__(self, returncode: Optional[int], stderr: str):
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"GDAL command failed (code {returncode}): {stderr}")


class GDALTimeoutError(GDALExecutionError):
    """The GDAL process did not finish within the configured timeout."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(None, f"GDAL command timed out after {timeout:g}s")


class GDALClient:
    """
    Client for the GDAL command-line tools.

    Every invocation runs as an isolated child process without a shell,
    is bounded by a timeout and retries transient spawn failures with
    exponential backoff.
    """

    def __init__(
        self,
        gdal_bin_dir: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize the client with configuration.

        Args:
            gdal_bin_dir: Directory holding the GDAL binaries (defaults to settings)
            timeout: Per-process timeout in seconds (defaults to settings)
        """
        self.gdal_bin_dir = gdal_bin_dir or settings.gdal_bin_dir
        self.timeout = timeout if timeout is not None else settings.gdal_timeout_seconds
        self.gdalinfo_exe = GDALExecutables.resolve(
            self.gdal_bin_dir, GDALExecutables.GDALINFO
        )
        self.gdal_translate_exe = GDALExecutables.resolve(
            self.gdal_bin_dir, GDALExecutables.GDAL_TRANSLATE
        )

    @retry(
        stop=stop_after_attempt(settings.max_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.retry_backoff_multiplier,
            min=settings.retry_min_wait,
            max=settings.retry_max_wait,
        ),
        retry=retry_if_exception_type(GDALSpawnError),
        reraise=True,
    )
    async def _spawn(self, executable: str, args: list[str]) -> asyncio.subprocess.Process:
        """
        Start a GDAL child process.

        Raises:
            GDALUnavailableError: If the executable is missing or not executable
            GDALSpawnError: If the process could not be started for another reason
        """
        try:
            return await asyncio.create_subprocess_exec(
                executable,
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except (FileNotFoundError, PermissionError) as e:
            raise GDALUnavailableError(f"GDAL executable not available: {executable} ({e})")
        except OSError as e:
            raise GDALSpawnError(f"Failed to execute GDAL command: {e}")

    async def run(self, executable: str, args: list[str]) -> str:
        """
        Run a GDAL executable and return its standard output.

        Args:
            executable: Path to the executable
            args: Command-line arguments (never interpreted by a shell)

        Returns:
            Decoded standard output

        Raises:
            GDALUnavailableError: If the executable cannot be invoked
            GDALExecutionError: If the process exits with a non-zero status
            GDALTimeoutError: If the process exceeds the configured timeout
        """
        logger.debug(f"Running {executable} {' '.join(args)}")
        process = await self._spawn(executable, args)

        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            try:
                process.kill()
            except ProcessLookupError:
                # exited between the timeout and the kill
                pass
            await process.wait()
            raise GDALTimeoutError(self.timeout)

        if process.returncode != 0:
            raise GDALExecutionError(
                process.returncode,
                stderr.decode(errors="replace").strip(),
            )
        return stdout.decode(errors="replace")

    async def gdalinfo(self, path: str, stats: bool = False) -> str:
        """
        Fetch the gdalinfo report for a raster.

        Args:
            path: Raster file path
            stats: Whether to ask gdalinfo to compute band statistics

        Returns:
            gdalinfo text report
        """
        args = [GDALFlags.STATS, path] if stats else [path]
        return await self.run(self.gdalinfo_exe, args)

    async def probe_version(self) -> str:
        """
        Check that both GDAL tools can be invoked.

        Returns:
            Version string reported by gdalinfo

        Raises:
            GDALUnavailableError: If either tool cannot be run
        """
        versions = []
        for executable in (self.gdalinfo_exe, self.gdal_translate_exe):
            try:
                output = await self.run(executable, [GDALFlags.VERSION])
            except GDALUnavailableError:
                raise
            except GDALError as e:
                raise GDALUnavailableError(f"GDAL executable not usable: {executable} ({e})")
            versions.append(output.strip())
        return versions[0]

    @asynccontextmanager
    async def translate_band_to_grid(
        self,
        path: str,
        band: int = 1,
    ) -> AsyncIterator[str]:
        """
        Translate one raster band to an ASCII grid and yield its text.

        The intermediate grid is written beside the source under a unique
        name and removed when the context exits, whether or not the
        translation succeeded.

        Args:
            path: Raster file path
            band: 1-based band index

        Yields:
            ASCII grid text
        """
        stem, _ = os.path.splitext(path)
        grid_path = f"{stem}.b{band}.{uuid.uuid4().hex[:8]}{AsciiGridFormat.EXTENSION}"
        args = GDALFlags.translate_to_ascii_grid(
            band=band,
            raw_min=settings.raw_min,
            raw_max=settings.raw_max,
            nodata=settings.nodata_value,
        )

        try:
            await self.run(self.gdal_translate_exe, [*args, path, grid_path])
            yield await asyncio.to_thread(_read_text, grid_path)
        finally:
            await asyncio.to_thread(_remove_grid_files, grid_path)


def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        return f.read()


def _remove_grid_files(grid_path: str) -> None:
    """Remove an ASCII grid and the side-car files GDAL writes with it."""
    stem, _ = os.path.splitext(grid_path)
    candidates = [
        grid_path,
        f"{stem}{AsciiGridFormat.PROJECTION_EXTENSION}",
        f"{grid_path}{AsciiGridFormat.AUX_SUFFIX}",
    ]

    for candidate in candidates:
        try:
            os.remove(candidate)
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning(f"Could not remove temporary file {candidate}: {e}")


# Singleton instance
_gdal_client: Optional[GDALClient] = None


def get_gdal_client() -> GDALClient:
    """
    Get or create the singleton GDAL client instance.

    Returns:
        GDALClient instance
    """
    global _gdal_client
    if _gdal_client is None:
        _gdal_client = GDALClient()
    return _gdal_client
