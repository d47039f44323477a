"""
Application service: Directory-level batch processing of dated GeoTIFFs.
"""
import asyncio
import logging
import os
from typing import Awaitable, Callable, Optional, Type

from aod_service.config import settings
from aod_service.domain.models import (
    BatchResult,
    FileAODResult,
    PixelGridResult,
    RasterFile,
    ResultT,
)
from aod_service.infrastructure.gdal_client import GDALClient
from aod_service.services.domain.aod_aggregator import AODFileReader
from aod_service.services.domain.pixel_grid_extractor import PixelGridExtractor

logger = logging.getLogger(__name__)

RASTER_SUFFIX = ".tif"


class DataDirectoryError(Exception):
    """The data directory is missing, unreadable or holds no rasters."""
    pass


class DirectoryBatchProcessor:
    """
    Application service processing every GeoTIFF of a directory.

    Files are discovered in lexical order (filenames embed zero-padded
    dates, so this is chronological order), split into fixed-size batches,
    and processed concurrently within a batch. Batches run one after the
    other so at most ``batch_size`` GDAL processes run at once.
    """

    def __init__(
        self,
        client: GDALClient,
        aod_reader: AODFileReader,
        pixel_extractor: PixelGridExtractor,
        batch_size: Optional[int] = None,
        error_sample_size: Optional[int] = None,
    ):
        """
        Initialize the processor with dependencies.

        Args:
            client: GDAL client, probed before every run
            aod_reader: File-level AOD reader
            pixel_extractor: Pixel grid extractor
            batch_size: Files processed concurrently (defaults to settings)
            error_sample_size: Failed results kept for diagnostics (defaults to settings)
        """
        self.client = client
        self.aod_reader = aod_reader
        self.pixel_extractor = pixel_extractor
        self.batch_size = max(1, batch_size or settings.batch_size)
        self.error_sample_size = (
            error_sample_size if error_sample_size is not None
            else settings.batch_error_sample_size
        )

    async def discover(self, directory: str) -> list[RasterFile]:
        """
        List the rasters of a directory in lexical (chronological) order.

        Args:
            directory: Directory path

        Returns:
            RasterFile per ``.tif`` file

        Raises:
            DataDirectoryError: If the directory cannot be listed or holds no rasters
        """
        try:
            names = await asyncio.to_thread(os.listdir, directory)
        except OSError as e:
            raise DataDirectoryError(f"Cannot read data directory {directory}: {e}")

        tif_names = sorted(name for name in names if name.endswith(RASTER_SUFFIX))
        if not tif_names:
            raise DataDirectoryError(f"No TIF files found in directory {directory}")

        return [RasterFile.from_path(os.path.join(directory, name)) for name in tif_names]

    async def process_aod_directory(self, directory: str) -> BatchResult[FileAODResult]:
        """
        Compute the file-level AOD of every raster in a directory.

        Args:
            directory: Directory path

        Returns:
            BatchResult of FileAODResult, data in chronological order

        Raises:
            GDALUnavailableError: If the GDAL tools cannot be invoked
            DataDirectoryError: If the directory is unusable
        """
        return await self._process(
            directory,
            lambda raster: self.aod_reader.extract(raster.path),
            FileAODResult,
        )

    async def process_pixel_directory(
        self,
        directory: str,
        region: Optional[str] = None,
    ) -> BatchResult[PixelGridResult]:
        """
        Extract geo-referenced pixels from every raster in a directory.

        Args:
            directory: Directory path
            region: Region used for the fallback geotransform

        Returns:
            BatchResult of PixelGridResult, data in chronological order

        Raises:
            GDALUnavailableError: If the GDAL tools cannot be invoked
            DataDirectoryError: If the directory is unusable
        """
        return await self._process(
            directory,
            lambda raster: self.pixel_extractor.extract(raster.path, region=region),
            PixelGridResult,
        )

    async def process_files(
        self,
        rasters: list[RasterFile],
        extract: Callable[[RasterFile], Awaitable[ResultT]],
    ) -> list[ResultT]:
        """
        Run an extraction over rasters in sequential batches.

        Results are returned in the order of ``rasters``, not in completion
        order.

        Args:
            rasters: Files to process
            extract: Per-file coroutine factory

        Returns:
            One result per raster, in input order
        """
        results: list[ResultT] = []
        total = len(rasters)

        for start in range(0, total, self.batch_size):
            batch = rasters[start:start + self.batch_size]
            # gather returns results positionally, whatever the completion order
            batch_results = await asyncio.gather(*(extract(raster) for raster in batch))

            for raster, result in zip(batch, batch_results):
                result.attach_acquisition(raster)
                if result.filename is None:
                    result.filename = raster.filename
                results.append(result)

            logger.info(f"Processed {min(start + self.batch_size, total)}/{total} files")

        return results

    async def _process(
        self,
        directory: str,
        extract: Callable[[RasterFile], Awaitable[ResultT]],
        result_type: Type[ResultT],
    ) -> BatchResult:
        await self.client.probe_version()
        rasters = await self.discover(directory)
        logger.info(f"Processing {len(rasters)} GeoTIFF files from {directory}")

        results = await self.process_files(rasters, extract)

        valid = [r for r in results if r.succeeded]
        errors = [r for r in results if not r.succeeded]
        logger.info(f"Successfully processed {len(valid)} files, {len(errors)} errors")
        if not valid:
            logger.warning(f"No valid results in {directory}")

        return BatchResult[result_type](
            success=bool(valid),
            total_files=len(rasters),
            valid_files=len(valid),
            error_files=len(errors),
            data=valid,
            errors=errors[:self.error_sample_size],
        )
