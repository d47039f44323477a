"""
Tests for the GDAL command-line client.

These run real child processes against fake gdalinfo/gdal_translate shell
scripts (see the gdal_bin_dir fixture), covering spawning, exit codes,
timeouts and temporary grid cleanup end to end.
"""
import asyncio
import os
import stat

import pytest

from aod_service.infrastructure.gdal_client import (
    GDALClient,
    GDALExecutionError,
    GDALTimeoutError,
    GDALUnavailableError,
    get_gdal_client,
)
from aod_service.services.application.batch_processor import DirectoryBatchProcessor
from aod_service.services.domain.aod_aggregator import AODFileReader
from aod_service.services.domain.pixel_grid_extractor import (
    ExtractionConfig,
    PixelGridExtractor,
)


def write_script(path, body: str) -> str:
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(path)


def make_processor(client):
    return DirectoryBatchProcessor(
        client=client,
        aod_reader=AODFileReader(client),
        pixel_extractor=PixelGridExtractor(client, config=ExtractionConfig(), registry={}),
        batch_size=2,
    )


# ============================================================
# Invocation Tests
# ============================================================

class TestGDALClientInvocation:
    """Tests for running GDAL executables."""

    @pytest.mark.asyncio
    async def test_probe_version(self, gdal_bin_dir):
        client = GDALClient(gdal_bin_dir=gdal_bin_dir, timeout=10)

        version = await client.probe_version()

        assert version == "GDAL 3.8.4, released 2024/02/08"

    @pytest.mark.asyncio
    async def test_gdalinfo_stats(self, gdal_bin_dir):
        client = GDALClient(gdal_bin_dir=gdal_bin_dir, timeout=10)

        output = await client.gdalinfo("/data/a.tif", stats=True)

        assert "STATISTICS_MEAN=10.0" in output
        assert "Band 1 Block=" in output

    @pytest.mark.asyncio
    async def test_gdalinfo_plain(self, gdal_bin_dir):
        client = GDALClient(gdal_bin_dir=gdal_bin_dir, timeout=10)

        output = await client.gdalinfo("/data/a.tif")

        assert output.startswith("Driver: GTiff/GeoTIFF")
        assert "STATISTICS_MEAN" not in output

    @pytest.mark.asyncio
    async def test_missing_executables(self, tmp_path):
        client = GDALClient(gdal_bin_dir=str(tmp_path / "no-gdal-here"), timeout=10)

        with pytest.raises(GDALUnavailableError):
            await client.probe_version()

        with pytest.raises(GDALUnavailableError):
            await client.gdalinfo("/data/a.tif")

    @pytest.mark.asyncio
    async def test_non_executable_file(self, tmp_path):
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir()
        (bin_dir / "gdalinfo").write_text("#!/bin/sh\necho hi\n")
        (bin_dir / "gdalinfo").chmod(0o644)
        client = GDALClient(gdal_bin_dir=str(bin_dir), timeout=10)

        with pytest.raises(GDALUnavailableError):
            await client.gdalinfo("/data/a.tif")

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, tmp_path):
        script = write_script(tmp_path / "failing", 'echo "ERROR 1: boom" >&2\nexit 3\n')
        client = GDALClient(gdal_bin_dir=str(tmp_path), timeout=10)

        with pytest.raises(GDALExecutionError) as exc_info:
            await client.run(script, [])

        assert exc_info.value.returncode == 3
        assert exc_info.value.stderr == "ERROR 1: boom"
        assert "code 3" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_probe_reports_unusable_tool_as_unavailable(self, tmp_path):
        write_script(tmp_path / "gdalinfo", "exit 127\n")
        write_script(tmp_path / "gdal_translate", "exit 127\n")
        client = GDALClient(gdal_bin_dir=str(tmp_path), timeout=10)

        with pytest.raises(GDALUnavailableError):
            await client.probe_version()

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, tmp_path):
        script = write_script(tmp_path / "slow", "exec sleep 5\n")
        client = GDALClient(gdal_bin_dir=str(tmp_path), timeout=0.2)

        with pytest.raises(GDALTimeoutError) as exc_info:
            await client.run(script, [])

        assert exc_info.value.returncode is None
        assert "timed out" in exc_info.value.stderr

    @pytest.mark.asyncio
    async def test_timeout_when_process_already_gone(self, tmp_path, monkeypatch):
        """A child that exits just before the kill still reports a timeout."""
        script = write_script(tmp_path / "slow", "exec sleep 5\n")
        client = GDALClient(gdal_bin_dir=str(tmp_path), timeout=0.2)
        real_kill = asyncio.subprocess.Process.kill

        def kill_after_exit(process):
            real_kill(process)
            raise ProcessLookupError()

        monkeypatch.setattr(asyncio.subprocess.Process, "kill", kill_after_exit)

        with pytest.raises(GDALTimeoutError):
            await client.run(script, [])

    def test_singleton(self):
        assert get_gdal_client() is get_gdal_client()


# ============================================================
# Temporary Grid Tests
# ============================================================

class TestTranslateBandToGrid:
    """Tests for ASCII grid translation and temporary file cleanup."""

    @pytest.mark.asyncio
    async def test_grid_text_and_cleanup(self, gdal_bin_dir, make_data_dir):
        directory = make_data_dir(["MCD19A2.A2025060.tif"])
        client = GDALClient(gdal_bin_dir=gdal_bin_dir, timeout=10)

        async with client.translate_band_to_grid(f"{directory}/MCD19A2.A2025060.tif") as text:
            assert text.startswith("ncols")
            # grid and projection side-car exist while the context is open
            leftovers = sorted(os.listdir(directory))
            assert any(name.endswith(".asc") for name in leftovers)
            assert any(name.endswith(".prj") for name in leftovers)

        assert os.listdir(directory) == ["MCD19A2.A2025060.tif"]

    @pytest.mark.asyncio
    async def test_cleanup_after_failed_translation(self, gdal_bin_dir, make_data_dir):
        directory = make_data_dir(["MCD19A2.A2025060.bad.tif"])
        client = GDALClient(gdal_bin_dir=gdal_bin_dir, timeout=10)

        with pytest.raises(GDALExecutionError) as exc_info:
            async with client.translate_band_to_grid(f"{directory}/MCD19A2.A2025060.bad.tif"):
                pass

        assert exc_info.value.returncode == 1
        assert "not recognized" in exc_info.value.stderr
        assert os.listdir(directory) == ["MCD19A2.A2025060.bad.tif"]

    @pytest.mark.asyncio
    async def test_cleanup_when_body_raises(self, gdal_bin_dir, make_data_dir):
        directory = make_data_dir(["a.tif"])
        client = GDALClient(gdal_bin_dir=gdal_bin_dir, timeout=10)

        with pytest.raises(RuntimeError):
            async with client.translate_band_to_grid(f"{directory}/a.tif"):
                raise RuntimeError("parse failed")

        assert os.listdir(directory) == ["a.tif"]


# ============================================================
# End-to-End Directory Tests
# ============================================================

class TestDirectoryProcessingWithProcesses:
    """Directory processing against real child processes."""

    @pytest.mark.asyncio
    async def test_three_files_with_one_full_band(self, gdal_bin_dir, make_data_dir):
        """Three files, one band each at validPercent=100, mean=10, scale=0.001."""
        names = [
            "MCD19A2.A2025059.h12v04.061.tif",
            "MCD19A2.A2025060.h12v04.061.tif",
            "MCD19A2.A2025061.h12v04.061.tif",
        ]
        directory = make_data_dir(list(reversed(names)))
        processor = make_processor(GDALClient(gdal_bin_dir=gdal_bin_dir, timeout=10))

        batch = await processor.process_aod_directory(directory)

        assert batch.success is True
        assert batch.total_files == 3
        assert batch.valid_files == 3
        assert [r.filename for r in batch.data] == names
        assert [r.aod for r in batch.data] == pytest.approx([0.01, 0.01, 0.01])

    @pytest.mark.asyncio
    async def test_failed_translation_is_reported(self, gdal_bin_dir, make_data_dir):
        """A file gdal_translate rejects yields no pixels and its stderr as error."""
        names = [
            "MCD19A2.A2025059.tif",
            "MCD19A2.A2025060.bad.tif",
            "MCD19A2.A2025061.tif",
        ]
        directory = make_data_dir(names)
        processor = make_processor(GDALClient(gdal_bin_dir=gdal_bin_dir, timeout=10))

        batch = await processor.process_pixel_directory(directory)

        assert batch.valid_files == 2
        assert batch.error_files == 1
        failed = batch.errors[0]
        assert failed.filename == "MCD19A2.A2025060.bad.tif"
        assert failed.success is False
        assert failed.pixels == []
        assert failed.error == "ERROR 4: not recognized as a supported file format."
        assert sorted(os.listdir(directory)) == sorted(names)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
