"""
Unit tests for file-level AOD aggregation.
"""
import pytest

from aod_service.domain.models import BandStatistics
from aod_service.infrastructure.gdal_client import (
    GDALExecutionError,
    GDALUnavailableError,
)
from aod_service.services.domain.aod_aggregator import (
    NO_VALID_BANDS,
    AODFileReader,
    aggregate_bands,
    select_valid_bands,
    weighted_aod,
)
from gdal_fakes import band_block, stats_report


def make_band(band=1, mean=100.0, valid_percent=100.0, scale=0.001, offset=0.0, has_valid_data=True):
    return BandStatistics(
        band=band,
        has_valid_data=has_valid_data,
        mean=mean if has_valid_data else None,
        valid_percent=valid_percent,
        scale=scale,
        offset=offset,
    )


# ============================================================
# Aggregation Tests
# ============================================================

class TestAggregateBands:
    """Tests for the weighted band aggregation."""

    def test_scaled_mean(self):
        """Band mean should be converted with scale and offset."""
        band = make_band(mean=250.0, scale=0.001, offset=0.05)

        assert band.scaled_mean == pytest.approx(0.3)

    def test_single_band(self):
        """One full band: aod equals its scaled mean."""
        result = aggregate_bands([make_band(mean=10.0)], filename="a.tif")

        assert result.has_valid_data is True
        assert result.aod == pytest.approx(0.01)
        assert result.valid_bands == 1
        assert result.total_bands == 1
        assert result.error is None

    def test_weighted_by_valid_percent(self):
        """Sparse bands should weigh less than nearly complete ones."""
        bands = [
            make_band(band=1, mean=200.0, valid_percent=50.0),
            make_band(band=2, mean=400.0, valid_percent=25.0),
        ]

        # (0.2 * 0.5 + 0.4 * 0.25) / 0.75
        assert weighted_aod(bands) == pytest.approx(0.2 / 0.75)

    def test_invalid_bands_are_excluded(self):
        """Bands without statistics or with zero coverage should not count."""
        bands = [
            make_band(band=1, mean=200.0, valid_percent=40.0),
            make_band(band=2, has_valid_data=False, valid_percent=90.0),
            make_band(band=3, mean=900.0, valid_percent=0.0),
        ]

        assert [b.band for b in select_valid_bands(bands)] == [1]

        result = aggregate_bands(bands)

        assert result.aod == pytest.approx(0.2)
        assert result.valid_bands == 1
        assert result.total_bands == 3

    def test_no_valid_band(self):
        """aod should be None exactly when no band qualifies."""
        bands = [make_band(has_valid_data=False), make_band(band=2, valid_percent=0.0)]

        result = aggregate_bands(bands, filename="empty.tif")

        assert result.has_valid_data is False
        assert result.aod is None
        assert result.valid_bands == 0
        assert result.total_bands == 2
        assert result.error == NO_VALID_BANDS
        assert result.succeeded is False

    def test_no_bands_at_all(self):
        result = aggregate_bands([])

        assert result.aod is None
        assert result.total_bands == 0


# ============================================================
# File Reader Tests
# ============================================================

class TestAODFileReader:
    """Tests for reading the aggregate AOD of a single file."""

    @pytest.mark.asyncio
    async def test_extract(self, fake_client, make_data_dir):
        directory = make_data_dir(["MCD19A2.A2025060.h12v04.061.tif"])
        reader = AODFileReader(fake_client)

        result = await reader.extract(f"{directory}/MCD19A2.A2025060.h12v04.061.tif")

        assert result.has_valid_data is True
        assert result.filename == "MCD19A2.A2025060.h12v04.061.tif"
        assert result.aod == pytest.approx(0.2 / 0.75)
        assert result.valid_bands == 2
        assert result.total_bands == 3

    @pytest.mark.asyncio
    async def test_missing_file_is_error_result(self, fake_client, tmp_path):
        reader = AODFileReader(fake_client)

        result = await reader.extract(str(tmp_path / "missing.tif"))

        assert result.has_valid_data is False
        assert result.aod is None
        assert "File not found" in result.error

    @pytest.mark.asyncio
    async def test_file_without_statistics(self, fake_client, make_data_dir):
        directory = make_data_dir(["nostats.tif"])
        fake_client.stats_reports["nostats.tif"] = stats_report(band_block(1))
        reader = AODFileReader(fake_client)

        result = await reader.extract(f"{directory}/nostats.tif")

        assert result.has_valid_data is False
        assert result.error == NO_VALID_BANDS
        assert result.total_bands == 1

    @pytest.mark.asyncio
    async def test_gdal_failure_is_error_result(self, fake_client, make_data_dir):
        """A failing gdalinfo run should be captured, not raised."""
        directory = make_data_dir(["broken.tif"])

        async def failing_gdalinfo(path, stats=False):
            raise GDALExecutionError(1, "ERROR 4: not recognized as a supported file format.")

        fake_client.gdalinfo = failing_gdalinfo
        reader = AODFileReader(fake_client)

        result = await reader.extract(f"{directory}/broken.tif")

        assert result.has_valid_data is False
        assert "not recognized" in result.error

    @pytest.mark.asyncio
    async def test_unavailable_gdal_propagates(self, fake_client, make_data_dir):
        directory = make_data_dir(["a.tif"])

        async def unavailable(path, stats=False):
            raise GDALUnavailableError("gdalinfo not found")

        fake_client.gdalinfo = unavailable
        reader = AODFileReader(fake_client)

        with pytest.raises(GDALUnavailableError):
            await reader.extract(f"{directory}/a.tif")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
