"""
Unit tests for AQI conversion, daily series and the city zone registry.
"""
import pytest

from aod_service.domain.models import (
    BandStatistics,
    BatchResult,
    FileAODResult,
    Hotspot,
)
from aod_service.domain.regions import CITYWIDE, get_city_area
from aod_service.services.domain.air_quality import (
    aod_to_aqi,
    aod_to_pm25,
    aqi_color,
    aqi_level,
    build_daily_series,
    round_half_up,
    summarize_daily,
    summarize_hotspots,
)


def make_file_result(aod, date, filename=None):
    return FileAODResult(
        has_valid_data=aod is not None,
        aod=aod,
        bands=[
            BandStatistics(band=1, has_valid_data=True, mean=(aod or 0) * 1000,
                           valid_percent=80.0, scale=0.001),
            BandStatistics(band=2),
        ],
        valid_bands=1,
        total_bands=2,
        date=date,
        filename=filename or f"{date}.tif",
    )


# ============================================================
# AQI Conversion Tests
# ============================================================

class TestAodToAqi:
    """Tests for the EPA PM2.5 breakpoint conversion."""

    def test_pm25_factor(self):
        assert aod_to_pm25(0.2) == pytest.approx(7.0)

    @pytest.mark.parametrize("aod,expected", [
        (0.0, 0),
        (0.1, 15),
        (0.2, 29),
        (1.0, 99),
    ])
    def test_breakpoints(self, aod, expected):
        assert aod_to_aqi(aod) == expected

    def test_missing_or_negative(self):
        assert aod_to_aqi(None) is None
        assert aod_to_aqi(-0.1) is None

    def test_concentration_between_ranges_uses_last_breakpoint(self):
        # pm25 = 12.05 falls between the Good and Moderate ranges
        assert aod_to_aqi(12.05 / 35) == 111

    def test_clamped_to_500(self):
        assert aod_to_aqi(20.0) == 500

    @pytest.mark.parametrize("aqi,level,color", [
        (29, "Good", "#00E400"),
        (51, "Moderate", "#FFFF00"),
        (101, "Unhealthy for Sensitive Groups", "#FF7E00"),
        (250, "Very Unhealthy", "#8F3F97"),
        (600, "Hazardous", "#7E0023"),
    ])
    def test_level_and_color(self, aqi, level, color):
        assert aqi_level(aqi) == level
        assert aqi_color(aqi) == color


# ============================================================
# Daily Series Tests
# ============================================================

class TestDailySeries:
    """Tests for building and summarizing the daily series."""

    def test_sorted_by_date(self):
        results = [
            make_file_result(0.1, "2025-03-03"),
            make_file_result(0.2, "2025-03-01"),
            make_file_result(1.0, "2025-03-02"),
        ]

        daily = build_daily_series(results)

        assert [d.date for d in daily] == ["2025-03-01", "2025-03-02", "2025-03-03"]
        assert [d.aqi for d in daily] == [29, 99, 15]
        assert daily[0].aqi_level == "Good"

    def test_band_summaries_only_for_valid_bands(self):
        daily = build_daily_series([make_file_result(0.25, "2025-03-01")])

        assert len(daily[0].bands_info) == 1
        assert daily[0].bands_info[0].band == 1
        assert daily[0].bands_info[0].mean == pytest.approx(0.25)
        assert daily[0].valid_bands == 1
        assert daily[0].total_bands == 2

    def test_results_without_aod_are_dropped(self):
        daily = build_daily_series([
            make_file_result(None, "2025-03-01"),
            make_file_result(0.2, "2025-03-02"),
        ])

        assert [d.date for d in daily] == ["2025-03-02"]

    def test_summary(self):
        daily = build_daily_series([
            make_file_result(0.1, "2025-03-03"),
            make_file_result(0.2, "2025-03-01"),
            make_file_result(1.0, "2025-03-02"),
        ])
        batch = BatchResult[FileAODResult](
            success=True, total_files=4, valid_files=3, error_files=1,
        )

        summary = summarize_daily(daily, batch, recent_days=2)

        assert summary.average_aqi == 48
        assert summary.average_aod == pytest.approx(0.433)
        assert summary.max_aqi == 99
        assert summary.min_aqi == 15
        assert summary.recent_aqi == 57
        assert summary.total_observations == 3
        assert summary.success_rate == 75

    def test_summary_serializes_camel_case(self):
        daily = build_daily_series([make_file_result(0.2, "2025-03-01")])
        batch = BatchResult[FileAODResult](success=True, total_files=1, valid_files=1)

        data = summarize_daily(daily, batch).model_dump(by_alias=True)

        assert data["averageAqi"] == 29
        assert data["successRate"] == 100

    def test_success_rate_rounds_half_up(self):
        daily = build_daily_series([make_file_result(0.2, "2025-03-01")])
        batch = BatchResult[FileAODResult](success=True, total_files=8, valid_files=1, error_files=7)

        assert summarize_daily(daily, batch).success_rate == 13


class TestRoundHalfUp:
    """Tests for half-up integer rounding."""

    @pytest.mark.parametrize("value,expected", [
        (0.5, 1),
        (2.5, 3),
        (50.5, 51),
        (52.5, 53),
        (52.4, 52),
        (-2.5, -2),
    ])
    def test_halves_go_up(self, value, expected):
        assert round_half_up(value) == expected


class TestHotspotSummary:
    """Tests for hotspot summary statistics."""

    def test_summarize_hotspots(self):
        hotspots = [
            Hotspot(id="a-1", lat=40.8, lng=-73.8, aod=1.2, aqi=170,
                    severity="high", radius=1000, rank=1),
            Hotspot(id="b-1", lat=40.7, lng=-73.9, aod=0.4, aqi=90,
                    severity="moderate", radius=1000, rank=2),
        ]

        summary = summarize_hotspots(hotspots, processed_files=2, total_files=5)

        assert summary.total_hotspots == 2
        assert summary.max_aod == 1.2
        assert summary.min_aod == 0.4
        assert summary.avg_aod == pytest.approx(0.8)
        assert summary.max_aqi == 170
        assert summary.min_aqi == 90
        assert summary.avg_aqi == pytest.approx(130)
        assert summary.processed_files == 2
        assert summary.total_files == 5


# ============================================================
# City Zone Registry Tests
# ============================================================

class TestCityAreas:
    """Tests for the city area registry."""

    def test_citywide_has_no_bounds(self):
        area = get_city_area("nyc", CITYWIDE)

        assert area.is_citywide is True
        assert area.bounds is None

    def test_lookup_is_case_insensitive(self):
        area = get_city_area("Mumbai", "NorthEastern")

        assert area.name == "Northeastern"
        assert area.bounds.contains(19.1, 73.0)

    @pytest.mark.parametrize("city,area", [("paris", CITYWIDE), ("nyc", "downtown")])
    def test_unknown_keys_raise(self, city, area):
        with pytest.raises(KeyError):
            get_city_area(city, area)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
