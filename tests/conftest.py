"""
Shared pytest fixtures for all tests.

This module provides common fixtures including:
- Sample gdalinfo reports and ASCII grids
- A fake in-process GDAL client
- Fake GDAL executables (shell scripts) for subprocess tests
- FastAPI test client
"""
import stat
import sys
from typing import Callable

import pytest
from fastapi.testclient import TestClient

from aod_service.main import app
from gdal_fakes import (
    FakeGDALClient,
    SAMPLE_GRID_ROWS,
    ascii_grid,
    band_block,
    plain_report,
    stats_report,
)


# ============================================================
# Sample Report Fixtures
# ============================================================

@pytest.fixture
def sample_stats_report() -> str:
    """Two valid bands and one band without statistics."""
    return stats_report(
        band_block(1, mean=200.0, valid_percent=50.0),
        band_block(2, mean=400.0, valid_percent=25.0),
        band_block(3),
    )


@pytest.fixture
def sample_plain_report() -> str:
    return plain_report(width=4, height=3)


@pytest.fixture
def sample_grid_text() -> str:
    return ascii_grid(SAMPLE_GRID_ROWS)


# ============================================================
# Fake GDAL Client
# ============================================================

@pytest.fixture
def fake_client(sample_stats_report, sample_plain_report, sample_grid_text) -> FakeGDALClient:
    return FakeGDALClient(
        stats_report=sample_stats_report,
        plain_report=sample_plain_report,
        grid_text=sample_grid_text,
    )


@pytest.fixture
def make_data_dir(tmp_path) -> Callable[..., str]:
    """Create a directory holding empty files with the given names."""
    def _make(names: list[str], subdir: str = "data") -> str:
        directory = tmp_path / subdir
        directory.mkdir(parents=True, exist_ok=True)
        for name in names:
            (directory / name).write_bytes(b"")
        return str(directory)
    return _make


# ============================================================
# Fake GDAL Executables
# ============================================================

GDALINFO_SCRIPT = """#!/bin/sh
if [ "$1" = "--version" ]; then
    echo "GDAL 3.8.4, released 2024/02/08"
    exit 0
fi
if [ "$1" = "-stats" ]; then
    cat "{stats}"
else
    cat "{plain}"
fi
"""

GDAL_TRANSLATE_SCRIPT = """#!/bin/sh
if [ "$1" = "--version" ]; then
    echo "GDAL 3.8.4, released 2024/02/08"
    exit 0
fi
case "$*" in
    *.bad.*)
        echo "ERROR 4: not recognized as a supported file format." >&2
        exit 1
        ;;
esac
for last; do :; done
cp "{grid}" "$last"
echo 'GEOGCS["WGS 84"]' > "${{last%.asc}}.prj"
exit 0
"""


def _write_executable(path, content: str) -> None:
    path.write_text(content)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


@pytest.fixture
def gdal_bin_dir(tmp_path, sample_plain_report, sample_grid_text) -> str:
    """
    Directory with fake gdalinfo/gdal_translate scripts.

    gdalinfo -stats prints one band with validPercent=100, mean=10 and
    scale=0.001. gdal_translate fails for any file whose name contains
    '.bad.' and otherwise copies the sample grid to its output path.
    """
    if sys.platform.startswith("win"):
        pytest.skip("Fake GDAL executables are POSIX shell scripts")

    fixtures = tmp_path / "fixtures"
    fixtures.mkdir()
    stats_path = fixtures / "stats.txt"
    plain_path = fixtures / "plain.txt"
    grid_path = fixtures / "grid.asc"
    stats_path.write_text(stats_report(band_block(1, mean=10.0, valid_percent=100.0)))
    plain_path.write_text(sample_plain_report)
    grid_path.write_text(sample_grid_text)

    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    _write_executable(
        bin_dir / "gdalinfo",
        GDALINFO_SCRIPT.format(stats=stats_path, plain=plain_path),
    )
    _write_executable(
        bin_dir / "gdal_translate",
        GDAL_TRANSLATE_SCRIPT.format(grid=grid_path),
    )
    return str(bin_dir)


# ============================================================
# FastAPI Test Client Fixtures
# ============================================================

@pytest.fixture
def test_client() -> TestClient:
    """Create a synchronous test client for FastAPI."""
    return TestClient(app)
