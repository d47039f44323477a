"""
City zone registry.

Each city is split into named rectangular areas used to restrict hotspot
and zone-average queries. ``citywide`` carries no bounds.
"""
from typing import Optional

from aod_service.domain.models import ZoneBounds

CITYWIDE = "citywide"


class CityArea:
    """A named area of a city."""

    def __init__(self, name: str, bounds: Optional[ZoneBounds] = None):
        self.name = name
        self.bounds = bounds

    @property
    def is_citywide(self) -> bool:
        return self.bounds is None


CITY_AREAS: dict[str, dict[str, CityArea]] = {
    "nyc": {
        CITYWIDE: CityArea("Citywide Average"),
        "northeastern": CityArea(
            "Northeastern",
            ZoneBounds(north=41.0, south=40.7, west=-73.95, east=-73.6),
        ),
        "northwestern": CityArea(
            "Northwestern",
            ZoneBounds(north=41.0, south=40.7, west=-74.3, east=-73.95),
        ),
        "southeastern": CityArea(
            "Southeastern",
            ZoneBounds(north=40.7, south=40.4, west=-73.95, east=-73.6),
        ),
        "southwestern": CityArea(
            "Southwestern",
            ZoneBounds(north=40.7, south=40.4, west=-74.3, east=-73.95),
        ),
    },
    "mumbai": {
        CITYWIDE: CityArea("Citywide Average"),
        "northeastern": CityArea(
            "Northeastern",
            ZoneBounds(north=19.30, south=19.05, west=72.925, east=73.10),
        ),
        "northwestern": CityArea(
            "Northwestern",
            ZoneBounds(north=19.30, south=19.05, west=72.75, east=72.925),
        ),
        "southeastern": CityArea(
            "Southeastern",
            ZoneBounds(north=19.05, south=18.80, west=72.925, east=73.10),
        ),
        "southwestern": CityArea(
            "Southwestern",
            ZoneBounds(north=19.05, south=18.80, west=72.75, east=72.925),
        ),
    },
}


def get_city_area(city: str, area: str = CITYWIDE) -> CityArea:
    """
    Look up a city area.

    Args:
        city: City key (case-insensitive)
        area: Area key (case-insensitive)

    Returns:
        CityArea

    Raises:
        KeyError: If the city or the area is unknown
    """
    areas = CITY_AREAS[city.lower()]
    return areas[area.lower()]
