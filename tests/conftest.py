"""
Shared fixtures for the journey estimator tests.

Nothing here touches the network: routing and congestion collaborators are
replaced with deterministic fakes and the clock is pinned to known moments.

Reference dates (October 2026):
  Wednesday 14th: a weekday
  Saturday 17th: a weekend day
"""

from datetime import datetime

import pytest

from api_adapters import RouteProvider
from api_structures import Coordinates, GeocodedLocation, RouteInfo
from traffic_model import LocalCongestionSource

WEEKDAY_RUSH = datetime(2026, 10, 14, 8, 0)
WEEKDAY_MIDDAY = datetime(2026, 10, 14, 12, 0)
WEEKDAY_NIGHT = datetime(2026, 10, 14, 2, 0)
SATURDAY_MORNING = datetime(2026, 10, 17, 8, 0)


class FakeRouteProvider(RouteProvider):
    """Returns a canned route, or raises a canned error, and records every call."""

    def __init__(self, route: RouteInfo | None = None, error: Exception | None = None):
        self.route = route or RouteInfo(distance_miles=10.0, duration_sec=3600.0)
        self.error = error
        self.calls = []

    def get_route(self, start_coords, end_coords, mode):
        self.calls.append((start_coords, end_coords, mode))
        if self.error is not None:
            raise self.error
        return self.route


def fixed_clock(moment: datetime):
    return lambda: moment


@pytest.fixture()
def guildford():
    return GeocodedLocation(
        display_name="Guildford, Surrey, England, United Kingdom",
        coordinates=Coordinates(lat=51.2362, lon=-0.5704),
        place_type="town",
    )


@pytest.fixture()
def st_albans():
    return GeocodedLocation(
        display_name="St Albans, Hertfordshire, England, United Kingdom",
        coordinates=Coordinates(lat=51.7520, lon=-0.3360),
        place_type="city",
    )


@pytest.fixture()
def rush_hour_source():
    return LocalCongestionSource(clock=fixed_clock(WEEKDAY_RUSH))


@pytest.fixture()
def off_peak_source():
    return LocalCongestionSource(clock=fixed_clock(WEEKDAY_NIGHT))
