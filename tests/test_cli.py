"""Tests for the journey_estimator command line.

input() and every collaborator are patched: no prompts block and no request
leaves the process.
"""

from unittest.mock import patch

from api_adapters import GeocodeProvider, NoRouteFound
from api_structures import Coordinates, GeocodedLocation, RouteInfo
from journey_estimator import main
from traffic_model import LocalCongestionSource

from conftest import WEEKDAY_NIGHT, WEEKDAY_RUSH, FakeRouteProvider, fixed_clock

PLACES = {
    "Guildford": GeocodedLocation("Guildford, Surrey, England, United Kingdom",
                                  Coordinates(lat=51.2362, lon=-0.5704), "town"),
    "St Albans": GeocodedLocation("St Albans, Hertfordshire, England, United Kingdom",
                                  Coordinates(lat=51.7520, lon=-0.3360), "city"),
    "London": GeocodedLocation("London, Greater London, England, United Kingdom",
                               Coordinates(lat=51.5074, lon=-0.1278), "city"),
    "Birmingham": GeocodedLocation("Birmingham, West Midlands, England, United Kingdom",
                                   Coordinates(lat=52.4862, lon=-1.8904), "city"),
}


class FakeGeocoder(GeocodeProvider):
    def __init__(self, places=None):
        self.places = PLACES if places is None else places
        self.queries = []

    def search(self, query):
        self.queries.append(query)
        return [self.places[query]] if query in self.places else []


def run_cli(argv, answers, route_provider=None, moment=WEEKDAY_RUSH, geocoder=None):
    geocoder = geocoder or FakeGeocoder()
    route_provider = route_provider or FakeRouteProvider()
    source = LocalCongestionSource(clock=fixed_clock(moment))
    with (
        patch("builtins.input", side_effect=answers),
        patch("journey_estimator.NominatimAdapter", return_value=geocoder),
        patch("journey_estimator.OsrmAdapter", return_value=route_provider),
        patch("journey_estimator.LocalCongestionSource", return_value=source),
    ):
        return main(argv)


def test_car_journey_prints_estimate_and_advisories(capsys):
    exit_code = run_cli([], ["Guildford", "St Albans"])
    out = capsys.readouterr().out
    assert exit_code == 0
    assert "Estimated driving time: 1h 30min (10 miles) - Including rush hour traffic expected" in out
    assert "Traffic advisories along your route:" in out
    assert "[HIGH  ] M25 Junction 10 (A3 Interchange) - Common congestion point. Rush hour traffic expected" in out
    assert "M25 Junction 21" in out


def test_blank_answers_use_default_places(capsys):
    geocoder = FakeGeocoder()
    exit_code = run_cli([], ["", ""], moment=WEEKDAY_NIGHT, geocoder=geocoder)
    out = capsys.readouterr().out
    assert exit_code == 0
    assert geocoder.queries == ["London", "Birmingham"]
    assert "Estimated driving time: 1h 0min (10 miles)" in out
    assert "[HIGH  ] M25 Junction 21 (M1 Interchange) - Heavy traffic area. Light traffic expected" in out
    assert "M25 Junction 10" not in out


def test_mode_flag_selects_travel_mode(capsys):
    provider = FakeRouteProvider(RouteInfo(distance_miles=6.2))
    exit_code = run_cli(["--mode", "bicycle"], ["Guildford", "St Albans"], route_provider=provider)
    assert exit_code == 0
    assert "Estimated cycling time: 31min (6.2 miles)" in capsys.readouterr().out
    assert provider.calls[0][2].value == "bicycle"


def test_walking_too_far_prints_remediation(capsys):
    provider = FakeRouteProvider(RouteInfo(distance_miles=30.0))
    exit_code = run_cli(["-m", "foot"], ["Guildford", "St Albans"], route_provider=provider)
    assert exit_code == 1
    assert "This distance is too far to walk. Try cycling or driving instead." in capsys.readouterr().out


def test_route_failure_prints_generic_message(capsys):
    provider = FakeRouteProvider(error=NoRouteFound("none"))
    exit_code = run_cli([], ["Guildford", "St Albans"], route_provider=provider)
    assert exit_code == 1
    assert "Error calculating time" in capsys.readouterr().out


def test_unknown_place_stops_before_estimating(capsys):
    provider = FakeRouteProvider()
    exit_code = run_cli([], ["Atlantis", "St Albans"], route_provider=provider)
    out = capsys.readouterr().out
    assert exit_code == 1
    assert "Could not find a location in Great Britain for: Atlantis" in out
    assert "Could not proceed without valid locations" in out
    assert provider.calls == []


def test_invalid_timezone_is_fatal(capsys):
    with (
        patch("journey_estimator.JOURNEY_TZ_NAME", "Mars/Olympus_Mons"),
        patch("journey_estimator.NominatimAdapter") as geocoder_cls,
        patch("builtins.input") as prompt,
    ):
        exit_code = main([])
    assert exit_code == 1
    assert "FATAL ERROR: The timezone 'Mars/Olympus_Mons'" in capsys.readouterr().out
    geocoder_cls.assert_not_called()
    prompt.assert_not_called()


def test_remote_congestion_flag_uses_http_client(capsys):
    remote = LocalCongestionSource(clock=fixed_clock(WEEKDAY_NIGHT))
    with (
        patch("builtins.input", side_effect=["Guildford", "St Albans"]),
        patch("journey_estimator.NominatimAdapter", return_value=FakeGeocoder()),
        patch("journey_estimator.OsrmAdapter", return_value=FakeRouteProvider()),
        patch("journey_estimator.HttpCongestionClient", return_value=remote) as client_cls,
    ):
        exit_code = main(["--remote-congestion"])
    assert exit_code == 0
    client_cls.assert_called_once_with()
    assert "Estimated driving time: 1h 0min (10 miles)" in capsys.readouterr().out
