# Time-of-day traffic prediction and the catalog of known congestion hotspots.

import math
import os
import re
from datetime import datetime
from typing import Callable, Iterable, Iterator
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

from api_adapters import CongestionSource
from api_structures import (
    BoundingBox,
    CongestionPoint,
    CongestionReport,
    Coordinates,
    Severity,
    TrafficPrediction,
)

load_dotenv()
JOURNEY_TZ_NAME = os.getenv("JOURNEY_TZ", "Europe/London")

# Multipliers above this turn every hotspot in range into a high severity advisory.
ESCALATION_THRESHOLD = 1.3

_LEADING_NUMBER = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

RUSH_HOUR = TrafficPrediction(multiplier=1.5, severity=Severity.HIGH, description="Rush hour traffic expected")
MODERATE = TrafficPrediction(multiplier=1.2, severity=Severity.MEDIUM, description="Moderate traffic expected")
LIGHT = TrafficPrediction(multiplier=1.0, severity=Severity.LOW, description="Light traffic expected")

# Common congestion points along major routes.
KNOWN_CONGESTION_POINTS = (
    CongestionPoint(
        id="M25-J10",
        description="M25 Junction 10 (A3 Interchange) - Common congestion point",
        severity=Severity.MEDIUM,
        coordinates=Coordinates(lat=51.3183, lon=-0.4343),
    ),
    CongestionPoint(
        id="M25-J15",
        description="M25 Junction 15 (M4 Interchange) - Regular delays",
        severity=Severity.MEDIUM,
        coordinates=Coordinates(lat=51.4972, lon=-0.5594),
    ),
    CongestionPoint(
        id="M25-J21",
        description="M25 Junction 21 (M1 Interchange) - Heavy traffic area",
        severity=Severity.HIGH,
        coordinates=Coordinates(lat=51.6767, lon=-0.3854),
    ),
)


def local_now() -> datetime:
    """Current wall-clock time in the journey timezone."""
    return datetime.now(ZoneInfo(JOURNEY_TZ_NAME))


def predict_traffic(hour: int, is_weekend: bool) -> TrafficPrediction:
    """Predicts how congested the roads are for a given hour of the day.

    Weekday rush hours (07-09 and 16-18) are checked before the moderate bands
    (10-15 and 19-21) so every hour matches exactly one band. Weekends are
    always light.
    """
    if not 0 <= hour <= 23:
        raise ValueError(f"Hour must be between 0 and 23, got {hour}")
    if not is_weekend:
        if 7 <= hour <= 9 or 16 <= hour <= 18:
            return RUSH_HOUR
        if 10 <= hour <= 15 or 19 <= hour <= 21:
            return MODERATE
    return LIGHT


def predict_traffic_at(moment: datetime) -> TrafficPrediction:
    # Saturday is 5, Sunday is 6.
    return predict_traffic(moment.hour, moment.weekday() >= 5)


def parse_bound(raw: str | None) -> float:
    """Reads one bounding-box query parameter, treating anything unusable as 0.

    Like a browser's parseFloat, the leading number is used and any trailing
    text is ignored, so "51.5abc" reads as 51.5.
    """
    if raw is None:
        return 0.0
    match = _LEADING_NUMBER.match(raw)
    if match is None:
        return 0.0
    value = float(match.group(0))
    return value if math.isfinite(value) else 0.0


def bounding_box_from_params(min_lat: str | None, max_lat: str | None,
                             min_lon: str | None, max_lon: str | None) -> BoundingBox:
    return BoundingBox(
        min_lat=parse_bound(min_lat),
        max_lat=parse_bound(max_lat),
        min_lon=parse_bound(min_lon),
        max_lon=parse_bound(max_lon),
    )


class CongestionCatalog:
    """An immutable, ordered collection of congestion hotspots."""

    def __init__(self, points: Iterable[CongestionPoint] = KNOWN_CONGESTION_POINTS):
        self._points = tuple(points)
        ids = [point.id for point in self._points]
        if len(ids) != len(set(ids)):
            raise ValueError("Congestion point ids must be unique")

    def __iter__(self) -> Iterator[CongestionPoint]:
        return iter(self._points)

    def __len__(self) -> int:
        return len(self._points)


class CongestionQueryService:
    def __init__(self, catalog: CongestionCatalog | None = None):
        self.catalog = catalog if catalog is not None else CongestionCatalog()

    def query_relevant(self, box: BoundingBox, prediction: TrafficPrediction) -> list[CongestionPoint]:
        """Returns the hotspots inside the box, in catalog order, with the prediction overlaid."""
        relevant = []
        for point in self.catalog:
            if not box.contains(point.coordinates):
                continue
            severity = point.severity
            if prediction.multiplier > ESCALATION_THRESHOLD:
                severity = severity.escalate(Severity.HIGH)
            relevant.append(CongestionPoint(
                id=point.id,
                description=f"{point.description}. {prediction.description}",
                severity=severity,
                coordinates=point.coordinates,
            ))
        return relevant


class LocalCongestionSource(CongestionSource):
    """Answers congestion lookups in-process from the catalog and the heuristic."""

    def __init__(self, query_service: CongestionQueryService | None = None,
                 clock: Callable[[], datetime] = local_now):
        self.query_service = query_service or CongestionQueryService()
        self.clock = clock

    def current_prediction(self) -> TrafficPrediction:
        return predict_traffic_at(self.clock())

    def lookup(self, box: BoundingBox) -> CongestionReport:
        prediction = self.current_prediction()
        return CongestionReport(events=self.query_service.query_relevant(box, prediction), prediction=prediction)
