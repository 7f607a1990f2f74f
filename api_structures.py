# Defines the standardized, internal data structures for the journey estimator.

from dataclasses import dataclass, field
from enum import Enum


class Severity(str, Enum):
    """How bad congestion is at a location. Ordered low < medium < high."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def escalate(self, other: "Severity") -> "Severity":
        """Returns whichever of the two severities is worse."""
        return other if other.rank > self.rank else self


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2}


class TravelMode(str, Enum):
    CAR = "car"
    TRUCK = "truck"
    BICYCLE = "bicycle"
    FOOT = "foot"

    @property
    def profile(self) -> "ModeProfile":
        return MODE_PROFILES[self]

    @property
    def is_motorized(self) -> bool:
        return MODE_PROFILES[self].uses_traffic


@dataclass(frozen=True)
class Coordinates:
    """A standardized representation of geographic coordinates."""
    lat: float
    lon: float

    def __post_init__(self):
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.lat}")
        if not -180.0 <= self.lon <= 180.0:
            raise ValueError(f"Longitude out of range: {self.lon}")


@dataclass(frozen=True)
class GeocodedLocation:
    """A candidate location returned by a geocoding service."""
    display_name: str
    coordinates: Coordinates
    place_type: str


@dataclass(frozen=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @classmethod
    def from_points(cls, a: Coordinates, b: Coordinates) -> "BoundingBox":
        """Builds the smallest box spanning both points. Argument order does not matter."""
        return cls(
            min_lat=min(a.lat, b.lat),
            max_lat=max(a.lat, b.lat),
            min_lon=min(a.lon, b.lon),
            max_lon=max(a.lon, b.lon),
        )

    def contains(self, point: Coordinates) -> bool:
        # Bounds are inclusive on both axes.
        return (self.min_lat <= point.lat <= self.max_lat
                and self.min_lon <= point.lon <= self.max_lon)


@dataclass(frozen=True)
class CongestionPoint:
    """A known congestion hotspot, optionally with live conditions overlaid."""
    id: str
    description: str
    severity: Severity
    coordinates: Coordinates


@dataclass(frozen=True)
class TrafficPrediction:
    multiplier: float
    severity: Severity
    description: str


@dataclass(frozen=True)
class ModeProfile:
    """How a travel mode is routed and timed."""
    provider_profile: str
    verb: str
    uses_traffic: bool
    speed_mph: float | None = None


MODE_PROFILES: dict[TravelMode, ModeProfile] = {
    TravelMode.CAR: ModeProfile(provider_profile="driving", verb="driving", uses_traffic=True),
    TravelMode.TRUCK: ModeProfile(provider_profile="driving-hgv", verb="HGV driving", uses_traffic=True),
    TravelMode.BICYCLE: ModeProfile(provider_profile="cycling", verb="cycling", uses_traffic=False, speed_mph=12.0),
    TravelMode.FOOT: ModeProfile(provider_profile="walking", verb="walking", uses_traffic=False, speed_mph=3.1),
}


@dataclass
class RouteInfo:
    """A standardized representation of a route's distance and travel time."""
    distance_miles: float
    # Only populated for motorized modes.
    duration_sec: float | None = None
    geometry: dict | None = None


@dataclass
class JourneyEstimate:
    mode: TravelMode
    hours: int
    minutes: int
    distance_miles: float
    narrative: str
    prediction: TrafficPrediction
    advisories: list[CongestionPoint] = field(default_factory=list)


@dataclass
class CongestionReport:
    """Advisory hotspots inside a route's bounding box plus the prediction overlaid on them."""
    events: list[CongestionPoint]
    prediction: TrafficPrediction
