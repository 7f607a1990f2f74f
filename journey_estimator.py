# Main script to estimate journey times across Great Britain for different travel modes.

import argparse
import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from api_adapters import (
    CongestionSource,
    CongestionUnavailable,
    GeocodeProvider,
    HttpCongestionClient,
    JourneyError,
    NominatimAdapter,
    NoRouteFound,
    OsrmAdapter,
    RouteProvider,
    RouteUnavailable,
)
from api_structures import (
    BoundingBox,
    CongestionReport,
    GeocodedLocation,
    JourneyEstimate,
    TrafficPrediction,
    TravelMode,
)
from traffic_model import JOURNEY_TZ_NAME, LocalCongestionSource, local_now, predict_traffic_at

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "Error calculating time"
MAX_HUMAN_POWERED_HOURS = 8.0
LONG_JOURNEY_HOURS = 4.0

REMEDIATION_MESSAGES = {
    TravelMode.FOOT: "This distance is too far to walk. Try cycling or driving instead.",
    TravelMode.BICYCLE: "This distance is too far to cycle. Try driving instead.",
}


class DistanceTooFar(JourneyError):
    """The journey is too long for a human-powered mode."""

    def __init__(self, mode: TravelMode):
        self.mode = mode
        super().__init__(REMEDIATION_MESSAGES.get(
            mode, f"This distance is too far to travel by {mode.value}."))


class EstimateState(str, Enum):
    IDLE = "idle"
    COMPUTING = "computing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class EstimateOutcome:
    """What the caller renders: either an estimate or an error sentence."""
    state: EstimateState
    estimate: JourneyEstimate | None = None
    message: str = ""


# --- Formatting ---

def split_hours(hours: float) -> tuple[int, int]:
    """Splits fractional hours into whole hours and minutes rounded half up.

    A remainder that rounds to 60 minutes rolls over into the next hour.
    """
    whole = math.floor(hours)
    minutes = math.floor((hours - whole) * 60 + 0.5)
    if minutes >= 60:
        whole += 1
        minutes -= 60
    return whole, minutes


def format_narrative(mode: TravelMode, whole_hours: int, minutes: int, distance_miles: float,
                     prediction: TrafficPrediction, total_hours: float) -> str:
    profile = mode.profile
    hour_part = f"{whole_hours}h " if whole_hours else ""
    text = f"Estimated {profile.verb} time: {hour_part}{minutes}min ({distance_miles:g} miles)"
    if profile.uses_traffic:
        if prediction.multiplier > 1.0:
            text += f" - Including {prediction.description.lower()}"
    elif total_hours > LONG_JOURNEY_HOURS:
        text += " - Long journey, consider taking breaks"
    return text


# --- Core Logic ---

class JourneyEstimator:
    """Combines a routing provider with congestion advisories into one estimate."""

    def __init__(self, route_provider: RouteProvider, congestion_source: CongestionSource,
                 clock: Callable[[], datetime] = local_now):
        self.route_provider = route_provider
        self.congestion_source = congestion_source
        self.clock = clock

    async def _lookup_congestion(self, box: BoundingBox) -> CongestionReport:
        try:
            return await asyncio.to_thread(self.congestion_source.lookup, box)
        except CongestionUnavailable as e:
            # Advisories are informational; keep estimating with the local heuristic.
            logger.warning("Congestion lookup failed, using local prediction: %s", e)
            return CongestionReport(events=[], prediction=predict_traffic_at(self.clock()))

    async def estimate(self, origin: GeocodedLocation, destination: GeocodedLocation,
                       mode: TravelMode) -> JourneyEstimate:
        """Estimates the journey time, raising a JourneyError subclass on failure."""
        box = BoundingBox.from_points(origin.coordinates, destination.coordinates)
        report, route = await asyncio.gather(
            self._lookup_congestion(box),
            asyncio.to_thread(self.route_provider.get_route, origin.coordinates, destination.coordinates, mode),
        )

        profile = mode.profile
        if profile.uses_traffic:
            if route.duration_sec is None:
                raise RouteUnavailable(f"Routing provider returned no duration for {mode.value}")
            total_hours = route.duration_sec / 3600 * report.prediction.multiplier
        else:
            total_hours = route.distance_miles / profile.speed_mph
            if total_hours > MAX_HUMAN_POWERED_HOURS:
                raise DistanceTooFar(mode)

        whole_hours, minutes = split_hours(total_hours)
        return JourneyEstimate(
            mode=mode,
            hours=whole_hours,
            minutes=minutes,
            distance_miles=route.distance_miles,
            narrative=format_narrative(mode, whole_hours, minutes, route.distance_miles,
                                       report.prediction, total_hours),
            prediction=report.prediction,
            advisories=report.events,
        )

    async def run(self, origin: GeocodedLocation, destination: GeocodedLocation,
                  mode: TravelMode) -> EstimateOutcome:
        """Runs one estimate and turns every failure into a user-facing message."""
        try:
            estimate = await self.estimate(origin, destination, mode)
        except DistanceTooFar as e:
            logger.info("Rejected %s journey: %s", mode.value, e)
            return EstimateOutcome(state=EstimateState.FAILED, message=str(e))
        except (RouteUnavailable, NoRouteFound) as e:
            logger.warning("Error calculating route: %s", e)
            return EstimateOutcome(state=EstimateState.FAILED, message=GENERIC_FAILURE_MESSAGE)
        except Exception:
            logger.exception("Unexpected error estimating %s journey", mode.value)
            return EstimateOutcome(state=EstimateState.FAILED, message=GENERIC_FAILURE_MESSAGE)
        return EstimateOutcome(state=EstimateState.SUCCEEDED, estimate=estimate, message=estimate.narrative)


class EstimateSession:
    """Tracks the requests of one user; only the most recent one may produce a result."""

    def __init__(self, estimator: JourneyEstimator):
        self.estimator = estimator
        self.state = EstimateState.IDLE
        self._generation = 0
        self._task: asyncio.Task | None = None

    async def submit(self, origin: GeocodedLocation, destination: GeocodedLocation,
                     mode: TravelMode) -> EstimateOutcome | None:
        """Starts a new estimate, superseding any in flight.

        Returns None when a newer submission arrives before this one finishes.
        """
        self._generation += 1
        generation = self._generation
        if self._task is not None and not self._task.done():
            self._task.cancel()

        self.state = EstimateState.COMPUTING
        task = asyncio.create_task(self.estimator.run(origin, destination, mode))
        self._task = task
        try:
            outcome = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                return None
            raise

        if generation != self._generation:
            return None
        self.state = outcome.state
        return outcome


# --- Command line ---

def resolve_location(geocoder: GeocodeProvider, label: str, default: str) -> GeocodedLocation | None:
    query = input(f"Enter your {label} [Default: {default}]: ") or default
    print(f"   > Searching for '{query}'...")
    candidates = geocoder.search(query)
    if not candidates:
        print(f"   > Error: Could not find a location in Great Britain for: {query}")
        return None
    location = candidates[0]
    print(f"   > Using {location.display_name}")
    return location


def display_outcome(outcome: EstimateOutcome):
    """Prints the estimate, or the error sentence, followed by any traffic advisories."""
    print()
    print(outcome.message)
    if outcome.estimate is None or not outcome.estimate.advisories:
        return
    print("\nTraffic advisories along your route:")
    for event in outcome.estimate.advisories:
        print(f"  [{event.severity.value.upper():<6}] {event.description}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Journey Time Estimator: estimate travel time between two places in Great Britain.")
    parser.add_argument('-m', '--mode', choices=[m.value for m in TravelMode], default=TravelMode.CAR.value,
                        help="Travel mode to estimate for.")
    parser.add_argument('--remote-congestion', action='store_true',
                        help="Read congestion advisories from the congestion API instead of computing them locally.")
    parser.add_argument('-v', '--verbose', action='store_true',
                        help="Enable verbose mode to see the exact API calls being made.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )

    try:
        ZoneInfo(JOURNEY_TZ_NAME)
    except (ZoneInfoNotFoundError, ValueError):
        print(f"FATAL ERROR: The timezone '{JOURNEY_TZ_NAME}' set in the JOURNEY_TZ environment variable is invalid.")
        print("Please use a valid IANA timezone name (e.g., 'Europe/London').")
        return 1

    print("Welcome to the Journey Time Estimator.")
    print(f"Estimating a {args.mode} journey using timezone {JOURNEY_TZ_NAME}.\n")

    geocoder = NominatimAdapter()
    origin = resolve_location(geocoder, "origin", "London")
    destination = resolve_location(geocoder, "destination", "Birmingham")
    if origin is None or destination is None:
        print("\nCould not proceed without valid locations for both ends of the journey.")
        return 1

    congestion_source = HttpCongestionClient() if args.remote_congestion else LocalCongestionSource()
    estimator = JourneyEstimator(OsrmAdapter(), congestion_source)
    outcome = asyncio.run(EstimateSession(estimator).submit(origin, destination, TravelMode(args.mode)))
    display_outcome(outcome)
    return 0 if outcome.state == EstimateState.SUCCEEDED else 1


if __name__ == '__main__':
    raise SystemExit(main())
