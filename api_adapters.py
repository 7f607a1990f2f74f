# Contains the adapter classes for communicating with external routing, geocoding and congestion services.

import logging
import os
from abc import ABC, abstractmethod

import requests
from dotenv import load_dotenv

from api_structures import (
    BoundingBox,
    CongestionPoint,
    CongestionReport,
    Coordinates,
    GeocodedLocation,
    RouteInfo,
    Severity,
    TrafficPrediction,
    TravelMode,
)

logger = logging.getLogger(__name__)

# --- API Configuration ---
# Endpoints are read from environment variables so deployments can point at their own servers.
load_dotenv()
ROUTING_BASE_URL = os.getenv("ROUTING_BASE_URL", "https://router.project-osrm.org")
GEOCODING_URL = os.getenv("GEOCODING_URL", "https://nominatim.openstreetmap.org/search")
GEOCODING_COUNTRY = os.getenv("GEOCODING_COUNTRY", "gb")
GEOCODING_LIMIT = int(os.getenv("GEOCODING_LIMIT", "5"))
CONGESTION_API_URL = os.getenv("CONGESTION_API_URL", "http://localhost:8000/api/traffic")
REQUEST_TIMEOUT_SEC = float(os.getenv("REQUEST_TIMEOUT_SEC", "10"))

METERS_TO_MILES = 0.000621371


def severity_for_multiplier(multiplier: float) -> Severity:
    """Maps a traffic multiplier back onto the severity band that produces it."""
    if multiplier > 1.3:
        return Severity.HIGH
    if multiplier > 1.0:
        return Severity.MEDIUM
    return Severity.LOW


# --- Errors ---

class JourneyError(Exception):
    """Base class for every failure an estimate can end in."""


class RouteUnavailable(JourneyError):
    """The routing provider could not be reached or answered with an error."""


class NoRouteFound(JourneyError):
    """The routing provider answered but has no route between the two points."""


class CongestionUnavailable(JourneyError):
    """The congestion service could not be reached or answered with an error."""


# --- Interfaces ---

class RouteProvider(ABC):
    @abstractmethod
    def get_route(self, start_coords: Coordinates, end_coords: Coordinates, mode: TravelMode) -> RouteInfo:
        """Calculates a route and returns our standard RouteInfo object.

        Raises RouteUnavailable or NoRouteFound instead of returning nothing.
        """


class GeocodeProvider(ABC):
    @abstractmethod
    def search(self, query: str) -> list[GeocodedLocation]:
        """Returns candidate locations for a free-text query."""


class CongestionSource(ABC):
    @abstractmethod
    def lookup(self, box: BoundingBox) -> CongestionReport:
        """Returns the hotspots inside the box with the current prediction overlaid."""


# --- Implementations ---

class OsrmAdapter(RouteProvider):
    """The adapter for an OSRM-compatible routing server."""
    ROUTE_PATH = "/route/v1/{profile}/{locations}"

    def __init__(self, base_url: str | None = None, timeout: float | None = None, include_geometry: bool = False):
        self.base_url = (base_url or ROUTING_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else REQUEST_TIMEOUT_SEC
        self.include_geometry = include_geometry

    def build_url(self, start_coords: Coordinates, end_coords: Coordinates, mode: TravelMode) -> str:
        # OSRM wants lon,lat pairs separated by a semicolon.
        locations = f"{start_coords.lon},{start_coords.lat};{end_coords.lon},{end_coords.lat}"
        return self.base_url + self.ROUTE_PATH.format(profile=mode.profile.provider_profile, locations=locations)

    def get_route(self, start_coords: Coordinates, end_coords: Coordinates, mode: TravelMode) -> RouteInfo:
        url = self.build_url(start_coords, end_coords, mode)
        params = {'overview': 'full'}
        if self.include_geometry:
            params['geometries'] = 'geojson'
        logger.debug("[OSRM] Requesting %s route: %s", mode.value, url)
        try:
            response = requests.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.warning("[OSRM] Route request failed for %s: %s", mode.value, e)
            raise RouteUnavailable(f"Routing provider request failed: {e}") from e
        except ValueError as e:
            logger.warning("[OSRM] Route response was not valid JSON: %s", e)
            raise RouteUnavailable("Routing provider returned an unreadable response") from e

        routes = data.get('routes') if isinstance(data, dict) else None
        if not routes:
            logger.info("[OSRM] No %s route between %s and %s", mode.value, start_coords, end_coords)
            raise NoRouteFound(f"No {mode.value} route found")

        try:
            route = routes[0]
            # *** NORMALIZATION to our standard RouteInfo object ***
            distance_miles = round(float(route['distance']) * METERS_TO_MILES, 1)
            duration_sec = float(route['duration']) if mode.is_motorized else None
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("[OSRM] Could not parse route response: %s", e)
            raise RouteUnavailable("Routing provider returned a malformed route") from e

        return RouteInfo(
            distance_miles=distance_miles,
            duration_sec=duration_sec,
            geometry=route.get('geometry') if self.include_geometry else None,
        )


class NominatimAdapter(GeocodeProvider):
    """The adapter for the Nominatim search API, restricted to one country."""
    HEADERS = {
        'Accept-Language': 'en-GB,en;q=0.9',
        'User-Agent': 'JourneyTimeEstimator/1.0',
    }

    def __init__(self, url: str | None = None, country: str | None = None, limit: int | None = None,
                 timeout: float | None = None):
        self.url = url or GEOCODING_URL
        self.country = (country or GEOCODING_COUNTRY).lower()
        self.limit = limit or GEOCODING_LIMIT
        self.timeout = timeout if timeout is not None else REQUEST_TIMEOUT_SEC

    def _in_country(self, address: dict) -> bool:
        if address.get('country_code') == self.country:
            return True
        return self.country == 'gb' and address.get('country') == 'United Kingdom'

    def search(self, query: str) -> list[GeocodedLocation]:
        if not query.strip():
            return []
        params = {
            'format': 'json',
            'q': query,
            'countrycodes': self.country,
            'limit': self.limit,
            'addressdetails': 1,
        }
        logger.debug("[Nominatim] Searching for '%s'", query)
        try:
            response = requests.get(self.url, params=params, headers=self.HEADERS, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning("[Nominatim] Address search failed for '%s': %s", query, e)
            return []

        if not isinstance(data, list):
            logger.warning("[Nominatim] Unexpected search response for '%s': %r", query, data)
            return []

        results = []
        for item in data:
            address = item.get('address') if isinstance(item, dict) else None
            if not isinstance(address, dict):
                logger.debug("[Nominatim] Skipping result without address details: %r", item)
                continue
            if not self._in_country(address):
                continue
            try:
                coords = Coordinates(lat=float(item['lat']), lon=float(item['lon']))
            except (KeyError, TypeError, ValueError):
                logger.debug("[Nominatim] Skipping result without usable coordinates: %r", item)
                continue
            results.append(GeocodedLocation(
                display_name=item.get('display_name', ''),
                coordinates=coords,
                place_type=item.get('type', ''),
            ))
        return results


class HttpCongestionClient(CongestionSource):
    """Reads congestion advisories from a remote congestion endpoint."""

    def __init__(self, url: str | None = None, timeout: float | None = None):
        self.url = url or CONGESTION_API_URL
        self.timeout = timeout if timeout is not None else REQUEST_TIMEOUT_SEC

    def lookup(self, box: BoundingBox) -> CongestionReport:
        params = {
            'minLat': box.min_lat,
            'maxLat': box.max_lat,
            'minLon': box.min_lon,
            'maxLon': box.max_lon,
        }
        try:
            response = requests.get(self.url, params=params, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.exceptions.RequestException, ValueError) as e:
            logger.warning("Congestion request failed: %s", e)
            raise CongestionUnavailable(f"Congestion service request failed: {e}") from e

        try:
            prediction_data = data['prediction']
            multiplier = float(prediction_data['timeMultiplier'])
            severity = prediction_data.get('severity')
            prediction = TrafficPrediction(
                multiplier=multiplier,
                severity=Severity(severity) if severity else severity_for_multiplier(multiplier),
                description=prediction_data['description'],
            )
            events = [
                CongestionPoint(
                    id=event['id'],
                    description=event['description'],
                    severity=Severity(event['severity']),
                    coordinates=Coordinates(lat=float(event['coordinates']['lat']),
                                            lon=float(event['coordinates']['lon'])),
                )
                for event in data.get('trafficEvents', [])
            ]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Could not parse congestion response: %s", e)
            raise CongestionUnavailable("Congestion service returned a malformed response") from e

        return CongestionReport(events=events, prediction=prediction)
