"""
Congestion API: serves known congestion hotspots inside a bounding box,
overlaid with the current time-of-day traffic prediction.

Routes:
  GET /api/traffic?minLat=..&maxLat=..&minLon=..&maxLon=..
  GET /health

Bounds that are missing or cannot be parsed as numbers are treated as 0.
Run locally with:
  uvicorn congestion_api:app --reload
"""

import logging
import os
from typing import Optional

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from api_structures import CongestionPoint
from traffic_model import LocalCongestionSource, bounding_box_from_params

load_dotenv()

# ─── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]


# ─── Response models ───────────────────────────────────────────────────────────
# Field names are camelCase because browser clients read them directly.

class EventCoordinates(BaseModel):
    lat: float
    lon: float


class TrafficEvent(BaseModel):
    id: str
    description: str
    severity: str    # "high" | "medium" | "low"
    coordinates: EventCoordinates

    @classmethod
    def from_point(cls, point: CongestionPoint) -> "TrafficEvent":
        return cls(
            id=point.id,
            description=point.description,
            severity=point.severity.value,
            coordinates=EventCoordinates(lat=point.coordinates.lat, lon=point.coordinates.lon),
        )


class PredictionSummary(BaseModel):
    timeMultiplier: float
    description: str
    severity: str


class TrafficResponse(BaseModel):
    trafficEvents: list[TrafficEvent]
    prediction: PredictionSummary


# ─── App ───────────────────────────────────────────────────────────────────────
app = FastAPI(
    title="Journey Congestion API",
    description="Known congestion hotspots with a time-of-day traffic prediction.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["GET"],
    allow_headers=["*"],
)

_source = LocalCongestionSource()


def get_congestion_source() -> LocalCongestionSource:
    """Dependency hook so tests can swap in a source with a fixed clock."""
    return _source


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}


@app.get("/api/traffic", response_model=TrafficResponse, tags=["traffic"])
async def get_traffic(
    # Kept as raw strings so bad values fall back to 0 instead of a 422.
    min_lat: Optional[str] = Query(default=None, alias="minLat"),
    max_lat: Optional[str] = Query(default=None, alias="maxLat"),
    min_lon: Optional[str] = Query(default=None, alias="minLon"),
    max_lon: Optional[str] = Query(default=None, alias="maxLon"),
    source: LocalCongestionSource = Depends(get_congestion_source),
):
    box = bounding_box_from_params(min_lat, max_lat, min_lon, max_lon)
    report = source.lookup(box)
    logger.debug("Congestion lookup %s matched %d hotspot(s)", box, len(report.events))

    return TrafficResponse(
        trafficEvents=[TrafficEvent.from_point(point) for point in report.events],
        prediction=PredictionSummary(
            timeMultiplier=report.prediction.multiplier,
            description=report.prediction.description,
            severity=report.prediction.severity.value,
        ),
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8000")))
