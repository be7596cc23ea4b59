from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from .analytics.aggregator import compute_analytics
from .analytics.store import get_events
from .discovery.config import SCORING_PROFILES
from .discovery.errors import APIError, DiscoveryError, NotFoundError, ValidationError
from .discovery.models import (
    AttractionsResponse,
    NearbyRequest,
    PlaceOut,
    RestaurantsRequest,
    RestaurantsResponse,
)
from .discovery.service import DiscoveryEngine, build_engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    engine = build_engine()
    app.state.engine = engine
    try:
        yield
    finally:
        await engine.aclose()


app = FastAPI(title="Nearby Discovery API", version="1.0.0", lifespan=lifespan)


def get_engine(request: Request) -> DiscoveryEngine:
    return request.app.state.engine


def _error_response(error: DiscoveryError) -> JSONResponse:
    """Map an engine error onto the JSON error envelope the UI expects."""
    if isinstance(error, ValidationError):
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Validation failed", "details": [error.message]},
        )
    if isinstance(error, NotFoundError):
        return JSONResponse(status_code=404, content={"success": False, "error": error.message})
    if isinstance(error, APIError):
        return JSONResponse(status_code=502, content={"success": False, "error": error.message})
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})


def _missing_credential() -> JSONResponse:
    logger.error("GOOGLE_MAPS_API_KEY is not configured")
    return JSONResponse(status_code=500, content={"success": False, "error": "Server configuration error"})


# ── Public endpoints ─────────────────────────────────────────────────────


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/scoring/explanations")
def scoring_explanations() -> dict:
    return SCORING_PROFILES


# ── Discovery endpoints ──────────────────────────────────────────────────


@app.post("/attractions", response_model=AttractionsResponse)
async def attractions(
    body: NearbyRequest,
    engine: DiscoveryEngine = Depends(get_engine),
):
    credential = engine.places.config.api_key
    if not credential:
        return _missing_credential()

    result = await engine.get_top_attractions(
        body.lat, body.lng, credential, limit=body.limit, radius_m=body.radius,
    )
    if isinstance(result, DiscoveryError):
        logger.warning("/attractions failed: %s", result)
        return _error_response(result)

    return AttractionsResponse(attractions=[PlaceOut.from_scored(s) for s in result])


@app.post("/restaurants", response_model=RestaurantsResponse)
async def restaurants(
    body: RestaurantsRequest,
    engine: DiscoveryEngine = Depends(get_engine),
):
    credential = engine.places.config.api_key
    if not credential:
        return _missing_credential()

    result = await engine.get_top_restaurants(
        body.lat,
        body.lng,
        credential,
        limit=body.limit,
        radius_m=body.radius,
        price_levels=body.price_levels,
    )
    if isinstance(result, DiscoveryError):
        logger.warning("/restaurants failed: %s", result)
        return _error_response(result)

    return RestaurantsResponse(restaurants=[PlaceOut.from_scored(s) for s in result])


# ── Operational endpoints ────────────────────────────────────────────────


@app.get("/cache/stats")
def cache_stats(engine: DiscoveryEngine = Depends(get_engine)) -> dict:
    return engine.cache_stats()


@app.get("/analytics")
def analytics() -> dict:
    return compute_analytics(get_events())


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    uvicorn.run("backend.app:app", host="0.0.0.0", port=8000)
