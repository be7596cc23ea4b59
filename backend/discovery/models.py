from __future__ import annotations

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from .config import DEFAULT_DISCOVERY_CONFIG


class Profile(str, Enum):
    attractions = "attractions"
    restaurants = "restaurants"


class Candidate(BaseModel):
    """A place that survived filtering. Built fresh per fetch, never mutated."""

    model_config = ConfigDict(frozen=True)

    place_id: str
    name: str
    rating: float
    user_ratings_total: int
    types: tuple[str, ...] = ()
    vicinity: str = ""
    price_level: int | None = None
    open_now: bool | None = None
    lat: float
    lng: float


class ScoreBreakdown(BaseModel):
    quality: float
    diversity: float
    locality: float


class ScoredCandidate(BaseModel):
    candidate: Candidate
    score: float
    breakdown: ScoreBreakdown


# ── HTTP models ──────────────────────────────────────────────────────────


class NearbyRequest(BaseModel):
    lat: float = Field(..., ge=-90.0, le=90.0)
    lng: float = Field(..., ge=-180.0, le=180.0)
    radius: int | None = Field(
        default=None, description="Search radius in meters; the engine default when omitted"
    )
    limit: int = Field(
        default=DEFAULT_DISCOVERY_CONFIG.default_limit, ge=0, le=DEFAULT_DISCOVERY_CONFIG.max_limit
    )


class RestaurantsRequest(NearbyRequest):
    price_levels: list[Annotated[int, Field(ge=0, le=4)]] | None = Field(
        default=None,
        description="Keep only restaurants whose price tier is listed, e.g. [1, 2]",
    )


class PlaceOut(BaseModel):
    id: str
    name: str
    rating: float
    user_ratings_total: int
    types: list[str]
    vicinity: str
    price_level: int | None
    open_now: bool | None
    latitude: float
    longitude: float
    score: float
    quality_score: float
    diversity_score: float
    locality_score: float

    @classmethod
    def from_scored(cls, scored: ScoredCandidate) -> "PlaceOut":
        c = scored.candidate
        return cls(
            id=c.place_id,
            name=c.name,
            rating=c.rating,
            user_ratings_total=c.user_ratings_total,
            types=list(c.types),
            vicinity=c.vicinity,
            price_level=c.price_level,
            open_now=c.open_now,
            latitude=c.lat,
            longitude=c.lng,
            score=scored.score,
            quality_score=scored.breakdown.quality,
            diversity_score=scored.breakdown.diversity,
            locality_score=scored.breakdown.locality,
        )


class AttractionsResponse(BaseModel):
    success: bool = True
    attractions: list[PlaceOut]


class RestaurantsResponse(BaseModel):
    success: bool = True
    restaurants: list[PlaceOut]
