from __future__ import annotations

from pydantic import BaseModel, Field


class LatLng(BaseModel):
    lat: float | None = None
    lng: float | None = None


class Geometry(BaseModel):
    location: LatLng | None = None


class OpeningHours(BaseModel):
    open_now: bool | None = None


class RawPlace(BaseModel):
    """A single entry of a Nearby Search ``results`` array."""

    place_id: str | None = None
    name: str = ""
    rating: float | None = None
    user_ratings_total: int | None = None
    types: list[str] = Field(default_factory=list)
    vicinity: str | None = None
    price_level: int | None = None
    opening_hours: OpeningHours | None = None
    geometry: Geometry | None = None


class NearbySearchResponse(BaseModel):
    status: str
    results: list[RawPlace] = Field(default_factory=list)
    error_message: str | None = None
