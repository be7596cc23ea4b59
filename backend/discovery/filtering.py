from __future__ import annotations

from typing import AbstractSet, Iterable

from ..places.models import RawPlace
from .config import BLOCKED_TYPES, DEFAULT_DISCOVERY_CONFIG
from .models import Candidate, Profile


def _is_blocked(place: RawPlace, blocked: AbstractSet[str]) -> bool:
    return any(t in blocked for t in place.types)


def _has_enough_reviews(place: RawPlace, min_review_count: int) -> bool:
    if not place.rating or place.rating <= 0:
        return False
    if place.user_ratings_total is None:
        return False
    return place.user_ratings_total >= min_review_count


def _has_coordinates(place: RawPlace) -> bool:
    if place.geometry is None or place.geometry.location is None:
        return False
    return place.geometry.location.lat is not None and place.geometry.location.lng is not None


def _to_candidate(place: RawPlace) -> Candidate:
    location = place.geometry.location
    return Candidate(
        place_id=place.place_id,
        name=place.name,
        rating=place.rating,
        user_ratings_total=place.user_ratings_total,
        types=tuple(place.types),
        vicinity=place.vicinity or "",
        price_level=place.price_level,
        open_now=place.opening_hours.open_now if place.opening_hours else None,
        lat=location.lat,
        lng=location.lng,
    )


def filter_results(
    raw_results: Iterable[RawPlace],
    profile: Profile = Profile.attractions,
    min_review_count: int = DEFAULT_DISCOVERY_CONFIG.min_review_count,
    blocked_types: AbstractSet[str] = BLOCKED_TYPES,
) -> list[Candidate]:
    """
    Clean the concatenated per-type results of one discovery pass.

    Rules, in order:
    - drop a place whose id was already accepted earlier in this pass;
    - attractions only: drop a place tagged with any blocked type;
    - drop a place without a rating or with fewer than ``min_review_count`` reviews;
    - drop a place without an id or without both coordinates.

    Input order is preserved, so the first occurrence of an id wins.
    """
    seen_ids: set[str] = set()
    candidates: list[Candidate] = []

    for place in raw_results:
        if place.place_id in seen_ids:
            continue
        if profile is Profile.attractions and _is_blocked(place, blocked_types):
            continue
        if not _has_enough_reviews(place, min_review_count):
            continue
        if not place.place_id or not _has_coordinates(place):
            continue

        seen_ids.add(place.place_id)
        candidates.append(_to_candidate(place))

    return candidates
