from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


def _env_float(name: str, default: float | None) -> float | None:
    """Read a number of seconds from the environment; zero or less disables it.

    A value that is not a number fails at import, naming the variable.
    """
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number of seconds, got {raw!r}") from None
    return value if value > 0 else None


@dataclass(frozen=True)
class DiscoveryConfig:
    search_radius_m: int = 1500
    default_limit: int = 10
    max_limit: int = 50
    min_review_count: int = 10
    min_radius_m: int = 100
    max_radius_m: int = 50000
    cache_capacity: int = 100
    cache_ttl_seconds: float = 300.0
    pass_timeout: float | None = _env_float("DISCOVERY_PASS_TIMEOUT", 30.0)


DEFAULT_DISCOVERY_CONFIG = DiscoveryConfig()


# ---------------------------------------------------------------------------
# Category data
# ---------------------------------------------------------------------------
# Sightseeing types only; the broad point_of_interest type pulls in shops.

ATTRACTION_TYPES: tuple[str, ...] = (
    "tourist_attraction",
    "museum",
    "art_gallery",
    "park",
    "national_park",
    "historical_landmark",
    "zoo",
    "aquarium",
    "amusement_park",
    "cultural_center",
    "performing_arts_theater",
)

RESTAURANT_TYPES: tuple[str, ...] = (
    "restaurant",
    "cafe",
    "bar",
    "bakery",
    "meal_takeaway",
)

# Excluded from attraction results. Dining is excluded too because it is
# served by the restaurant pipeline.
BLOCKED_TYPES: frozenset[str] = frozenset({
    # Automotive
    "car_repair",
    "car_dealer",
    "car_wash",
    "car_rental",
    "gas_station",
    # Shopping
    "store",
    "shopping_mall",
    "convenience_store",
    "supermarket",
    "department_store",
    "clothing_store",
    "shoe_store",
    "electronics_store",
    "furniture_store",
    "hardware_store",
    "home_goods_store",
    "jewelry_store",
    "pet_store",
    # Services
    "electrician",
    "plumber",
    "locksmith",
    "painter",
    "roofing_contractor",
    "lawyer",
    "real_estate_agency",
    "insurance_agency",
    "accounting",
    # Financial
    "atm",
    "bank",
    # Healthcare
    "dentist",
    "doctor",
    "hospital",
    "pharmacy",
    "veterinary_care",
    # Personal care
    "hair_care",
    "beauty_salon",
    "spa",
    "gym",
    # Other services
    "laundry",
    "post_office",
    "storage",
    # Lodging
    "lodging",
    "hotel",
    "motel",
    "hostel",
    "resort_hotel",
    "bed_and_breakfast",
    "guest_house",
    "campground",
    "rv_park",
    # Food & dining
    "restaurant",
    "cafe",
    "bar",
    "bakery",
    "meal_delivery",
    "meal_takeaway",
    "food",
    "night_club",
})

# Types that earn the diversity bonus.
UNIQUE_TYPES: frozenset[str] = frozenset({
    "art_gallery",
    "book_store",
    "park",
    "local_government_office",
    "museum",
    "library",
    "cafe",
})


# ---------------------------------------------------------------------------
# Scoring profiles
# ---------------------------------------------------------------------------

_QUALITY_LINES = [
    "Based on rating and review count",
    "Higher ratings with more reviews score better",
    "Formula: rating × log₁₀(reviews + 1)",
]

_LOCALITY_LINES = [
    "Favors local gems over tourist traps",
    "Sweet spot: 500-5000 reviews",
    "Prefers moderate pricing ($ or $$)",
]

SCORING_PROFILES: dict[str, dict] = {
    "attractions": {
        "weights": {"quality": 0.4, "diversity": 0.3, "locality": 0.3},
        "explanations": {
            "quality": {
                "title": "Quality Score",
                "weight": "40% weight",
                "description": _QUALITY_LINES,
            },
            "diversity": {
                "title": "Diversity Score",
                "weight": "30% weight",
                "description": [
                    "Rewards unique place types",
                    "Penalizes over-represented categories",
                    "Boosts for art galleries, museums, parks, cafes",
                ],
            },
            "locality": {
                "title": "Locality Score",
                "weight": "30% weight",
                "description": _LOCALITY_LINES,
            },
        },
    },
    "restaurants": {
        "weights": {"quality": 0.6, "locality": 0.4},
        "explanations": {
            "quality": {
                "title": "Quality Score",
                "weight": "60% weight",
                "description": _QUALITY_LINES,
            },
            "locality": {
                "title": "Locality Score",
                "weight": "40% weight",
                "description": _LOCALITY_LINES,
            },
        },
    },
}


def get_profile_weights(profile: str) -> dict[str, float]:
    """Return the sub-score weights for ``profile``."""
    return SCORING_PROFILES[profile]["weights"]
