from __future__ import annotations

import asyncio
import itertools
import logging
import time
from typing import Collection, Sequence

from ..analytics.store import record_event
from ..places.client import PlacesClient, validate_request
from ..places.config import DEFAULT_PLACES_CONFIG, PlacesConfig
from .cache import DiscoveryCache, make_key
from .config import ATTRACTION_TYPES, DEFAULT_DISCOVERY_CONFIG, RESTAURANT_TYPES, DiscoveryConfig
from .errors import DiscoveryError, NetworkError, NotFoundError, ValidationError
from .filtering import filter_results
from .models import Candidate, Profile, ScoredCandidate
from .scoring import score_candidates

logger = logging.getLogger(__name__)

PROFILE_TYPES: dict[Profile, tuple[str, ...]] = {
    Profile.attractions: ATTRACTION_TYPES,
    Profile.restaurants: RESTAURANT_TYPES,
}


def top_n(scored: Sequence[ScoredCandidate], limit: int = 10) -> list[ScoredCandidate]:
    """Return the first ``limit`` entries of an already ranked list."""
    if limit < 0:
        raise ValueError("limit must be >= 0")
    return list(scored[:limit])


def _validate_query(lat: float, lng: float, limit: int) -> ValidationError | None:
    if not -90.0 <= lat <= 90.0:
        return ValidationError("Latitude must be between -90 and 90")
    if not -180.0 <= lng <= 180.0:
        return ValidationError("Longitude must be between -180 and 180")
    if limit < 0:
        return ValidationError("Limit must be at least 0")
    return None


class DiscoveryEngine:
    """
    Nearby attraction and restaurant discovery.

    Construct once per process (see ``build_engine``) and share it between
    requests: it owns the Places client and one ``DiscoveryCache`` per
    profile. Call ``aclose`` on shutdown.
    """

    def __init__(
        self,
        places: PlacesClient,
        config: DiscoveryConfig = DEFAULT_DISCOVERY_CONFIG,
        caches: dict[Profile, DiscoveryCache] | None = None,
    ) -> None:
        self.places = places
        self.config = config
        self.caches = caches or {
            profile: DiscoveryCache(config.cache_capacity, config.cache_ttl_seconds)
            for profile in Profile
        }

    async def aclose(self) -> None:
        await self.places.aclose()

    # ── Pipeline stages ─────────────────────────────────────────────────

    async def discover(
        self,
        lat: float,
        lng: float,
        radius_m: int,
        credential: str,
        profile: Profile,
    ) -> list[Candidate] | DiscoveryError:
        """One uncached discovery pass: fetch every type, then filter."""
        batches = await self.places.fetch_many(
            lat,
            lng,
            radius_m,
            PROFILE_TYPES[profile],
            credential,
            timeout=self.config.pass_timeout,
        )
        if isinstance(batches, DiscoveryError):
            logger.warning("Discovery pass for %s at %s,%s failed: %s", profile.value, lat, lng, batches)
            return batches

        raw_count = sum(len(b) for b in batches)
        candidates = filter_results(
            itertools.chain.from_iterable(batches),
            profile,
            self.config.min_review_count,
        )
        logger.info(
            "Discovery pass for %s at %s,%s: %d raw results, %d candidates",
            profile.value, lat, lng, raw_count, len(candidates),
        )
        if not candidates:
            return NotFoundError(lat, lng, profile.value)
        return candidates

    async def get_candidates(
        self,
        lat: float,
        lng: float,
        radius_m: int,
        credential: str,
        profile: Profile,
        timeout: float | None = None,
    ) -> list[Candidate] | DiscoveryError:
        """Filtered candidates for a point, served from the cache when fresh.

        ``timeout`` bounds how long this caller waits. When it runs out and
        no other caller shares the pass, the in-flight fetches are cancelled
        and nothing is cached.
        """
        invalid = validate_request(radius_m, credential, self.config)
        if invalid is not None:
            return invalid

        key = make_key(lat, lng, radius_m, credential)
        lookup = self.caches[profile].get(
            key, lambda: self.discover(lat, lng, radius_m, credential, profile)
        )
        try:
            return await asyncio.wait_for(lookup, timeout=timeout or None)
        except asyncio.TimeoutError:
            logger.warning("Discovery for %s at %s,%s timed out after %ss", profile.value, lat, lng, timeout)
            return NetworkError(f"Discovery timed out after {timeout}s")

    async def get_top(
        self,
        profile: Profile,
        lat: float,
        lng: float,
        credential: str,
        limit: int | None = None,
        radius_m: int | None = None,
        price_levels: Collection[int] | None = None,
        timeout: float | None = None,
    ) -> list[ScoredCandidate] | DiscoveryError:
        start_time = time.time()
        limit = self.config.default_limit if limit is None else limit
        radius_m = self.config.search_radius_m if radius_m is None else radius_m

        result = _validate_query(lat, lng, limit) or validate_request(radius_m, credential, self.config)
        cache_hit = False
        total_candidates = 0
        if result is None:
            cache_hit = self.caches[profile].is_fresh(make_key(lat, lng, radius_m, credential))
            result = await self.get_candidates(lat, lng, radius_m, credential, profile, timeout)

        if not isinstance(result, DiscoveryError):
            candidates = result
            if price_levels:
                candidates = [c for c in candidates if c.price_level in price_levels]
            total_candidates = len(candidates)
            result = top_n(score_candidates(candidates, profile), limit)

        elapsed_ms = round((time.time() - start_time) * 1000, 1)
        record_event("discovery", {
            "profile": profile.value,
            "lat": lat,
            "lng": lng,
            "radius": radius_m,
            "limit": limit,
            "total_candidates": total_candidates,
            "results_returned": 0 if isinstance(result, DiscoveryError) else len(result),
            "response_time_ms": elapsed_ms,
            "cache_hit": cache_hit,
            "error": result.kind if isinstance(result, DiscoveryError) else None,
        })
        return result

    # ── Public boundary ─────────────────────────────────────────────────

    async def get_top_attractions(
        self,
        lat: float,
        lng: float,
        credential: str,
        limit: int = 10,
        radius_m: int | None = None,
        timeout: float | None = None,
    ) -> list[ScoredCandidate] | DiscoveryError:
        return await self.get_top(
            Profile.attractions, lat, lng, credential, limit, radius_m, timeout=timeout
        )

    async def get_top_restaurants(
        self,
        lat: float,
        lng: float,
        credential: str,
        limit: int = 10,
        radius_m: int | None = None,
        price_levels: Collection[int] | None = None,
        timeout: float | None = None,
    ) -> list[ScoredCandidate] | DiscoveryError:
        return await self.get_top(
            Profile.restaurants, lat, lng, credential, limit, radius_m, price_levels, timeout
        )

    def cache_stats(self) -> dict[str, dict]:
        return {profile.value: cache.stats() for profile, cache in self.caches.items()}


def build_engine(
    places_config: PlacesConfig = DEFAULT_PLACES_CONFIG,
    config: DiscoveryConfig = DEFAULT_DISCOVERY_CONFIG,
) -> DiscoveryEngine:
    return DiscoveryEngine(PlacesClient(places_config, limits=config), config)
