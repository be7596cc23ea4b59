from __future__ import annotations

import asyncio
import logging
from typing import Sequence

import httpx
import pydantic

from ..discovery.config import DEFAULT_DISCOVERY_CONFIG, DiscoveryConfig
from ..discovery.errors import APIError, DiscoveryError, NetworkError, ValidationError
from .config import DEFAULT_PLACES_CONFIG, PlacesConfig
from .models import NearbySearchResponse, RawPlace

logger = logging.getLogger(__name__)

NON_FATAL_STATUSES = frozenset({"OK", "ZERO_RESULTS"})


def validate_request(
    radius_m: int,
    credential: str,
    limits: DiscoveryConfig = DEFAULT_DISCOVERY_CONFIG,
) -> ValidationError | None:
    """Return a ``ValidationError`` for bad input, or ``None`` when it is usable."""
    if not credential:
        return ValidationError("API key is required")
    if radius_m < limits.min_radius_m or radius_m > limits.max_radius_m:
        return ValidationError(
            f"Radius must be between {limits.min_radius_m} and {limits.max_radius_m} meters"
        )
    return None


class PlacesClient:
    """Thin async wrapper around the Places Nearby Search endpoint.

    One ``PlacesClient`` is built per process and shares a single
    ``httpx.AsyncClient`` connection pool. Pass ``http_client`` to supply a
    preconfigured client (tests use one backed by ``httpx.MockTransport``).
    ``limits`` supplies the accepted radius range.
    """

    def __init__(
        self,
        config: PlacesConfig = DEFAULT_PLACES_CONFIG,
        http_client: httpx.AsyncClient | None = None,
        limits: DiscoveryConfig = DEFAULT_DISCOVERY_CONFIG,
    ) -> None:
        self.config = config
        self.limits = limits
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=config.timeout)

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def fetch_by_type(
        self,
        lat: float,
        lng: float,
        radius_m: int,
        category_type: str,
        credential: str,
    ) -> list[RawPlace] | DiscoveryError:
        """Run one nearby search for a single category type."""
        invalid = validate_request(radius_m, credential, self.limits)
        if invalid is not None:
            return invalid

        params = {
            "location": f"{lat},{lng}",
            "radius": radius_m,
            "type": category_type,
            "key": credential,
        }
        logger.debug("Nearby search: type=%s location=%s,%s radius=%s", category_type, lat, lng, radius_m)

        try:
            resp = await self._http.get(self.config.base_url, params=params)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Nearby search transport failure for type=%s: %s", category_type, exc)
            return NetworkError(f"Network error: {exc}")

        try:
            payload = NearbySearchResponse.model_validate(resp.json())
        except (ValueError, pydantic.ValidationError):
            logger.warning("Unparsable nearby search response for type=%s", category_type)
            return NetworkError("Failed to parse API response")

        if payload.status not in NON_FATAL_STATUSES:
            message = payload.error_message or f"Places API error: {payload.status}"
            logger.warning("Nearby search failed for type=%s: %s", category_type, message)
            return APIError(message)

        return payload.results

    async def fetch_many(
        self,
        lat: float,
        lng: float,
        radius_m: int,
        category_types: Sequence[str],
        credential: str,
        timeout: float | None = None,
    ) -> list[list[RawPlace]] | DiscoveryError:
        """Fetch every category type concurrently.

        Results come back in ``category_types`` order. The first failure in
        that order aborts the pass: the remaining fetches are cancelled and
        nothing from the successful ones is returned.
        """
        invalid = validate_request(radius_m, credential, self.limits)
        if invalid is not None:
            return invalid

        try:
            return await asyncio.wait_for(
                self._gather_in_order(lat, lng, radius_m, category_types, credential),
                timeout=timeout or None,
            )
        except asyncio.TimeoutError:
            logger.warning("Discovery pass at %s,%s timed out after %ss", lat, lng, timeout)
            return NetworkError(f"Places API request timed out after {timeout}s")

    async def _gather_in_order(
        self,
        lat: float,
        lng: float,
        radius_m: int,
        category_types: Sequence[str],
        credential: str,
    ) -> list[list[RawPlace]] | DiscoveryError:
        semaphore = asyncio.Semaphore(self.config.max_concurrency)

        async def _bounded(category_type: str) -> list[RawPlace] | DiscoveryError:
            async with semaphore:
                return await self.fetch_by_type(lat, lng, radius_m, category_type, credential)

        tasks = [asyncio.create_task(_bounded(t)) for t in category_types]
        try:
            batches: list[list[RawPlace]] = []
            for task in tasks:
                result = await task
                if isinstance(result, DiscoveryError):
                    return result
                batches.append(result)
            return batches
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
