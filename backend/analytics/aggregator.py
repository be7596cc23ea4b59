from __future__ import annotations

from collections import Counter
from typing import Any


def compute_analytics(events: list[dict[str, Any]]) -> dict[str, Any]:
    requests = [e for e in events if e["type"] == "discovery"]
    total = len(requests)

    # Average response time
    times = [r["response_time_ms"] for r in requests if "response_time_ms" in r]
    avg_time = round(sum(times) / len(times), 1) if times else 0.0

    # Requests per profile
    profile_counter: Counter[str] = Counter(r.get("profile", "unknown") for r in requests)

    # Busiest points, rounded to ~100 m so nearby map pans group together
    point_counter: Counter[tuple[float, float]] = Counter()
    for r in requests:
        if "lat" in r and "lng" in r:
            point_counter[(round(r["lat"], 3), round(r["lng"], 3))] += 1
    top_locations = [
        {"lat": lat, "lng": lng, "count": c}
        for (lat, lng), c in point_counter.most_common(10)
    ]

    # Failures by kind
    error_counter: Counter[str] = Counter(r["error"] for r in requests if r.get("error"))

    # Results returned
    served = [r for r in requests if not r.get("error")]
    avg_results = (
        round(sum(r.get("results_returned", 0) for r in served) / len(served), 1)
        if served else 0.0
    )

    # Cache stats
    cache_hits = sum(1 for r in requests if r.get("cache_hit"))
    cache_misses = total - cache_hits

    return {
        "total_requests": total,
        "avg_response_time_ms": avg_time,
        "requests_by_profile": dict(profile_counter),
        "top_locations": top_locations,
        "errors": dict(error_counter),
        "avg_results_returned": avg_results,
        "cache_stats": {
            "hits": cache_hits,
            "misses": cache_misses,
            "hit_rate": round(cache_hits / total * 100, 1) if total else 0.0,
        },
    }
