from __future__ import annotations

from collections import Counter
from typing import AbstractSet, Mapping, Sequence

import numpy as np
import pandas as pd

from .config import UNIQUE_TYPES, get_profile_weights
from .models import Candidate, Profile, ScoreBreakdown, ScoredCandidate


def _clamp(value: float) -> float:
    return float(np.clip(value, 0.0, 100.0))


def _round1(value: float) -> float:
    """Round half up to one decimal place."""
    return float(np.floor(value * 10 + 0.5) / 10)


def quality_score(rating: float, review_count: int) -> float:
    """``rating × log10(reviews + 1)``, scaled so 15 maps to 100."""
    if rating <= 0 or review_count <= 0:
        return 0.0
    raw = rating * np.log10(review_count + 1)
    return _clamp(raw / 15 * 100)


def diversity_score(
    types: Sequence[str],
    type_frequency: Mapping[str, int],
    unique_types: AbstractSet[str] = UNIQUE_TYPES,
) -> float:
    """Reward distinctive types, penalise categories that crowd the result set."""
    score = 50.0

    if any(t in unique_types for t in types):
        score += 30

    max_frequency = max(type_frequency.values(), default=0)
    own_frequency = max((type_frequency.get(t, 0) for t in types), default=0)
    if max_frequency > 0:
        score -= own_frequency / max_frequency * 20

    return _clamp(score)


def locality_score(review_count: int, price_level: int | None) -> float:
    """Favour well-known-but-not-famous places at moderate prices."""
    score = 50.0

    if 500 <= review_count <= 5000:
        score += 25
    elif review_count > 50000:
        score -= 20

    if price_level in (1, 2):
        score += 15
    elif price_level == 4:
        score -= 10

    return _clamp(score)


def _type_frequency(candidates: Sequence[Candidate]) -> Counter[str]:
    counter: Counter[str] = Counter()
    for c in candidates:
        counter.update(c.types)
    return counter


def _score_row(
    row: pd.Series,
    profile: Profile,
    type_frequency: Mapping[str, int],
    weights: Mapping[str, float],
) -> pd.Series:
    quality = quality_score(row["rating"], row["user_ratings_total"])
    locality = locality_score(row["user_ratings_total"], row["price_level"])
    if profile is Profile.attractions:
        diversity = diversity_score(row["types"], type_frequency)
    else:
        diversity = 0.0

    subs = {"quality": quality, "diversity": diversity, "locality": locality}
    composite = sum(weights[name] * subs[name] for name in weights)
    return pd.Series({
        "score": _round1(composite),
        "quality": _round1(quality),
        "diversity": _round1(diversity),
        "locality": _round1(locality),
    })


def score_candidates(candidates: Sequence[Candidate], profile: Profile) -> list[ScoredCandidate]:
    """
    Score every candidate and return them best first.

    Attractions weigh quality, diversity and locality; restaurants weigh
    quality and locality only and report a diversity of 0. Equal scores
    keep their input order.
    """
    if not candidates:
        return []

    weights = get_profile_weights(profile.value)
    type_frequency = _type_frequency(candidates)

    frame = pd.DataFrame({
        "rating": [c.rating for c in candidates],
        "user_ratings_total": [c.user_ratings_total for c in candidates],
        # object dtype keeps None instead of coercing the column to float NaN
        "price_level": pd.Series([c.price_level for c in candidates], dtype=object),
        "types": [c.types for c in candidates],
    })

    scores = frame.apply(
        _score_row,
        axis=1,
        profile=profile,
        type_frequency=type_frequency,
        weights=weights,
    )
    ranked = scores.sort_values("score", ascending=False, kind="stable")

    return [
        ScoredCandidate(
            candidate=candidates[idx],
            score=row["score"],
            breakdown=ScoreBreakdown(
                quality=row["quality"],
                diversity=row["diversity"],
                locality=row["locality"],
            ),
        )
        for idx, row in ranked.iterrows()
    ]
