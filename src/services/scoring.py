"""Match scoring for filtered candidates.

Each candidate gets four normalized sub-scores in [0, 1]: distance, rating,
keyword match and social proof. A sub-score contributes
``value * 100 * weight`` points and the total is rounded to an integer in
[0, 100]. The default weights are a starting point and are expected to be
tuned against real usage.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from models import Candidate, FoodIntent, ScoredCandidate, Vendor
from services.geo import WALK_SPEED_M_PER_MIN, walk_time_minutes

FRIENDS_FOR_FULL_SOCIAL = 5
REASON_SEPARATOR = " · "


@dataclass(frozen=True)
class ScoringWeights:
    distance: float = 0.35
    rating: float = 0.25
    keywords: float = 0.20
    social: float = 0.20

    def __post_init__(self) -> None:
        values = (self.distance, self.rating, self.keywords, self.social)
        if any(v < 0 for v in values) or sum(values) <= 0:
            raise ValueError("score weights must be non-negative and not all zero")

    def normalized(self) -> "ScoringWeights":
        total = self.distance + self.rating + self.keywords + self.social
        if abs(total - 1.0) <= 1e-9:
            return self
        return ScoringWeights(
            distance=self.distance / total,
            rating=self.rating / total,
            keywords=self.keywords / total,
            social=self.social / total,
        )


DEFAULT_WEIGHTS = ScoringWeights()


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return min(max(value, low), high)


def _round_half_up(value: float) -> int:
    # round(.., 6) absorbs float noise such as 62.49999999999999
    return int(math.floor(round(value, 6) + 0.5))


def _search_fields(vendor: Vendor) -> List[str]:
    fields = [vendor.name, vendor.cuisine or ""]
    fields.extend(vendor.tags)
    return [f.lower() for f in fields if f]


def match_keywords(vendor: Vendor, keywords: Sequence[str]) -> List[str]:
    """Keywords found (case-insensitive substring) in the vendor's name, cuisine or tags."""
    fields = _search_fields(vendor)
    return [kw for kw in keywords if any(kw.lower() in f for f in fields)]


def distance_score(distance_m: float, max_distance: float) -> float:
    if max_distance <= 0:
        return 0.0
    return _clamp(1.0 - distance_m / max_distance)


def rating_score(rating: float) -> float:
    return _clamp(rating / 5.0)


def keyword_score(matched: Sequence[str], keywords: Sequence[str]) -> float:
    # no keywords means no preference, not a penalty
    if not keywords:
        return 1.0
    return _clamp(len(matched) / len(keywords))


def social_score(friends_loved: int) -> float:
    return _clamp(friends_loved / FRIENDS_FOR_FULL_SOCIAL)


def _keyword_label(vendor: Vendor, keyword: str) -> str:
    for tag in vendor.tags:
        if keyword.lower() in tag.lower():
            return tag
    return keyword.strip().capitalize()


def build_match_reason(
    vendor: Vendor,
    sub_scores: Dict[str, float],
    matched: Sequence[str],
    walk_time_min: int,
) -> str:
    """Lead with the matched tag, else the stronger of social proof and rating; then walk time and price."""
    if matched:
        lead = _keyword_label(vendor, matched[0])
    else:
        leads: list[Tuple[float, int, str]] = []
        friends = vendor.friends_loved
        if friends > 0:
            noun = "friend" if friends == 1 else "friends"
            leads.append((sub_scores.get("social", 0.0), 0, f"Loved by {friends} {noun}"))
        leads.append((sub_scores.get("rating", 0.0), 1, f"Rated {vendor.rating:.1f}"))
        leads.sort(key=lambda item: (-round(item[0], 6), item[1]))
        lead = leads[0][2]

    parts = [lead, f"{walk_time_min} min walk", vendor.price_tier.value]
    return REASON_SEPARATOR.join(parts)


def score_candidate(
    candidate: Candidate,
    intent: FoodIntent,
    *,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
    walk_speed_m_per_min: float = WALK_SPEED_M_PER_MIN,
) -> ScoredCandidate:
    w = weights.normalized()
    vendor = candidate.vendor
    keywords = list(intent.filters.keywords)
    matched = match_keywords(vendor, keywords)

    sub_scores = {
        "distance": distance_score(candidate.distance_m, intent.filters.max_distance) * 100.0 * w.distance,
        "rating": rating_score(vendor.rating) * 100.0 * w.rating,
        "keywords": keyword_score(matched, keywords) * 100.0 * w.keywords,
        "social": social_score(vendor.friends_loved) * 100.0 * w.social,
    }
    total = _round_half_up(sum(sub_scores.values()))
    walk_min = walk_time_minutes(candidate.distance_m, walk_speed_m_per_min)

    return ScoredCandidate(
        vendor=vendor,
        distance_m=candidate.distance_m,
        walk_time_min=walk_min,
        score=int(_clamp(total, 0, 100)),
        reason=build_match_reason(vendor, sub_scores, matched, walk_min),
        sub_scores={k: round(v, 4) for k, v in sub_scores.items()},
        matched_keywords=matched,
    )


def score_candidates(
    candidates: Iterable[Candidate],
    intent: FoodIntent,
    *,
    weights: Optional[ScoringWeights] = None,
    walk_speed_m_per_min: float = WALK_SPEED_M_PER_MIN,
) -> List[ScoredCandidate]:
    weights = weights or DEFAULT_WEIGHTS
    return [
        score_candidate(c, intent, weights=weights, walk_speed_m_per_min=walk_speed_m_per_min)
        for c in candidates
    ]
