from __future__ import annotations

from typing import Iterable, List, Optional

from loguru import logger

from config import Configuration
from models import Coordinate, FoodIntent, FoodResult, ScoredCandidate, Vendor
from services.candidate_filter import filter_candidates
from services.scoring import ScoringWeights, score_candidates


def _sort_key(c: ScoredCandidate) -> tuple:
    # score desc, rating desc, distance asc, name asc
    return (-c.score, -c.vendor.rating, c.distance_m, c.vendor.name)


def _social_proof(vendor: Vendor) -> List[str]:
    if vendor.friends_activity is None:
        return []
    visits = sorted(vendor.friends_activity.recent_visits, key=lambda v: (v.days_ago, v.friend_name))
    return [v.friend_name for v in visits]


def order_results(scored: Iterable[ScoredCandidate]) -> List[FoodResult]:
    """Sort scored candidates into the final result order. Empty in, empty out."""
    ordered = sorted(scored, key=_sort_key)
    return [
        FoodResult(
            vendor=c.vendor,
            distance_m=c.distance_m,
            walk_time_min=c.walk_time_min,
            match_score=c.score,
            match_reason=c.reason,
            sub_scores=dict(c.sub_scores),
            social_proof=_social_proof(c.vendor),
        )
        for c in ordered
    ]


def weights_from_config(cfg: Configuration) -> ScoringWeights:
    return ScoringWeights(
        distance=cfg.weight_distance,
        rating=cfg.weight_rating,
        keywords=cfg.weight_keywords,
        social=cfg.weight_social,
    )


def rank(
    intent: FoodIntent,
    user_location: Coordinate,
    catalog: Iterable[Vendor],
    *,
    cfg: Optional[Configuration] = None,
    limit: Optional[int] = None,
) -> List[FoodResult]:
    """Filter, score and order a vendor catalog for one intent."""
    if not user_location.is_valid():
        raise ValueError(f"invalid user location: lat={user_location.lat} lon={user_location.lon}")
    cfg = cfg or Configuration()

    candidates = filter_candidates(
        catalog,
        user_location,
        intent,
        average_item_price=cfg.average_item_price,
    )
    scored = score_candidates(
        candidates,
        intent,
        weights=weights_from_config(cfg),
        walk_speed_m_per_min=cfg.walk_speed_m_per_min,
    )
    results = order_results(scored)
    if limit is not None:
        results = results[: max(0, limit)]

    logger.debug(
        "ranked intent={} type={} candidates={} results={}",
        intent.display_text,
        intent.search_type.value,
        len(candidates),
        len(results),
    )
    return results
