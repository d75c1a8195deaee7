from __future__ import annotations

from typing import Iterable, List

from loguru import logger

from models import Candidate, Coordinate, FoodIntent, Vendor
from services.geo import distance_meters

# Assumed average item price per price tier level ($ = 1x, $$ = 2x, $$$ = 3x).
# Coarse approximation: vendors carry a tier, not a menu price.
AVERAGE_ITEM_PRICE = 10.0


def estimated_item_price(vendor: Vendor, average_item_price: float = AVERAGE_ITEM_PRICE) -> float:
    return vendor.price_tier.level * average_item_price


def filter_candidates(
    vendors: Iterable[Vendor],
    user_location: Coordinate,
    intent: FoodIntent,
    *,
    average_item_price: float = AVERAGE_ITEM_PRICE,
) -> List[Candidate]:
    """Apply the hard constraints of an intent. An empty list is a valid outcome."""
    filters = intent.filters
    kept: list[Candidate] = []
    skipped_invalid = 0

    for vendor in vendors:
        if not vendor.location.is_valid():
            skipped_invalid += 1
            continue
        if not vendor.is_open:
            continue
        if filters.category is not None and vendor.category != filters.category:
            continue
        if filters.min_rating is not None and vendor.rating < filters.min_rating:
            continue
        if filters.max_price is not None and estimated_item_price(vendor, average_item_price) > filters.max_price:
            continue

        dist = distance_meters(user_location, vendor.location)
        if dist > filters.max_distance:
            continue
        kept.append(Candidate(vendor=vendor, distance_m=dist))

    if skipped_invalid:
        logger.debug("skipped {} vendors with invalid coordinates", skipped_invalid)
    return kept
