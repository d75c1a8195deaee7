from __future__ import annotations

import math
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from loguru import logger

from config import Configuration
from models import FoodIntent, QuickSuggestion, SearchFilters, SearchType, VendorCategory

DEFAULT_MAX_DISTANCE_M = 2000.0


class InvalidIntentError(ValueError):
    pass


# Fixed filter templates for the predefined search types.
SEARCH_TEMPLATES: Dict[SearchType, Dict[str, Any]] = {
    SearchType.COFFEE: {
        "display_text": "Best coffee near me",
        "emoji": "☕",
        "filters": SearchFilters(
            max_distance=1500.0,
            min_rating=4.0,
            category=VendorCategory.CAFES,
            keywords=("coffee",),
        ),
    },
    SearchType.HIGH_PROTEIN: {
        "display_text": "High protein near me",
        "emoji": "💪",
        "filters": SearchFilters(
            max_distance=1500.0,
            category=VendorCategory.RESTAURANTS,
            keywords=("protein",),
        ),
    },
    SearchType.GROCERIES: {
        "display_text": "Cheap groceries near me",
        "emoji": "🛒",
        "filters": SearchFilters(
            max_distance=2000.0,
            max_price=50.0,
            category=VendorCategory.GROCERIES,
        ),
    },
    SearchType.QUICK_BREAKFAST: {
        "display_text": "Quick breakfast",
        "emoji": "⚡",
        "filters": SearchFilters(max_distance=800.0, keywords=("breakfast",)),
    },
    SearchType.HEALTHY_LUNCH: {
        "display_text": "Healthy lunch",
        "emoji": "🥗",
        "filters": SearchFilters(
            max_distance=1200.0,
            category=VendorCategory.RESTAURANTS,
            keywords=("healthy",),
        ),
    },
}

CATEGORY_EMOJI = {
    VendorCategory.CAFES: "☕",
    VendorCategory.GROCERIES: "🛒",
    VendorCategory.DESSERTS: "🍩",
    VendorCategory.CONVENIENCE: "🏪",
    VendorCategory.ALCOHOL: "🍻",
    VendorCategory.RESTAURANTS: "🍽️",
}

CUISINE_KEYWORDS: Dict[str, Iterable[str]] = {
    "italian": ["italian", "pizza", "pasta"],
    "japanese": ["japanese", "sushi", "ramen"],
    "mexican": ["mexican", "taco", "burrito"],
    "chinese": ["chinese", "dumpling"],
    "thai": ["thai"],
    "indian": ["indian", "curry"],
}

DISH_KEYWORDS = ["ramen", "pizza", "burger", "sushi", "salad", "taco", "burrito", "bagel", "pancakes"]

DIETARY_KEYWORDS: Dict[str, Iterable[str]] = {
    "vegan": ["vegan", "plant-based", "plant based"],
    "vegetarian": ["vegetarian"],
    "gluten-free": ["gluten-free", "gluten free"],
    "healthy": ["healthy"],
    "keto": ["keto"],
    "protein": ["protein"],
}

CHEAP_WORDS = ("cheap", "budget", "affordable")


def _coerce_float(value: Any, field_name: str) -> Optional[float]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidIntentError(f"{field_name} must be a number, got {value!r}")
    if not math.isfinite(number):
        raise InvalidIntentError(f"{field_name} must be finite")
    return number


def _clean_keywords(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        raw = [raw]
    items = [str(x) for x in raw]
    if not items:
        return ()
    cleaned = [x.strip() for x in items if x.strip()]
    if not cleaned:
        raise InvalidIntentError("keywords must contain at least one non-blank entry")
    return tuple(dict.fromkeys(cleaned))


def _parse_category(value: Any) -> Optional[VendorCategory]:
    if value is None:
        return None
    if isinstance(value, str) and value.strip().lower() in {"", "all"}:
        return None
    try:
        return VendorCategory.parse(value)
    except ValueError as exc:
        raise InvalidIntentError(str(exc))


def validate_filters(filters: SearchFilters) -> SearchFilters:
    if not filters.max_distance or filters.max_distance <= 0:
        raise InvalidIntentError(f"max_distance must be positive, got {filters.max_distance!r}")
    if filters.max_price is not None and filters.max_price <= 0:
        raise InvalidIntentError(f"max_price must be positive, got {filters.max_price!r}")
    if filters.min_rating is not None and not 0.0 <= filters.min_rating <= 5.0:
        raise InvalidIntentError(f"min_rating must be within [0, 5], got {filters.min_rating!r}")
    return filters


def build_filters(data: Optional[Mapping[str, Any]], *, default_max_distance: float = DEFAULT_MAX_DISTANCE_M) -> SearchFilters:
    """Build SearchFilters from caller input, defaulting unset fields."""
    data = data or {}
    max_distance = _coerce_float(data.get("max_distance"), "max_distance")
    filters = SearchFilters(
        max_distance=default_max_distance if max_distance is None else max_distance,
        max_price=_coerce_float(data.get("max_price"), "max_price"),
        min_rating=_coerce_float(data.get("min_rating"), "min_rating"),
        category=_parse_category(data.get("category")),
        keywords=_clean_keywords(data.get("keywords")),
    )
    return validate_filters(filters)


def parse_search_type(value: Any) -> SearchType:
    if isinstance(value, SearchType):
        return value
    key = str(value or "").strip().lower().replace(" ", "_").replace("-", "_")
    try:
        return SearchType(key)
    except ValueError:
        raise InvalidIntentError(f"unknown search type: {value!r}")


def intent_for_type(
    search_type: Any,
    *,
    display_text: Optional[str] = None,
    emoji: Optional[str] = None,
    filters: Optional[Mapping[str, Any]] = None,
    default_max_distance: float = DEFAULT_MAX_DISTANCE_M,
) -> FoodIntent:
    """Canonical intent for a search type; predefined types ignore caller filters."""
    kind = parse_search_type(search_type)
    if kind is SearchType.CUSTOM:
        return build_custom_intent(display_text or "", filters, emoji=emoji, default_max_distance=default_max_distance)
    template = SEARCH_TEMPLATES[kind]
    if filters:
        logger.debug("ignoring caller filters for predefined search type {}", kind.value)
    return FoodIntent(
        display_text=(display_text or "").strip() or template["display_text"],
        emoji=emoji or template["emoji"],
        search_type=kind,
        filters=validate_filters(template["filters"]),
    )


def build_custom_intent(
    display_text: str,
    filters: Optional[Mapping[str, Any]] = None,
    *,
    emoji: Optional[str] = None,
    default_max_distance: float = DEFAULT_MAX_DISTANCE_M,
) -> FoodIntent:
    built = build_filters(filters, default_max_distance=default_max_distance)
    return FoodIntent(
        display_text=display_text.strip() or "Custom search",
        emoji=emoji or (CATEGORY_EMOJI.get(built.category) if built.category else None) or "🔍",
        search_type=SearchType.CUSTOM,
        filters=built,
    )


def parse_intent(data: Mapping[str, Any], *, default_max_distance: float = DEFAULT_MAX_DISTANCE_M) -> FoodIntent:
    """Structured input: {"search_type": ..., "display_text": ..., "emoji": ..., "filters": {...}}."""
    return intent_for_type(
        data.get("search_type") or SearchType.CUSTOM,
        display_text=data.get("display_text"),
        emoji=data.get("emoji"),
        filters=data.get("filters"),
        default_max_distance=default_max_distance,
    )


def parse_with_rules(text: str, *, default_max_distance: float = DEFAULT_MAX_DISTANCE_M) -> FoodIntent:
    t = (text or "").strip()
    if not t:
        raise InvalidIntentError("query text is empty")
    lower = t.lower()

    category: Optional[str] = None
    if "coffee" in lower or "cafe" in lower:
        category = "cafes"
    elif "grocery" in lower or "groceries" in lower:
        category = "groceries"
    elif "dessert" in lower or "ice cream" in lower:
        category = "desserts"
    elif any(kw in lower for kws in CUISINE_KEYWORDS.values() for kw in kws):
        category = "restaurants"

    keywords: list[str] = []
    if category == "cafes":
        keywords.append("coffee")
    for cuisine, kws in CUISINE_KEYWORDS.items():
        if any(re.search(r"\b" + re.escape(kw) + r"\b", lower) for kw in kws):
            keywords.append(cuisine)
            break
    for dish in DISH_KEYWORDS:
        if re.search(r"\b" + re.escape(dish) + r"s?\b", lower):
            keywords.append(dish)
            break
    for label, kws in DIETARY_KEYWORDS.items():
        if any(kw in lower for kw in kws):
            keywords.append(label)
    if "spicy" in lower:
        keywords.append("spicy")

    max_price: Optional[float] = None
    m = re.search(r"(?:under|below|less than|max)\s*\$?\s*(\d+(?:\.\d+)?)", lower)
    if not m:
        m = re.search(r"\$\s*(\d+(?:\.\d+)?)", lower)
    if m:
        max_price = float(m.group(1))
    elif any(word in lower for word in CHEAP_WORDS):
        max_price = 10.0

    max_distance: Optional[float] = None
    m = re.search(r"(\d+(?:\.\d+)?)\s*(km|kilometers|kilometres|m|meters|metres|mi|miles?)\b", lower)
    if m:
        value = float(m.group(1))
        unit = m.group(2)
        if unit.startswith("k"):
            max_distance = value * 1000.0
        elif unit.startswith("mi"):
            max_distance = value * 1609.34
        else:
            max_distance = value
    elif re.search(r"\b(nearby|close by|walking distance)\b", lower):
        max_distance = 1000.0

    min_rating = 4.0 if re.search(r"\b(best|top rated|top-rated|highly rated)\b", lower) else None

    data = {
        "max_distance": max_distance,
        "max_price": max_price,
        "min_rating": min_rating,
        "category": category,
        "keywords": list(dict.fromkeys(keywords)),
    }
    return build_custom_intent(t, data, default_max_distance=default_max_distance)


def parse_query(cfg: Configuration, text: str) -> FoodIntent:
    """Parse free text using the LLM when configured, otherwise fall back to rules."""
    if not (text or "").strip():
        raise InvalidIntentError("query text is empty")
    default_max_distance = cfg.default_max_distance_m
    if not cfg.llm_enabled:
        return parse_with_rules(text, default_max_distance=default_max_distance)

    try:
        from services.query_llm import SearchQueryParser

        data = SearchQueryParser(cfg).parse(text)
        return build_custom_intent(text, data, default_max_distance=default_max_distance)
    except Exception as exc:
        # fallback on any LLM failure
        logger.warning("llm query parsing failed, using rules: {}", exc)
    return parse_with_rules(text, default_max_distance=default_max_distance)


def quick_suggestions() -> List[QuickSuggestion]:
    out: list[QuickSuggestion] = []
    for kind in SEARCH_TEMPLATES:
        intent = intent_for_type(kind)
        out.append(QuickSuggestion(emoji=intent.emoji, text=intent.display_text, intent=intent))
    return out
