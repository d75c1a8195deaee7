"""Data models for the campus food ranking engine."""

from __future__ import annotations

import math
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


def _fold(text: str) -> str:
    # "Cafés" -> "cafes"
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).strip().lower()


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lon: float

    def is_valid(self) -> bool:
        try:
            lat = float(self.lat)
            lon = float(self.lon)
        except (TypeError, ValueError):
            return False
        if not (math.isfinite(lat) and math.isfinite(lon)):
            return False
        return -90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0


class VendorCategory(str, Enum):
    RESTAURANTS = "restaurants"
    GROCERIES = "groceries"
    CONVENIENCE = "convenience"
    CAFES = "cafes"
    DESSERTS = "desserts"
    ALCOHOL = "alcohol"

    @classmethod
    def parse(cls, value: object) -> "VendorCategory":
        if isinstance(value, cls):
            return value
        key = _fold(str(value or ""))
        aliases = {
            "restaurant": cls.RESTAURANTS,
            "grocery": cls.GROCERIES,
            "cafe": cls.CAFES,
            "coffee": cls.CAFES,
            "dessert": cls.DESSERTS,
        }
        if key in aliases:
            return aliases[key]
        for member in cls:
            if member.value == key:
                return member
        raise ValueError(f"unknown vendor category: {value!r}")


class PriceTier(str, Enum):
    CHEAP = "$"
    MODERATE = "$$"
    EXPENSIVE = "$$$"

    @property
    def level(self) -> int:
        return len(self.value)

    @classmethod
    def parse(cls, value: object) -> "PriceTier":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip()
        if not text or set(text) != {"$"}:
            raise ValueError(f"invalid price range: {value!r}")
        # "$$$$" and above collapse into the top tier
        return {1: cls.CHEAP, 2: cls.MODERATE}.get(len(text), cls.EXPENSIVE)


class WaitStatus(str, Enum):
    CONFIDENT = "Confident (No wait)"
    SHORT = "Short wait (5-10 min)"
    MEDIUM = "Medium wait (15-20 min)"
    LONG = "Long wait (30+ min)"

    @classmethod
    def parse(cls, value: object) -> "WaitStatus":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip()
        for member in cls:
            if text == member.value or text.lower() == member.name.lower():
                return member
        raise ValueError(f"unknown wait status: {value!r}")


class SearchType(str, Enum):
    COFFEE = "coffee"
    HIGH_PROTEIN = "high_protein"
    GROCERIES = "groceries"
    QUICK_BREAKFAST = "quick_breakfast"
    HEALTHY_LUNCH = "healthy_lunch"
    CUSTOM = "custom"


@dataclass
class FriendVisit:
    friend_name: str
    days_ago: int


@dataclass
class FriendsActivity:
    total_friends_loved: int = 0
    recent_visits: List[FriendVisit] = field(default_factory=list)


@dataclass
class Vendor:
    id: str
    name: str
    category: VendorCategory
    location: Coordinate
    price_tier: PriceTier
    rating: float
    is_open: bool
    cuisine: Optional[str] = None
    delivery_fee: float = 0.0
    tags: List[str] = field(default_factory=list)
    wait_status: Optional[WaitStatus] = None
    friends_activity: Optional[FriendsActivity] = None
    # display-only fields carried through from the catalog
    address: Optional[str] = None
    review_count: int = 0
    dietary_highlights: List[str] = field(default_factory=list)

    @property
    def friends_loved(self) -> int:
        if self.friends_activity is None:
            return 0
        return max(0, self.friends_activity.total_friends_loved)


@dataclass
class MenuItem:
    id: str
    name: str
    price: Optional[float] = None


@dataclass(frozen=True)
class SearchFilters:
    max_distance: float = 2000.0  # meters
    max_price: Optional[float] = None
    min_rating: Optional[float] = None
    category: Optional[VendorCategory] = None
    keywords: Tuple[str, ...] = ()


@dataclass(frozen=True)
class FoodIntent:
    display_text: str
    emoji: str
    search_type: SearchType
    filters: SearchFilters = field(default_factory=SearchFilters)


@dataclass
class QuickSuggestion:
    emoji: str
    text: str
    intent: FoodIntent


@dataclass
class Candidate:
    """A vendor that passed the hard filters, with its distance to the user."""

    vendor: Vendor
    distance_m: float


@dataclass
class ScoredCandidate:
    vendor: Vendor
    distance_m: float
    walk_time_min: int
    score: int
    reason: str
    sub_scores: Dict[str, float] = field(default_factory=dict)
    matched_keywords: List[str] = field(default_factory=list)


@dataclass
class FoodResult:
    vendor: Vendor
    distance_m: float
    walk_time_min: int
    match_score: int
    match_reason: str
    menu_item: Optional[MenuItem] = None
    sub_scores: Dict[str, float] = field(default_factory=dict)
    social_proof: List[str] = field(default_factory=list)
