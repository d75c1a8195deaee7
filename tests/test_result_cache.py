import time
from dataclasses import replace

from config import Configuration
from models import Coordinate, FoodResult, FriendsActivity, FriendVisit, PriceTier, Vendor, VendorCategory
from services.intent_parser import build_custom_intent
from services.result_cache import ResultCache, cache_key

USER = Coordinate(40.7295, -73.9965)


def _vendor(vid: str, is_open: bool = True) -> Vendor:
    return Vendor(
        id=vid,
        name=vid,
        category=VendorCategory.CAFES,
        location=Coordinate(40.73, -73.99),
        price_tier=PriceTier.CHEAP,
        rating=4.0,
        is_open=is_open,
    )


def _result(vid: str) -> FoodResult:
    return FoodResult(vendor=_vendor(vid), distance_m=10.0, walk_time_min=1, match_score=50, match_reason="r")


def test_put_and_get_roundtrip():
    cache = ResultCache(ttl_sec=1000)
    cache.put("k", [_result("a"), _result("b")])
    assert [r.vendor.id for r in cache.get("k")] == ["a", "b"]
    assert cache.get("missing") is None


def test_cleanup_by_ttl():
    cache = ResultCache(ttl_sec=1)
    cache.put("k", [_result("a")])
    assert len(cache) == 1

    # force timestamp to be stale
    ts, value = cache._entries["k"]  # type: ignore[attr-defined]
    cache._entries["k"] = (time.time() - 10, value)  # type: ignore[attr-defined]
    assert cache.get("k") is None
    assert len(cache) == 0


def test_oldest_entry_evicted_when_full():
    cache = ResultCache(ttl_sec=1000, max_entries=2)
    cache.put("a", [])
    cache._entries["a"] = (time.time() - 5, [])  # type: ignore[attr-defined]
    cache.put("b", [])
    cache.put("c", [])
    assert cache.get("a") is None
    assert cache.get("b") == []
    assert cache.get("c") == []


def test_clear():
    cache = ResultCache()
    cache.put("k", [_result("a")])
    cache.clear()
    assert len(cache) == 0


def test_cache_key_tracks_intent_location_and_catalog():
    intent = build_custom_intent("coffee", {"category": "cafes"})
    base = cache_key(intent, USER, [_vendor("a"), _vendor("b")])
    assert base == cache_key(intent, USER, [_vendor("b"), _vendor("a")])
    assert base != cache_key(intent, USER, [_vendor("a"), _vendor("b", is_open=False)])
    assert base != cache_key(intent, Coordinate(40.7400, -73.9965), [_vendor("a"), _vendor("b")])
    other = build_custom_intent("coffee", {"category": "cafes", "max_distance": 500})
    assert base != cache_key(other, USER, [_vendor("a"), _vendor("b")])


def test_cache_key_changes_when_vendor_attributes_change():
    intent = build_custom_intent("coffee", {"category": "cafes", "keywords": ["coffee"]})
    base_vendor = _vendor("a")
    base = cache_key(intent, USER, [base_vendor])
    variants = [
        replace(base_vendor, category=VendorCategory.GROCERIES),
        replace(base_vendor, price_tier=PriceTier.EXPENSIVE),
        replace(base_vendor, tags=["Coffee"]),
        replace(base_vendor, cuisine="Coffee"),
        replace(base_vendor, name="Renamed"),
        replace(base_vendor, friends_activity=FriendsActivity(2, [FriendVisit("Emma", 1)])),
    ]
    keys = {cache_key(intent, USER, [v]) for v in variants}
    assert base not in keys
    assert len(keys) == len(variants)


def test_cache_key_tracks_ranking_settings():
    intent = build_custom_intent("x", {})
    catalog = [_vendor("a")]
    base = cache_key(intent, USER, catalog, Configuration())
    assert base == cache_key(intent, USER, catalog)
    assert base != cache_key(intent, USER, catalog, Configuration(weight_social=0.5))
    assert base != cache_key(intent, USER, catalog, Configuration(average_item_price=25.0))
    assert base != cache_key(intent, USER, catalog, Configuration(walk_speed_m_per_min=60.0))
