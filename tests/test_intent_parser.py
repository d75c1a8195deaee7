import sys
import types
from unittest.mock import patch

import pytest

from config import Configuration
from models import SearchType, VendorCategory
from services.intent_parser import (
    InvalidIntentError,
    build_custom_intent,
    intent_for_type,
    parse_intent,
    parse_query,
    parse_with_rules,
    quick_suggestions,
)


def test_coffee_template():
    intent = intent_for_type("coffee")
    assert intent.search_type is SearchType.COFFEE
    assert intent.filters.category is VendorCategory.CAFES
    assert intent.filters.max_distance == 1500.0
    assert intent.emoji == "☕"


def test_predefined_type_ignores_caller_filters():
    intent = intent_for_type("groceries", filters={"max_distance": 50, "keywords": ["x"]})
    assert intent.filters.max_distance == 2000.0
    assert intent.filters.max_price == 50.0
    assert intent.filters.keywords == ()


def test_custom_defaults_unset_fields():
    intent = build_custom_intent("anything", {})
    f = intent.filters
    assert intent.search_type is SearchType.CUSTOM
    assert f.max_distance == 2000.0
    assert f.max_price is None
    assert f.min_rating is None
    assert f.category is None
    assert f.keywords == ()


def test_custom_filters_taken_verbatim():
    intent = parse_intent(
        {
            "search_type": "custom",
            "display_text": "late night vegan",
            "filters": {"max_distance": 900, "max_price": 25, "min_rating": 4.2, "category": "Restaurants", "keywords": ["Vegan"]},
        }
    )
    f = intent.filters
    assert f.max_distance == 900.0
    assert f.max_price == 25.0
    assert f.min_rating == 4.2
    assert f.category is VendorCategory.RESTAURANTS
    assert f.keywords == ("Vegan",)
    assert intent.display_text == "late night vegan"


def test_category_all_means_no_category():
    assert build_custom_intent("x", {"category": "All"}).filters.category is None


def test_blank_keywords_are_rejected():
    with pytest.raises(InvalidIntentError):
        build_custom_intent("x", {"keywords": ["  ", "", "\t"]})


def test_blank_keywords_mixed_with_real_ones_are_dropped():
    intent = build_custom_intent("x", {"keywords": [" vegan ", " ", "vegan", "thai"]})
    assert intent.filters.keywords == ("vegan", "thai")


@pytest.mark.parametrize("distance", [0, -10])
def test_non_positive_distance_is_rejected(distance):
    with pytest.raises(InvalidIntentError):
        build_custom_intent("x", {"max_distance": distance})


def test_invalid_rating_and_price_are_rejected():
    with pytest.raises(InvalidIntentError):
        build_custom_intent("x", {"min_rating": 7})
    with pytest.raises(InvalidIntentError):
        build_custom_intent("x", {"max_price": 0})
    with pytest.raises(InvalidIntentError):
        build_custom_intent("x", {"max_distance": "far"})


def test_unknown_search_type_and_category():
    with pytest.raises(InvalidIntentError):
        intent_for_type("brunch")
    with pytest.raises(InvalidIntentError):
        build_custom_intent("x", {"category": "bakeries"})


def test_invalid_intent_is_a_value_error():
    assert issubclass(InvalidIntentError, ValueError)


def test_rules_parse_dish_and_price():
    intent = parse_with_rules("spicy ramen under $15")
    f = intent.filters
    assert intent.search_type is SearchType.CUSTOM
    assert f.category is VendorCategory.RESTAURANTS
    assert f.keywords == ("japanese", "ramen", "spicy")
    assert f.max_price == 15.0
    assert f.max_distance == 2000.0


def test_rules_parse_cheap_and_nearby():
    f = parse_with_rules("cheap vegan food nearby").filters
    assert f.keywords == ("vegan",)
    assert f.max_price == 10.0
    assert f.max_distance == 1000.0
    assert f.category is None


def test_rules_parse_best_coffee_with_distance():
    intent = parse_with_rules("best coffee within 1 km")
    f = intent.filters
    assert f.category is VendorCategory.CAFES
    assert f.min_rating == 4.0
    assert f.max_distance == 1000.0
    assert f.keywords == ("coffee",)
    assert intent.emoji == "☕"


def test_empty_query_is_rejected():
    with pytest.raises(InvalidIntentError):
        parse_with_rules("   ")
    with pytest.raises(InvalidIntentError):
        parse_query(Configuration(), "")


def test_parse_query_without_llm_uses_rules():
    intent = parse_query(Configuration(), "pizza under $12")
    assert "pizza" in intent.filters.keywords
    assert intent.filters.max_price == 12.0


def _fake_llm_module(result=None, error=None) -> types.ModuleType:
    class FakeParser:
        def __init__(self, cfg):
            self.cfg = cfg

        def parse(self, text):
            if error is not None:
                raise error
            return result

    module = types.ModuleType("services.query_llm")
    module.SearchQueryParser = FakeParser  # type: ignore[attr-defined]
    return module


def test_parse_query_uses_llm_output_when_configured():
    cfg = Configuration(llm_provider="ollama")
    fake = _fake_llm_module(result={"category": "cafes", "keywords": ["matcha"], "max_price": 8})
    with patch.dict(sys.modules, {"services.query_llm": fake}):
        intent = parse_query(cfg, "matcha latte under 8 bucks")
    assert intent.filters.category is VendorCategory.CAFES
    assert intent.filters.keywords == ("matcha",)
    assert intent.filters.max_price == 8.0


def test_parse_query_falls_back_to_rules_on_llm_failure():
    cfg = Configuration(llm_provider="ollama")
    fake = _fake_llm_module(error=RuntimeError("connection refused"))
    with patch.dict(sys.modules, {"services.query_llm": fake}):
        intent = parse_query(cfg, "spicy ramen under $15")
    assert intent.filters.keywords == ("japanese", "ramen", "spicy")


def test_quick_suggestions_cover_predefined_types():
    suggestions = quick_suggestions()
    kinds = [s.intent.search_type for s in suggestions]
    assert len(suggestions) == 5
    assert SearchType.CUSTOM not in kinds
    assert suggestions[0].text == "Best coffee near me"


def test_configured_default_distance_applies_to_custom_searches():
    cfg = Configuration(default_max_distance_m=500.0)
    assert build_custom_intent("x", {}, default_max_distance=500.0).filters.max_distance == 500.0
    assert parse_intent({"search_type": "custom"}, default_max_distance=500.0).filters.max_distance == 500.0
    assert parse_query(cfg, "pizza").filters.max_distance == 500.0
    # an explicit distance still wins, and templates keep their own radius
    assert parse_query(cfg, "pizza within 1 km").filters.max_distance == 1000.0
    assert intent_for_type("coffee", default_max_distance=500.0).filters.max_distance == 1500.0


def test_configured_default_distance_applies_to_llm_output():
    cfg = Configuration(llm_provider="ollama", default_max_distance_m=750.0)
    fake = _fake_llm_module(result={"keywords": ["tacos"]})
    with patch.dict(sys.modules, {"services.query_llm": fake}):
        intent = parse_query(cfg, "tacos")
    assert intent.filters.max_distance == 750.0
