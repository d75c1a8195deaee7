from __future__ import annotations

import json
from typing import Any

from hello_agents import HelloAgentsLLM, ToolAwareSimpleAgent
from loguru import logger

from config import Configuration
from utils import extract_json_object, to_str_list

SYSTEM_PROMPT = (
    "You are a search parser for a campus food discovery app.\n"
    "Return a JSON object only, using the keys: category, keywords, max_price, min_rating, max_distance. "
    "category is one of restaurants, groceries, convenience, cafes, desserts, alcohol or null. "
    "keywords is an array of short cuisine, dish or dietary words. max_price is the per-item budget in dollars, "
    "min_rating is between 0 and 5, max_distance is in meters. Use null for anything not mentioned.\n"
    "Example query: \"spicy ramen under $15\"\n"
    "Example: {\"category\":\"restaurants\",\"keywords\":[\"ramen\",\"spicy\"],\"max_price\":15,"
    "\"min_rating\":null,\"max_distance\":null}"
)

ALLOWED_KEYS = ("category", "keywords", "max_price", "min_rating", "max_distance")


class SearchQueryParser:
    def __init__(self, cfg: Configuration) -> None:
        self.cfg = cfg
        self.llm = self._init_llm(cfg)
        self.agent = ToolAwareSimpleAgent(
            name="SearchQueryParser",
            llm=self.llm,
            system_prompt=SYSTEM_PROMPT,
            enable_tool_calling=False,
        )

    def _init_llm(self, cfg: Configuration) -> HelloAgentsLLM:
        kwargs: dict[str, Any] = {"temperature": 0.0}
        if cfg.llm_model_id or cfg.local_llm:
            kwargs["model"] = cfg.llm_model_id or cfg.local_llm
        if cfg.llm_provider:
            kwargs["provider"] = cfg.llm_provider
        # prefer explicit llm_base_url; for ollama, fallback to sanitized /v1
        if cfg.llm_base_url:
            kwargs["base_url"] = cfg.llm_base_url
        elif (cfg.llm_provider or "").lower() == "ollama":
            kwargs["base_url"] = cfg.sanitized_ollama_url()
        if cfg.llm_api_key:
            kwargs["api_key"] = cfg.llm_api_key
        return HelloAgentsLLM(**kwargs)

    def parse(self, text: str) -> dict[str, Any]:
        """Return a filters mapping for build_custom_intent; raises ValueError on unusable output."""
        raw = self.agent.run(f"Query: {text}")
        self.agent.clear_history()
        payload = extract_json_object(raw)
        if payload is None:
            raise ValueError("llm reply did not contain a JSON object")
        data = json.loads(payload)
        if not isinstance(data, dict):
            raise ValueError("llm reply is not a JSON object")

        filters = {k: data.get(k) for k in ALLOWED_KEYS if data.get(k) is not None}
        if "keywords" in filters:
            filters["keywords"] = [kw.lower() for kw in to_str_list(filters["keywords"])]
        logger.debug("llm parsed query {!r} -> {}", text, filters)
        return filters
