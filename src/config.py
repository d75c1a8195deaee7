from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, Field

from utils import mask_secret


class Configuration(BaseModel):
    # Vendor catalog
    catalog_url: Optional[str] = Field(default=None)
    catalog_api_key: Optional[str] = Field(default=None)
    catalog_path: Optional[str] = Field(default=None)
    catalog_timeout: int = Field(default=10)

    # Ranking defaults
    default_max_distance_m: float = Field(default=2000.0)
    walk_speed_m_per_min: float = Field(default=80.0)
    average_item_price: float = Field(default=10.0)
    max_results: int = Field(default=20)
    result_cache_ttl: int = Field(default=300)

    # Score weights, see services/scoring.py
    weight_distance: float = Field(default=0.35)
    weight_rating: float = Field(default=0.25)
    weight_keywords: float = Field(default=0.20)
    weight_social: float = Field(default=0.20)

    log_level: str = Field(default="INFO")

    # LLM (optional, used only for free-text query parsing)
    local_llm: Optional[str] = Field(default=None)
    llm_provider: Optional[str] = Field(default=None)
    llm_api_key: Optional[str] = Field(default=None)
    llm_base_url: Optional[str] = Field(default=None)
    llm_model_id: Optional[str] = Field(default=None)
    # native ollama base (without /v1)
    ollama_base_url: str = Field(default="http://localhost:11434")

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "catalog_url": os.getenv("CATALOG_URL"),
            "catalog_api_key": os.getenv("CATALOG_API_KEY"),
            "catalog_path": os.getenv("CATALOG_PATH"),
            "catalog_timeout": os.getenv("CATALOG_TIMEOUT"),
            "default_max_distance_m": os.getenv("DEFAULT_MAX_DISTANCE_M"),
            "walk_speed_m_per_min": os.getenv("WALK_SPEED_M_PER_MIN"),
            "average_item_price": os.getenv("AVERAGE_ITEM_PRICE"),
            "max_results": os.getenv("MAX_RESULTS"),
            "result_cache_ttl": os.getenv("RESULT_CACHE_TTL"),
            "weight_distance": os.getenv("WEIGHT_DISTANCE"),
            "weight_rating": os.getenv("WEIGHT_RATING"),
            "weight_keywords": os.getenv("WEIGHT_KEYWORDS"),
            "weight_social": os.getenv("WEIGHT_SOCIAL"),
            "log_level": os.getenv("LOG_LEVEL"),
            # LLM
            "local_llm": os.getenv("LOCAL_LLM"),
            "llm_provider": os.getenv("LLM_PROVIDER"),
            "llm_api_key": os.getenv("LLM_API_KEY"),
            "llm_base_url": os.getenv("LLM_BASE_URL"),
            "llm_model_id": os.getenv("LLM_MODEL_ID"),
            "ollama_base_url": os.getenv("OLLAMA_BASE_URL"),
        }

        for k, v in env_map.items():
            if v is None:
                continue
            raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    @property
    def llm_enabled(self) -> bool:
        return bool(self.llm_provider or self.llm_base_url or self.local_llm)

    def require_catalog(self) -> None:
        if not (self.catalog_url or self.catalog_path):
            raise ValueError("CATALOG_URL or CATALOG_PATH is required when no vendors are supplied")

    def log_summary(self) -> str:
        return (
            "catalog_url=%s catalog_path=%s timeout=%s max_results=%s max_distance_m=%s llm=%s api_key=%s"
            % (
                self.catalog_url or "unset",
                self.catalog_path or "unset",
                self.catalog_timeout,
                self.max_results,
                self.default_max_distance_m,
                self.llm_provider or ("local" if self.local_llm else "off"),
                mask_secret(self.catalog_api_key),
            )
        )

    def sanitized_ollama_url(self) -> str:
        base = (self.ollama_base_url or "http://localhost:11434").rstrip("/")
        if not base.endswith("/v1"):
            base = f"{base}/v1"
        return base
