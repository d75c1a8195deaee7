from __future__ import annotations

import sys
from typing import Any, Dict, List, Optional

import requests
from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field

from config import Configuration
from models import Coordinate, FoodIntent, FoodResult, Vendor
from services.catalog import CatalogError, load_catalog, parse_vendors
from services.intent_parser import parse_intent, parse_query, quick_suggestions
from services.ranking import rank
from services.report import build_report
from services.result_cache import ResultCache, cache_key

load_dotenv()

_startup_cfg = Configuration.from_env()
logger.remove()
logger.add(sys.stderr, level=_startup_cfg.log_level.upper())

app = FastAPI(title="Campus Meals Ranker")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

result_cache = ResultCache(ttl_sec=_startup_cfg.result_cache_ttl)


class FiltersPayload(BaseModel):
    max_distance: Optional[float] = Field(None, description="Search radius in meters")
    max_price: Optional[float] = None
    min_rating: Optional[float] = None
    category: Optional[str] = None
    keywords: Optional[List[str]] = None


class IntentPayload(BaseModel):
    display_text: str
    emoji: str
    search_type: str
    filters: FiltersPayload


class ParseRequest(BaseModel):
    query: str = Field(..., description="Free-text food search, e.g. 'spicy ramen under $15'")


class SearchRequest(BaseModel):
    query: Optional[str] = Field(None, description="Free-text search; ignored when search_type is set")
    search_type: Optional[str] = Field(None, description="coffee, high_protein, groceries, quick_breakfast, healthy_lunch or custom")
    display_text: Optional[str] = None
    emoji: Optional[str] = None
    filters: Optional[FiltersPayload] = None
    user_lat: float
    user_lon: float
    vendors: Optional[List[Dict[str, Any]]] = Field(None, description="Inline catalog; the configured catalog is used when omitted")
    limit: Optional[int] = Field(None, ge=1)


class VendorPayload(BaseModel):
    id: str
    name: str
    category: str
    cuisine: Optional[str] = None
    lat: float
    lon: float
    price_range: str
    rating: float
    delivery_fee: float = 0.0
    is_open: bool
    tags: List[str] = []
    wait_status: Optional[str] = None
    address: Optional[str] = None
    friends_loved: int = 0


class ResultPayload(BaseModel):
    vendor: VendorPayload
    distance_m: float
    walk_time_min: int
    match_score: int
    match_reason: str
    sub_scores: Dict[str, float] = {}
    social_proof: List[str] = []


class SearchResponse(BaseModel):
    intent: IntentPayload
    results: List[ResultPayload]
    total: int
    report_markdown: str


class SuggestionPayload(BaseModel):
    emoji: str
    text: str
    intent: IntentPayload


def _intent_payload(intent: FoodIntent) -> IntentPayload:
    f = intent.filters
    return IntentPayload(
        display_text=intent.display_text,
        emoji=intent.emoji,
        search_type=intent.search_type.value,
        filters=FiltersPayload(
            max_distance=f.max_distance,
            max_price=f.max_price,
            min_rating=f.min_rating,
            category=f.category.value if f.category else None,
            keywords=list(f.keywords),
        ),
    )


def _vendor_payload(v: Vendor) -> VendorPayload:
    return VendorPayload(
        id=v.id,
        name=v.name,
        category=v.category.value,
        cuisine=v.cuisine,
        lat=v.location.lat,
        lon=v.location.lon,
        price_range=v.price_tier.value,
        rating=v.rating,
        delivery_fee=v.delivery_fee,
        is_open=v.is_open,
        tags=list(v.tags),
        wait_status=v.wait_status.value if v.wait_status else None,
        address=v.address,
        friends_loved=v.friends_loved,
    )


def _result_payload(r: FoodResult) -> ResultPayload:
    return ResultPayload(
        vendor=_vendor_payload(r.vendor),
        distance_m=round(r.distance_m, 1),
        walk_time_min=r.walk_time_min,
        match_score=r.match_score,
        match_reason=r.match_reason,
        sub_scores=r.sub_scores,
        social_proof=r.social_proof,
    )


def _resolve_intent(cfg: Configuration, req: SearchRequest) -> FoodIntent:
    if req.search_type:
        return parse_intent(
            {
                "search_type": req.search_type,
                "display_text": req.display_text,
                "emoji": req.emoji,
                "filters": req.filters.model_dump(exclude_none=True) if req.filters else None,
            },
            default_max_distance=cfg.default_max_distance_m,
        )
    if req.query:
        return parse_query(cfg, req.query)
    raise ValueError("either query or search_type is required")


@app.get("/healthz")
def healthz() -> dict:
    cfg = Configuration.from_env()
    logger.info("cfg: {}", cfg.log_summary())
    return {"status": "ok"}


@app.get("/health/catalog")
def health_catalog() -> dict:
    cfg = Configuration.from_env()
    if cfg.catalog_path:
        return {"ok": True, "source": "file"}
    ok = False
    try:
        cfg.require_catalog()
        r = requests.get(f"{cfg.catalog_url.rstrip('/')}/vendors", params={"limit": 1}, timeout=cfg.catalog_timeout)
        ok = r.ok
    except (ValueError, requests.RequestException):
        ok = False
    return {"ok": ok, "source": "http"}


@app.get("/health/llm")
def health_llm() -> dict:
    cfg = Configuration.from_env()
    provider = (cfg.llm_provider or "").lower()
    ok = False
    detail = None
    try:
        if provider == "ollama":
            r = requests.get(f"{cfg.ollama_base_url.rstrip('/')}/api/tags", timeout=5)
            ok = r.ok
            if r.ok:
                detail = r.json().get("models", [])
        elif cfg.llm_base_url:
            # OpenAI-compatible
            r = requests.get(f"{cfg.llm_base_url.rstrip('/')}/models", timeout=5)
            ok = r.ok
    except (requests.RequestException, ValueError) as exc:
        ok = False
        detail = str(exc)
    return {"ok": ok, "provider": provider or "unset", "detail": detail}


@app.get("/suggestions", response_model=List[SuggestionPayload])
def suggestions() -> List[SuggestionPayload]:
    return [
        SuggestionPayload(emoji=s.emoji, text=s.text, intent=_intent_payload(s.intent))
        for s in quick_suggestions()
    ]


@app.post("/parse", response_model=IntentPayload)
def parse(req: ParseRequest) -> IntentPayload:
    cfg = Configuration.from_env()
    try:
        intent = parse_query(cfg, req.query)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return _intent_payload(intent)


@app.post("/search", response_model=SearchResponse)
def search(req: SearchRequest) -> SearchResponse:
    cfg = Configuration.from_env()
    try:
        intent = _resolve_intent(cfg, req)
        location = Coordinate(lat=req.user_lat, lon=req.user_lon)
        if not location.is_valid():
            raise ValueError("user_lat/user_lon is not a valid coordinate")

        if req.vendors is not None:
            catalog = parse_vendors(req.vendors)
        else:
            catalog = load_catalog(cfg, location, intent.filters.max_distance)

        key = cache_key(intent, location, catalog, cfg)
        results = result_cache.get(key)
        if results is None:
            results = rank(intent, location, catalog, cfg=cfg)
            result_cache.put(key, results)
        else:
            logger.debug("result cache hit for {}", intent.display_text)

        limit = req.limit or cfg.max_results
        shown = results[:limit]
        md = build_report(intent, location, shown)
        logger.info(
            "search type={} text={!r} catalog={} results={} top_score={}",
            intent.search_type.value,
            intent.display_text,
            len(catalog),
            len(results),
            shown[0].match_score if shown else None,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except CatalogError as exc:
        logger.error("catalog unavailable: {}", exc)
        raise HTTPException(status_code=502, detail="vendor catalog unavailable")
    except Exception as exc:
        logger.exception("search failed: {}", exc)
        raise HTTPException(status_code=500, detail="internal error")

    return SearchResponse(
        intent=_intent_payload(intent),
        results=[_result_payload(r) for r in shown],
        total=len(results),
        report_markdown=md,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8010, reload=True)
