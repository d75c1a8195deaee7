from __future__ import annotations

import json
import time
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple

import requests
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from config import Configuration
from models import (
    Coordinate,
    FriendsActivity,
    FriendVisit,
    PriceTier,
    Vendor,
    VendorCategory,
    WaitStatus,
)
from services.geo import expand_bbox_from_center


class CatalogError(RuntimeError):
    pass


class FriendVisitRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    friend_name: str = Field(alias="friendName")
    days_ago: int = Field(default=0, alias="daysAgo", ge=0)


class FriendsActivityRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_friends_loved: int = Field(default=0, alias="totalFriendsLoved", ge=0)
    recent_visits: List[FriendVisitRecord] = Field(default_factory=list, alias="recentVisits")


class VendorRecord(BaseModel):
    """A vendor document as stored by the app (snake_case keys), validated at the boundary."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: str = Field(min_length=1)
    category: VendorCategory
    cuisine: Optional[str] = None
    rating: float = Field(ge=0.0, le=5.0)
    review_count: int = Field(default=0, ge=0)
    delivery_fee: float = Field(default=0.0, ge=0.0)
    price_range: PriceTier = PriceTier.MODERATE
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    address: Optional[str] = None
    is_open: bool
    tags: List[str] = Field(default_factory=list)
    wait_status: Optional[WaitStatus] = None
    dietary_highlights: List[str] = Field(default_factory=list)
    friends_activity: Optional[FriendsActivityRecord] = None

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, value: Any) -> VendorCategory:
        return VendorCategory.parse(value)

    @field_validator("price_range", mode="before")
    @classmethod
    def _price_range(cls, value: Any) -> PriceTier:
        return PriceTier.parse(value)

    @field_validator("wait_status", mode="before")
    @classmethod
    def _wait_status(cls, value: Any) -> Optional[WaitStatus]:
        if value is None or value == "":
            return None
        return WaitStatus.parse(value)

    @field_validator("tags", "dietary_highlights", mode="before")
    @classmethod
    def _string_list(cls, value: Any) -> List[str]:
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"expected a list of strings, got {type(value).__name__}")
        return [str(x).strip() for x in value if str(x).strip()]

    def to_vendor(self) -> Vendor:
        activity = None
        if self.friends_activity is not None:
            activity = FriendsActivity(
                total_friends_loved=self.friends_activity.total_friends_loved,
                recent_visits=[
                    FriendVisit(friend_name=v.friend_name, days_ago=v.days_ago)
                    for v in self.friends_activity.recent_visits
                ],
            )
        vendor_id = self.id or f"{self.name.strip().lower()}@{self.latitude:.5f},{self.longitude:.5f}"
        return Vendor(
            id=vendor_id,
            name=self.name.strip(),
            category=self.category,
            location=Coordinate(lat=self.latitude, lon=self.longitude),
            price_tier=self.price_range,
            rating=self.rating,
            is_open=self.is_open,
            cuisine=self.cuisine,
            delivery_fee=self.delivery_fee,
            tags=list(self.tags),
            wait_status=self.wait_status,
            friends_activity=activity,
            address=self.address,
            review_count=self.review_count,
            dietary_highlights=list(self.dietary_highlights),
        )


def parse_vendors(items: Iterable[Any]) -> List[Vendor]:
    """Validate raw vendor documents, dropping malformed ones."""
    vendors: list[Vendor] = []
    dropped = 0
    for idx, item in enumerate(items):
        try:
            vendors.append(VendorRecord.model_validate(item).to_vendor())
        except ValidationError as exc:
            dropped += 1
            name = item.get("name") if isinstance(item, dict) else None
            logger.warning("dropping vendor #{} ({}): {} validation errors", idx, name or "unnamed", exc.error_count())
    if dropped:
        logger.info("catalog parsed vendors={} dropped={}", len(vendors), dropped)
    return vendors


def _vendor_items(payload: Any) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("vendors"), list):
        return payload["vendors"]
    raise CatalogError("catalog payload must be a list or an object with a 'vendors' list")


def load_catalog_file(path: str | Path) -> List[Vendor]:
    p = Path(path)
    try:
        payload = json.loads(p.read_text(encoding="utf-8"))
    except OSError as exc:
        raise CatalogError(f"cannot read catalog file {p}: {exc}")
    except ValueError:
        raise CatalogError(f"catalog file {p} is not valid JSON")
    return parse_vendors(_vendor_items(payload))


@dataclass
class _RetryPolicy:
    retries: int = 3
    base_delay: float = 0.5


class CatalogClient:
    def __init__(self, cfg: Configuration) -> None:
        if not cfg.catalog_url:
            raise ValueError("CATALOG_URL is required")
        self.cfg = cfg
        self.base = cfg.catalog_url.rstrip("/")
        self.session = requests.Session()
        self.policy = _RetryPolicy()
        self._cache_ttl = 60 * 5  # 5 minutes
        self._cache_max = 64
        self._cache: OrderedDict[str, Tuple[float, List[Vendor]]] = OrderedDict()

    def _cache_get(self, key: str) -> Optional[List[Vendor]]:
        entry = self._cache.get(key)
        if not entry:
            return None
        ts, value = entry
        if time.time() - ts > self._cache_ttl:
            self._cache.pop(key, None)
            return None
        self._cache.move_to_end(key)
        return value

    def _cache_set(self, key: str, value: List[Vendor]) -> None:
        if len(self._cache) >= self._cache_max:
            self._cache.popitem(last=False)
        self._cache[key] = (time.time(), value)

    def _get(self, path: str, params: dict) -> Any:
        url = f"{self.base}{path}"
        headers = {"Accept": "application/json"}
        if self.cfg.catalog_api_key:
            headers["Authorization"] = f"Bearer {self.cfg.catalog_api_key}"
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self.session.get(url, headers=headers, params=params, timeout=self.cfg.catalog_timeout)
            except requests.RequestException as exc:  # network error
                if attempt <= self.policy.retries:
                    time.sleep(self.policy.base_delay * attempt)
                    continue
                raise CatalogError(f"request error: {exc}")

            if resp.status_code in (429, 500, 502, 503, 504):
                if attempt <= self.policy.retries:
                    time.sleep(self.policy.base_delay * attempt)
                    continue
                raise CatalogError(f"upstream {resp.status_code}: {resp.text[:300]}")

            if not resp.ok:
                raise CatalogError(f"upstream {resp.status_code}: {resp.text[:300]}")

            try:
                return resp.json()
            except ValueError:
                raise CatalogError("invalid json response")

    def fetch_vendors(self, center: Coordinate, radius_m: float) -> List[Vendor]:
        """Vendors inside a bbox around the center; the ranking filter applies the exact radius."""
        min_lon, min_lat, max_lon, max_lat = expand_bbox_from_center(center.lon, center.lat, radius_m / 1000.0)
        key = f"bbox:{min_lon:.4f},{min_lat:.4f},{max_lon:.4f},{max_lat:.4f}"
        cached = self._cache_get(key)
        if cached is not None:
            return list(cached)
        params = {
            "min_lon": f"{min_lon:.6f}",
            "min_lat": f"{min_lat:.6f}",
            "max_lon": f"{max_lon:.6f}",
            "max_lat": f"{max_lat:.6f}",
        }
        payload = self._get("/vendors", params)
        vendors = parse_vendors(_vendor_items(payload))
        self._cache_set(key, list(vendors))
        logger.debug("catalog fetched vendors={} bbox={}", len(vendors), key)
        return vendors


_client: Optional[CatalogClient] = None


def load_catalog(cfg: Configuration, center: Coordinate, radius_m: float) -> List[Vendor]:
    """Load vendors from the configured file or remote catalog."""
    global _client
    cfg.require_catalog()
    if cfg.catalog_path:
        return load_catalog_file(cfg.catalog_path)
    if _client is None or _client.base != (cfg.catalog_url or "").rstrip("/"):
        _client = CatalogClient(cfg)
    return _client.fetch_vendors(center, radius_m)
