from __future__ import annotations

import hashlib
import threading
import time
from typing import Dict, Iterable, List, Optional, Tuple

from config import Configuration
from models import Coordinate, FoodIntent, FoodResult, Vendor


def _vendor_fingerprint(v: Vendor) -> str:
    # every field the filter, scorer and result assembly read
    recent = v.friends_activity.recent_visits if v.friends_activity else []
    visits = ",".join(f"{fv.friend_name}/{fv.days_ago}" for fv in recent)
    return "~".join(
        [
            v.id,
            v.name,
            v.category.value,
            v.price_tier.value,
            v.cuisine or "",
            ",".join(v.tags),
            str(v.is_open),
            repr(v.rating),
            f"{v.location.lat:.6f},{v.location.lon:.6f}",
            str(v.friends_loved),
            visits,
        ]
    )


def cache_key(
    intent: FoodIntent,
    user_location: Coordinate,
    catalog: Iterable[Vendor],
    cfg: Optional[Configuration] = None,
) -> str:
    """Key on the intent, the exact location, the catalog contents and the ranking settings."""
    f = intent.filters
    cfg = cfg or Configuration()
    vendor_part = "|".join(sorted(_vendor_fingerprint(v) for v in catalog))
    settings = (
        f"{cfg.weight_distance},{cfg.weight_rating},{cfg.weight_keywords},{cfg.weight_social},"
        f"{cfg.average_item_price},{cfg.walk_speed_m_per_min}"
    )
    raw = (
        f"{intent.search_type.value}|{intent.display_text}|{f.max_distance}|{f.max_price}|{f.min_rating}|"
        f"{f.category.value if f.category else ''}|{','.join(f.keywords)}|"
        f"{user_location.lat!r},{user_location.lon!r}|{settings}|{vendor_part}"
    )
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()


class ResultCache:
    """Simple in-memory TTL cache of ranked results."""

    def __init__(self, ttl_sec: int = 300, max_entries: int = 256) -> None:
        self._entries: Dict[str, Tuple[float, List[FoodResult]]] = {}
        self._lock = threading.Lock()
        self.ttl_sec = ttl_sec
        self.max_entries = max_entries

    def get(self, key: str) -> Optional[List[FoodResult]]:
        with self._lock:
            self._cleanup()
            entry = self._entries.get(key)
            if entry is None:
                return None
            return list(entry[1])

    def put(self, key: str, results: List[FoodResult]) -> None:
        if not key:
            return
        with self._lock:
            self._cleanup()
            if key not in self._entries and len(self._entries) >= self.max_entries:
                oldest = min(self._entries, key=lambda k: self._entries[k][0])
                del self._entries[oldest]
            self._entries[key] = (time.time(), list(results))

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _cleanup(self) -> None:
        """Remove expired entries."""
        now = time.time()
        expired = [k for k, (ts, _) in self._entries.items() if now - ts > self.ttl_sec]
        for k in expired:
            del self._entries[k]
