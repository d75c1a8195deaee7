"""Utility helpers for the campus food ranking engine."""

from __future__ import annotations

import re
from typing import Any, Iterable, List, Optional


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    if not value:
        return "unset"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}...{value[-visible:]}"


def strip_thinking_tokens(text: str) -> str:
    """Remove <think>...</think> blocks if present."""
    if not text:
        return text
    while True:
        start = text.find("<think>")
        if start == -1:
            break
        end = text.find("</think>", start)
        if end == -1:
            break
        text = text[:start] + text[end + len("</think>") :]
    return text


def extract_json_object(text: str) -> Optional[str]:
    """Return the outermost {...} span of an LLM reply, ignoring code fences."""
    cleaned = re.sub(r"```(?:json)?", "", strip_thinking_tokens(text or "")).strip()
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return None
    return cleaned[start : end + 1]


def to_str_list(value: Any) -> List[str]:
    """Normalize a str / list / None payload into a deduplicated list of stripped strings."""
    if value is None:
        return []
    items: Iterable[Any] = value if isinstance(value, (list, tuple)) else [value]
    out: list[str] = []
    for item in items:
        s = str(item).strip()
        if s and s not in out:
            out.append(s)
    return out
