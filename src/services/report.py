from __future__ import annotations

from typing import List

from models import Coordinate, FoodIntent, FoodResult

M_TO_MILES = 0.000621371


def _format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{meters:.0f} m"
    return f"{meters / 1000.0:.1f} km"


def build_report(intent: FoodIntent, user_location: Coordinate, results: List[FoodResult], *, top_n: int = 5) -> str:
    f = intent.filters
    price_text = f"${f.max_price:.0f}" if f.max_price is not None else "Not specified"
    header = [
        f"## {intent.emoji} {intent.display_text}",
        "",
        f"- Search type: {intent.search_type.value}",
        f"- Location: {user_location.lat:.5f}, {user_location.lon:.5f}",
        f"- Radius: {_format_distance(f.max_distance)} (~{f.max_distance * M_TO_MILES:.1f} miles)",
        f"- Category: {f.category.value if f.category else 'Any'}",
        f"- Max price: {price_text}",
        f"- Min rating: {f.min_rating if f.min_rating is not None else 'Not specified'}",
        f"- Keywords: {', '.join(f.keywords) if f.keywords else 'Not specified'}",
        "",
    ]

    lines = header
    if not results:
        lines.append("_No open vendors match this search nearby._")
        return "\n".join(lines)

    lines.append("### Top Picks")
    for idx, r in enumerate(results[:top_n], start=1):
        v = r.vendor
        friends = ", ".join(r.social_proof[:3])
        lines += [
            f"#### {idx}. {v.name}",
            f"- Match: {r.match_score}/100 ({r.match_reason})",
            f"- Walk: {r.walk_time_min} min ({_format_distance(r.distance_m)})",
            f"- Price: {v.price_tier.value} · Rating: {v.rating:.1f}/5",
            f"- Cuisine: {v.cuisine or 'Not provided'}",
            f"- Address: {v.address or 'Not provided'}",
            (f"- Friends: {friends}" if friends else "- Friends: no recent visits"),
            "",
        ]

    if len(results) > top_n:
        lines.append(f"_{len(results) - top_n} more result(s) not shown._")

    return "\n".join(lines)
