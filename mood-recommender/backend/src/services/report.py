from __future__ import annotations

from typing import Optional

from models import CATEGORIES, RecommendationSet

SECTION_HEADINGS = {
    "books": "📚 Books to Read",
    "meals": "🍽️ Meals to Enjoy",
    "activities": "✨ Things to Do",
}


def build_report(recs: RecommendationSet, feeling: Optional[str] = None) -> str:
    lines = ["## MoodMatch Recommendations", ""]
    if feeling:
        lines += [f"- Feeling: {feeling}", ""]

    for key in CATEGORIES:
        items = getattr(recs, key)
        lines.append(f"### {SECTION_HEADINGS[key]}")
        if not items:
            lines += ["- Not available", ""]
            continue
        for idx, rec in enumerate(items, start=1):
            lines.append(f"{idx}. **{rec.title}**: {rec.reason}")
        lines.append("")

    return "\n".join(lines).rstrip() + "\n"
