"""Data models for the mood recommender."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

CATEGORIES = ("books", "meals", "activities")
SECTION_SIZE = 3

STAGE_MESSAGES = {
    "analyzing": "Analyzing your feelings...",
    "books": "Finding books...",
    "meals": "Finding meals...",
    "activities": "Finding activities...",
}


@dataclass(frozen=True)
class Recommendation:
    title: str
    reason: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Recommendation":
        return cls(title=str(data.get("title") or ""), reason=str(data.get("reason") or ""))

    def to_dict(self) -> Dict[str, str]:
        return {"title": self.title, "reason": self.reason}


@dataclass
class RecommendationSet:
    books: List[Recommendation] = field(default_factory=list)
    meals: List[Recommendation] = field(default_factory=list)
    activities: List[Recommendation] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RecommendationSet":
        sections = {
            key: [Recommendation.from_dict(item) for item in (data.get(key) or []) if isinstance(item, Mapping)]
            for key in CATEGORIES
        }
        return cls(**sections)

    def to_dict(self) -> Dict[str, List[Dict[str, str]]]:
        return {key: [r.to_dict() for r in getattr(self, key)] for key in CATEGORIES}


def is_complete_section(items: Any) -> bool:
    """True for a list of exactly SECTION_SIZE objects with non-empty title and reason."""
    if not isinstance(items, list) or len(items) != SECTION_SIZE:
        return False
    for item in items:
        if not isinstance(item, dict):
            return False
        title, reason = item.get("title"), item.get("reason")
        if not (isinstance(title, str) and title):
            return False
        if not (isinstance(reason, str) and reason):
            return False
    return True
