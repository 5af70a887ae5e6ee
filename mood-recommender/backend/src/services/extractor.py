"""Incremental extraction of recommendation sections from a streaming LLM reply.

The model is asked for a single JSON object of the form
``{"books": [...], "meals": [...], "activities": [...]}``. While tokens are still
arriving the buffer is not valid JSON, but each array becomes parseable on its
own as soon as its closing bracket arrives. ``SectionExtractor`` watches for
that moment and hands each section out exactly once.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger

from models import CATEGORIES, is_complete_section
from utils import strip_code_fence, strip_thinking_tokens


class RecommendationParseError(ValueError):
    """Raised when the finished model reply does not contain a usable JSON object."""


def _key_pattern(key: str) -> re.Pattern[str]:
    return re.compile(r'"' + re.escape(key) + r'"\s*:\s*\[')


_KEY_PATTERNS = {key: _key_pattern(key) for key in CATEGORIES}


def _match_bracket(text: str, open_idx: int) -> int:
    """Index of the ``]`` closing the array opened at ``open_idx``, or -1 if not yet present.

    Brackets inside string literals are ignored.
    """
    depth = 0
    in_string = False
    escaped = False
    for i in range(open_idx, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "[":
            depth += 1
        elif ch == "]":
            depth -= 1
            if depth == 0:
                return i
    return -1


def find_section(buffer: str, key: str, start: int = 0) -> Optional[Tuple[List[Dict[str, Any]], int]]:
    """Return ``(items, end)`` for a complete ``key`` array found at or after ``start``.

    ``end`` is the index just past the closing bracket. Returns None while the
    array is missing, unterminated, unparseable or not a complete section.
    """
    pattern = _KEY_PATTERNS.get(key) or _key_pattern(key)
    match = pattern.search(buffer, start)
    if match is None:
        return None
    open_idx = match.end() - 1
    close_idx = _match_bracket(buffer, open_idx)
    if close_idx == -1:
        return None
    try:
        items = json.loads(buffer[open_idx : close_idx + 1])
    except json.JSONDecodeError:
        return None
    if not is_complete_section(items):
        return None
    return items, close_idx + 1


class SectionExtractor:
    """Accumulates streamed text and reports each category once its array is complete.

    Categories are attempted strictly in ``CATEGORIES`` order, and each search
    starts after the previous section's closing bracket, so a key mentioned
    inside an earlier section's text is never mistaken for the next section.
    Anything out of order is left for the end-of-stream parse.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._cursor = 0
        self.emitted: List[str] = []

    @property
    def buffer(self) -> str:
        return self._buffer

    @property
    def pending(self) -> List[str]:
        return [key for key in CATEGORIES if key not in self.emitted]

    def feed(self, chunk: str) -> List[Tuple[str, List[Dict[str, Any]]]]:
        if not chunk:
            return []
        self._buffer += chunk
        ready: List[Tuple[str, List[Dict[str, Any]]]] = []
        for key in self.pending:
            found = find_section(self._buffer, key, self._cursor)
            if found is None:
                # sequential gating: later sections wait for this one
                break
            items, end = found
            self._cursor = end
            self.emitted.append(key)
            logger.debug("section {} complete at offset {}", key, end)
            ready.append((key, items))
        return ready


def parse_final(text: str) -> Dict[str, Any]:
    """Parse the full reply: drop think blocks and a markdown fence, then take the first ``{`` .. last ``}``."""
    content = strip_code_fence(strip_thinking_tokens(text or "").strip())
    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end == -1 or start >= end:
        raise RecommendationParseError("No valid JSON found in response")
    try:
        data = json.loads(content[start : end + 1])
    except json.JSONDecodeError as exc:
        raise RecommendationParseError(f"Invalid JSON in response: {exc}") from exc
    if not isinstance(data, dict):
        raise RecommendationParseError("Response JSON is not an object")
    return data


def missing_categories(data: Dict[str, Any]) -> List[str]:
    """Categories that are absent or not a JSON array."""
    return [key for key in CATEGORIES if not isinstance(data.get(key), list)]
