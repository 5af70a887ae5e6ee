"""Utility helpers for the mood recommender."""

from __future__ import annotations

import re
from typing import Optional

_FENCE_OPEN = re.compile(r"^```(?:json)?\n?")
_FENCE_CLOSE = re.compile(r"\n?```$")


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


def strip_code_fence(text: str) -> str:
    """Remove a leading ``` / ```json fence and its closing ``` if the text starts with one."""
    if not text.startswith("```"):
        return text
    return _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", text, count=1), count=1)
