from __future__ import annotations

import json
from typing import Any, Dict, List

from models import STAGE_MESSAGES

StreamEvent = Dict[str, Any]


def progress_event(stage: str, message: str | None = None) -> StreamEvent:
    return {"type": "progress", "stage": stage, "message": message or STAGE_MESSAGES.get(stage, "")}


def partial_event(section: str, items: List[Dict[str, Any]]) -> StreamEvent:
    return {"type": "partial", "section": section, "data": items}


def complete_event(data: Dict[str, Any]) -> StreamEvent:
    return {"type": "complete", "data": data}


def error_event(message: str) -> StreamEvent:
    return {"type": "error", "error": message}


def format_sse(event: StreamEvent) -> str:
    """Frame one event as a server-sent event line."""
    return f"data: {json.dumps(event, ensure_ascii=False)}\n\n"
