"""Client side of the recommendation stream.

``SSEDecoder`` turns raw response bytes into events, ``apply_event`` folds
events into a ``ViewState`` and ``RecommendationRequester`` drives one
POST /api/chat cycle with ``requests``.
"""

from __future__ import annotations

import codecs
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests
from loguru import logger

from models import CATEGORIES, STAGE_MESSAGES

EVENT_PREFIX = "data: "
GENERIC_ERROR = "Sorry, I encountered an error. Please try again."
REQUEST_FAILED = "Failed to get recommendations"
INCOMPLETE_STREAM = "Stream ended before recommendations were complete"

STAGE_PERCENT = {"analyzing": 25, "books": 50, "meals": 75, "activities": 100}


class SSEDecoder:
    """Incremental ``data:`` line decoder.

    Bytes may split anywhere, including inside a multi-byte character or a
    line; the unterminated tail is carried into the next ``feed``.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> List[Dict[str, Any]]:
        self._buffer += self._decoder.decode(chunk)
        return self._drain()

    def close(self) -> List[Dict[str, Any]]:
        """Flush at end of input. A final line without a newline is still parsed."""
        self._buffer += self._decoder.decode(b"", final=True)
        events = self._drain()
        event = _parse_line(self._buffer)
        self._buffer = ""
        if event is not None:
            events.append(event)
        return events

    def _drain(self) -> List[Dict[str, Any]]:
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        events: List[Dict[str, Any]] = []
        for line in lines:
            event = _parse_line(line)
            if event is not None:
                events.append(event)
        return events


def _parse_line(line: str) -> Optional[Dict[str, Any]]:
    line = line.rstrip("\r")
    if not line.startswith(EVENT_PREFIX):
        return None
    try:
        event = json.loads(line[len(EVENT_PREFIX) :])
    except json.JSONDecodeError:
        logger.debug("skipping malformed event line: {!r}", line[:80])
        return None
    if not isinstance(event, dict):
        return None
    return event


@dataclass
class ViewState:
    loading: bool = False
    error: Optional[str] = None
    stage: str = "analyzing"
    message: str = STAGE_MESSAGES["analyzing"]
    recommendations: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    completed: bool = False

    def clear(self) -> None:
        self.loading = False
        self.error = None
        self.stage = "analyzing"
        self.message = STAGE_MESSAGES["analyzing"]
        self.recommendations = {}
        self.completed = False

    @property
    def progress_percent(self) -> int:
        return STAGE_PERCENT.get(self.stage, 0)

    @property
    def has_all_sections(self) -> bool:
        return all(key in self.recommendations for key in CATEGORIES)


def apply_event(state: ViewState, event: Dict[str, Any]) -> None:
    kind = event.get("type")
    if kind == "progress":
        state.stage = event.get("stage") or state.stage
        state.message = event.get("message") or ""
    elif kind == "partial":
        section = event.get("section")
        if section:
            state.recommendations[section] = event.get("data") or []
    elif kind == "complete":
        data = event.get("data")
        if not isinstance(data, dict):
            logger.debug("ignoring complete event without an object payload: {!r}", data)
            return
        state.recommendations = dict(data)
        state.loading = False
        state.completed = True
    elif kind == "error":
        # sections already shown stay visible
        state.error = event.get("error") or GENERIC_ERROR
        state.loading = False
    else:
        logger.debug("ignoring unknown event type: {}", kind)


class RecommendationRequester:
    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        on_change: Optional[Callable[[ViewState], None]] = None,
        timeout: float = 120.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.on_change = on_change
        self.timeout = timeout
        self.state = ViewState()

    def _update(self, mutate: Callable[[ViewState], None]) -> None:
        mutate(self.state)
        if self.on_change is not None:
            self.on_change(self.state)

    def reset(self) -> None:
        self._update(ViewState.clear)

    def submit(self, feeling: str) -> ViewState:
        if not feeling.strip() or self.state.loading:
            return self.state

        def start(s: ViewState) -> None:
            s.clear()
            s.loading = True

        self._update(start)
        try:
            self._run(feeling)
        except Exception as exc:
            logger.warning("recommendation request failed: {}", exc)
            message = str(exc) or GENERIC_ERROR
            self._update(lambda s: apply_event(s, {"type": "error", "error": message}))
        return self.state

    def _run(self, feeling: str) -> None:
        with self.session.post(
            f"{self.base_url}/api/chat",
            json={"feeling": feeling},
            stream=True,
            timeout=self.timeout,
        ) as response:
            if not response.ok:
                raise RuntimeError(_error_message(response))
            self._consume(response.iter_content(chunk_size=None))

    def _consume(self, chunks: Iterable[bytes]) -> None:
        decoder = SSEDecoder()
        for chunk in chunks:
            for event in decoder.feed(chunk):
                self._dispatch(event)
        for event in decoder.close():
            self._dispatch(event)
        if self.state.loading:
            raise RuntimeError(INCOMPLETE_STREAM)

    def _dispatch(self, event: Dict[str, Any]) -> None:
        self._update(lambda s: apply_event(s, event))


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return REQUEST_FAILED
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return REQUEST_FAILED
