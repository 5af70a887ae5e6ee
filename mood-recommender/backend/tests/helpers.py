"""Shared fixtures data and fakes for the test suite."""

from __future__ import annotations

import asyncio
import json
from typing import AsyncIterator, Iterable, List

SAMPLE = {
    "books": [
        {"title": "The Comfort Book", "reason": "Short, gentle reflections for a tired mind."},
        {"title": "Quiet", "reason": "Permission to slow down and recharge."},
        {"title": "The House in the Cerulean Sea", "reason": "A warm, low-stakes story [easy to read]."},
    ],
    "meals": [
        {"title": "Miso soup", "reason": "Light and soothing when energy is low."},
        {"title": "Oatmeal with berries", "reason": "Steady energy without effort."},
        {"title": "Roasted vegetable bowl", "reason": "One tray, little cleanup."},
    ],
    "activities": [
        {"title": "Ten-minute walk", "reason": "Fresh air resets an overloaded head."},
        {"title": "Early night", "reason": "Sleep is the fastest fix for tired."},
        {"title": "Brain dump journal", "reason": "Get the to-do list out of your head."},
    ],
}

SAMPLE_TEXT = json.dumps(SAMPLE, indent=2)


def chunked(text: str, size: int) -> List[str]:
    return [text[i : i + size] for i in range(0, len(text), size)]


async def token_stream(chunks: Iterable[str]) -> AsyncIterator[str]:
    for chunk in chunks:
        await asyncio.sleep(0)
        yield chunk


class FakeStreamer:
    """Stands in for an LLM streamer; records the prompts it was opened with."""

    def __init__(self, chunks: Iterable[str], open_error: Exception | None = None) -> None:
        self.chunks = list(chunks)
        self.open_error = open_error
        self.calls: list[tuple[str, str]] = []

    async def open_stream(self, system: str, user: str) -> AsyncIterator[str]:
        self.calls.append((system, user))
        if self.open_error is not None:
            raise self.open_error
        return token_stream(self.chunks)


async def _drain(agen) -> list:
    return [item async for item in agen]


def collect(agen) -> list:
    return asyncio.run(_drain(agen))


def parse_sse(body: str) -> list[dict]:
    return [json.loads(line[len("data: ") :]) for line in body.split("\n") if line.startswith("data: ")]
