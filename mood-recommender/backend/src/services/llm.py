"""Token-streaming LLM clients.

Each streamer exposes ``open_stream(system, user)``. Awaiting it performs the
upstream request, so connection and auth problems surface before any event is
sent to the browser; the returned async iterator yields text fragments and
releases the upstream connection when it is exhausted or closed.
"""

from __future__ import annotations

from typing import AsyncIterator, Protocol, Union

from google import genai
from google.genai import types
from loguru import logger
from openai import AsyncOpenAI

from config import Configuration


class ChatStreamer(Protocol):
    async def open_stream(self, system: str, user: str) -> AsyncIterator[str]: ...


class OpenAIChatStreamer:
    """OpenAI chat completions with ``stream=True``; also serves Ollama's /v1 endpoint."""

    def __init__(self, cfg: Configuration) -> None:
        self.cfg = cfg
        self.model_id = cfg.resolved_model_id()
        self._client = AsyncOpenAI(
            # the SDK insists on a key even for local servers
            api_key=cfg.llm_api_key or "ollama",
            base_url=cfg.resolved_base_url(),
            timeout=cfg.llm_timeout,
        )

    async def open_stream(self, system: str, user: str) -> AsyncIterator[str]:
        stream = await self._client.chat.completions.create(
            model=self.model_id,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            temperature=self.cfg.llm_temperature,
            max_tokens=self.cfg.llm_max_tokens,
            stream=True,
        )
        logger.debug("openai stream opened model={}", self.model_id)
        return self._iter_content(stream)

    @staticmethod
    async def _iter_content(stream) -> AsyncIterator[str]:
        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content
        finally:
            await stream.close()


class GeminiChatStreamer:
    def __init__(self, cfg: Configuration) -> None:
        self.cfg = cfg
        self.model_id = cfg.resolved_model_id()
        self._client = genai.Client(api_key=cfg.llm_api_key)

    async def open_stream(self, system: str, user: str) -> AsyncIterator[str]:
        stream = await self._client.aio.models.generate_content_stream(
            model=self.model_id,
            contents=user,
            config=types.GenerateContentConfig(
                system_instruction=system,
                temperature=self.cfg.llm_temperature,
                max_output_tokens=self.cfg.llm_max_tokens,
            ),
        )
        # the SDK sends the request on first iteration; pull one chunk so failures surface here
        try:
            first = await stream.__anext__()
        except StopAsyncIteration:
            first = None
        logger.debug("gemini stream opened model={}", self.model_id)
        return self._iter_text(stream, first)

    @staticmethod
    async def _iter_text(stream, first) -> AsyncIterator[str]:
        try:
            if first is not None and first.text:
                yield first.text
            async for chunk in stream:
                if chunk.text:
                    yield chunk.text
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()


def init_llm(cfg: Configuration) -> Union[OpenAIChatStreamer, GeminiChatStreamer]:
    """Pick the streamer for the configured provider."""
    cfg.require_llm()
    if cfg.provider == "google":
        logger.debug("Using Gemini model: {}", cfg.resolved_model_id())
        return GeminiChatStreamer(cfg)
    logger.debug("Using OpenAI-compatible model: {} base={}", cfg.resolved_model_id(), cfg.resolved_base_url() or "default")
    return OpenAIChatStreamer(cfg)
