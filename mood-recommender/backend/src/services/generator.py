from __future__ import annotations

from typing import AsyncIterator

from loguru import logger

from services.events import StreamEvent, complete_event, error_event, partial_event, progress_event
from services.extractor import RecommendationParseError, SectionExtractor, missing_categories, parse_final
from services.llm import ChatStreamer

SYSTEM_PROMPT = """You are a compassionate AI wellness companion. Based on the user's feelings, provide personalized recommendations.

CRITICAL: You MUST respond with ONLY a valid JSON object. Do not include any markdown formatting, code blocks, or explanatory text. Start directly with the opening brace { and end with the closing brace }.

The JSON must follow this exact structure:
{
  "books": [
    { "title": "Book Title", "reason": "Why this book matches their feelings" },
    { "title": "Book Title", "reason": "Why this book matches their feelings" },
    { "title": "Book Title", "reason": "Why this book matches their feelings" }
  ],
  "meals": [
    { "title": "Meal Name", "reason": "Why this meal matches their feelings" },
    { "title": "Meal Name", "reason": "Why this meal matches their feelings" },
    { "title": "Meal Name", "reason": "Why this meal matches their feelings" }
  ],
  "activities": [
    { "title": "Activity Name", "reason": "Why this activity matches their feelings" },
    { "title": "Activity Name", "reason": "Why this activity matches their feelings" },
    { "title": "Activity Name", "reason": "Why this activity matches their feelings" }
  ]
}

Always provide exactly 3 suggestions for each category. Return ONLY the raw JSON object, nothing else."""


def build_user_message(feeling: str) -> str:
    return f"How are you feeling? {feeling}"


async def open_recommendation_stream(llm: ChatStreamer, feeling: str) -> AsyncIterator[str]:
    """Start the upstream completion. Failures here happen before any SSE output."""
    return await llm.open_stream(SYSTEM_PROMPT, build_user_message(feeling))


async def generate_events(tokens: AsyncIterator[str]) -> AsyncIterator[StreamEvent]:
    """
    Turn a model token stream into progress/partial/complete/error events.

    Sections are relayed as soon as their arrays close in the buffer. When the
    stream ends the whole reply is parsed; sections the incremental pass missed
    are sent from that parse, followed by one ``complete``. Exactly one terminal
    event (``complete`` or ``error``) is produced.
    """
    extractor = SectionExtractor()
    yield progress_event("analyzing")
    try:
        try:
            async for token in tokens:
                for section, items in extractor.feed(token):
                    yield progress_event(section)
                    yield partial_event(section, items)
        except Exception as exc:
            logger.exception("upstream stream failed: {}", exc)
            yield error_event(str(exc) or exc.__class__.__name__)
            return

        try:
            data = parse_final(extractor.buffer)
        except RecommendationParseError as exc:
            logger.warning("final parse failed: {} (buffer length {})", exc, len(extractor.buffer))
            yield error_event(str(exc))
            return

        missing = missing_categories(data)
        if missing:
            logger.warning("response missing or invalid sections: {}", missing)
            yield error_event(f"Response has missing or invalid sections: {', '.join(missing)}")
            return

        for section in extractor.pending:
            logger.debug("section {} recovered from final parse", section)
            yield partial_event(section, data[section])

        logger.info("recommendations complete (incremental sections: {})", extractor.emitted)
        yield complete_event(data)
    finally:
        # runs on normal exit and on cancellation when the client disconnects
        aclose = getattr(tokens, "aclose", None)
        if aclose is not None:
            await aclose()
