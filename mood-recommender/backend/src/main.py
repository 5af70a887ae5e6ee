from __future__ import annotations

import os
from typing import Any, AsyncIterator, Optional

import requests
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response, StreamingResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger
from pydantic import BaseModel, Field, field_validator

from config import Configuration
from services.events import format_sse
from services.generator import generate_events, open_recommendation_stream
from services.llm import init_llm

STATIC_DIR = os.path.join(os.path.dirname(__file__), "static")

app = FastAPI(title="MoodMatch - Personalized Recommendations")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/static", StaticFiles(directory=STATIC_DIR), name="static")

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@app.get("/")
def index() -> FileResponse:
    return FileResponse(os.path.join(STATIC_DIR, "index.html"))


@app.get("/favicon.ico")
def favicon() -> Response:
    # Avoid noisy 404 in logs if browser asks for favicon
    return Response(status_code=204)


class ChatRequest(BaseModel):
    feeling: str = Field(..., description="Free-text description of how the user feels")

    @field_validator("feeling")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("feeling must not be empty")
        return value


def _error_response(error: str, details: str) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": error, "details": details})


@app.exception_handler(RequestValidationError)
async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("invalid request body on {}: {}", request.url.path, exc.errors())
    return _error_response("Invalid request body", str(exc))


@app.get("/healthz")
def healthz() -> dict:
    cfg = Configuration.from_env()
    logger.info("cfg: {}", cfg.log_summary())
    return {"status": "ok"}


@app.get("/health/llm")
def health_llm() -> dict:
    cfg = Configuration.from_env()
    provider = cfg.provider
    ok = False
    detail: Optional[Any] = None
    try:
        if provider == "google":
            ok = bool(cfg.llm_api_key)
            detail = cfg.resolved_model_id()
        else:
            base = (cfg.resolved_base_url() or "https://api.openai.com/v1").rstrip("/")
            headers = {"Authorization": f"Bearer {cfg.llm_api_key}"} if cfg.llm_api_key else {}
            r = requests.get(f"{base}/models", headers=headers, timeout=5)
            ok = r.ok
            detail = r.status_code
    except Exception as exc:
        ok = False
        detail = str(exc)
    return {"ok": ok, "provider": provider, "detail": detail}


@app.post("/api/chat")
async def chat(req: ChatRequest):
    """
    SSE streaming endpoint for mood-based recommendations.
    Emits progress/partial events as each section completes, then complete or error.
    """
    try:
        cfg = Configuration.from_env()
        llm = init_llm(cfg)
        tokens = await open_recommendation_stream(llm, req.feeling)
    except Exception as exc:
        logger.exception("failed to start recommendation stream: {}", exc)
        return _error_response("Failed to get response from AI", str(exc))

    logger.info("streaming recommendations for feeling of {} chars", len(req.feeling))

    async def event_stream(tokens: AsyncIterator[str]) -> AsyncIterator[str]:
        async for event in generate_events(tokens):
            yield format_sse(event)

    return StreamingResponse(
        event_stream(tokens),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8010, reload=True)
