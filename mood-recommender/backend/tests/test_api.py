from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

import main
from helpers import SAMPLE, SAMPLE_TEXT, FakeStreamer, chunked, parse_sse


@pytest.fixture
def client() -> TestClient:
    return TestClient(main.app)


def _use_llm(monkeypatch: pytest.MonkeyPatch, llm) -> None:
    monkeypatch.setattr(main, "init_llm", lambda cfg: llm)


def test_chat_streams_events(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    llm = FakeStreamer(chunked(SAMPLE_TEXT, 11))
    _use_llm(monkeypatch, llm)

    with client.stream("POST", "/api/chat", json={"feeling": "overwhelmed and tired"}) as resp:
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        assert resp.headers["cache-control"] == "no-cache"
        body = "".join(resp.iter_text())

    assert body.endswith("\n\n")
    events = parse_sse(body)
    assert [e["type"] for e in events] == [
        "progress", "progress", "partial", "progress", "partial", "progress", "partial", "complete",
    ]
    assert events[-1]["data"] == SAMPLE
    assert llm.calls[0][1] == "How are you feeling? overwhelmed and tired"


def test_chat_stream_error_event(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    _use_llm(monkeypatch, FakeStreamer(["not json at all"]))

    resp = client.post("/api/chat", json={"feeling": "meh"})

    assert resp.status_code == 200
    events = parse_sse(resp.text)
    assert events[-1] == {"type": "error", "error": "No valid JSON found in response"}
    assert not any(e["type"] == "complete" for e in events)


def test_setup_failure_returns_json_error(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    _use_llm(monkeypatch, FakeStreamer([], open_error=ConnectionError("connection refused")))

    resp = client.post("/api/chat", json={"feeling": "meh"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to get response from AI", "details": "connection refused"}


def test_missing_credentials_returns_json_error(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("LLM_PROVIDER", "LLM_API_KEY", "OPENAI_API_KEY", "GEMINI_API_KEY"):
        monkeypatch.delenv(name, raising=False)

    resp = client.post("/api/chat", json={"feeling": "meh"})

    assert resp.status_code == 500
    assert resp.json()["error"] == "Failed to get response from AI"
    assert "LLM_API_KEY" in resp.json()["details"]


@pytest.mark.parametrize("payload", [{}, {"feeling": "   "}, {"mood": "sad"}])
def test_bad_body_returns_json_error(client: TestClient, payload: dict) -> None:
    resp = client.post("/api/chat", json=payload)

    assert resp.status_code == 500
    body = resp.json()
    assert body["error"] == "Invalid request body"
    assert body["details"]


def test_index_and_health(client: TestClient) -> None:
    assert "MoodMatch" in client.get("/").text
    assert client.get("/healthz").json() == {"status": "ok"}
    assert client.get("/favicon.ico").status_code == 204


def test_gemini_rejection_returns_json_error(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    from types import SimpleNamespace

    from config import Configuration
    from services.llm import GeminiChatStreamer

    async def rejected():
        raise PermissionError("API key not valid")
        yield  # pragma: no cover

    async def fake_generate_content_stream(**kwargs):
        return rejected()

    streamer = GeminiChatStreamer(Configuration(llm_provider="google", llm_api_key="g-bad"))
    streamer._client = SimpleNamespace(
        aio=SimpleNamespace(models=SimpleNamespace(generate_content_stream=fake_generate_content_stream))
    )
    _use_llm(monkeypatch, streamer)

    resp = client.post("/api/chat", json={"feeling": "meh"})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to get response from AI", "details": "API key not valid"}
