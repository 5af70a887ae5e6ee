from __future__ import annotations

import os
from typing import Any, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from utils import mask_secret

load_dotenv()


class Configuration(BaseModel):
    # LLM provider: "openai" (default), "ollama", "google" or any OpenAI-compatible endpoint
    llm_provider: Optional[str] = Field(default=None)
    llm_api_key: Optional[str] = Field(default=None)
    llm_base_url: Optional[str] = Field(default=None)
    llm_model_id: Optional[str] = Field(default=None)
    # native ollama base (without /v1)
    ollama_base_url: str = Field(default="http://localhost:11434")

    # Sampling
    llm_temperature: float = Field(default=0.8)
    llm_max_tokens: int = Field(default=1500)
    # seconds; applies to connect and to each read from the upstream stream
    llm_timeout: float = Field(default=60.0)

    # Client side
    server_url: str = Field(default="http://localhost:8010")

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "llm_provider": os.getenv("LLM_PROVIDER"),
            "llm_api_key": os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY") or os.getenv("GEMINI_API_KEY"),
            "llm_base_url": os.getenv("LLM_BASE_URL"),
            "llm_model_id": os.getenv("LLM_MODEL_ID"),
            "ollama_base_url": os.getenv("OLLAMA_BASE_URL"),
            "llm_temperature": os.getenv("LLM_TEMPERATURE"),
            "llm_max_tokens": os.getenv("LLM_MAX_TOKENS"),
            "llm_timeout": os.getenv("LLM_TIMEOUT"),
            "server_url": os.getenv("MOODMATCH_URL"),
        }

        for k, v in env_map.items():
            if v is None:
                continue
            raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    @property
    def provider(self) -> str:
        return (self.llm_provider or "openai").lower()

    def require_llm(self) -> None:
        # ollama runs locally without a key
        if self.provider == "ollama":
            return
        if not self.llm_api_key:
            raise ValueError("LLM_API_KEY (or OPENAI_API_KEY) is required")

    def resolved_model_id(self) -> str:
        if self.llm_model_id:
            return self.llm_model_id
        if self.provider == "google":
            return "gemini-2.0-flash"
        if self.provider == "ollama":
            return "llama3.1"
        return "gpt-3.5-turbo"

    def resolved_base_url(self) -> Optional[str]:
        if self.llm_base_url:
            return self.llm_base_url
        if self.provider == "ollama":
            return self.sanitized_ollama_url()
        return None

    def log_summary(self) -> str:
        return (
            "provider=%s model=%s base=%s temperature=%s max_tokens=%s timeout=%s api_key=%s"
            % (
                self.provider,
                self.resolved_model_id(),
                self.resolved_base_url() or "default",
                self.llm_temperature,
                self.llm_max_tokens,
                self.llm_timeout,
                mask_secret(self.llm_api_key),
            )
        )

    def sanitized_ollama_url(self) -> str:
        base = (self.ollama_base_url or "http://localhost:11434").rstrip("/")
        if not base.endswith("/v1"):
            base = f"{base}/v1"
        return base
