# tests/helpers.py
"""
Test doubles and sample data shared across the test modules.
"""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx

SAMPLE_REGISTRY: dict[str, Any] = {
    "metadata": {
        "version": "1.0",
        "last_updated": "2025-01-01",
        "supported_providers": ["groq", "openrouter", "puter", "direct"],
    },
    "model_registry": {
        "meta": {
            "groq": ["llama-3.3-70b-versatile", "whisper-large-v3"],
            "openrouter": ["openrouter:meta-llama/llama-3.3-70b-instruct:free"],
        },
        "openai": {
            "direct_api": ["gpt-4o"],
            "puter": ["gpt-4o-mini"],
        },
        "mistral": {
            "mistral": ["mistral-small-latest"],
        },
    },
    "model_details": {
        "llama-3.3-70b-versatile": {
            "cost_tier": "remote_free",
            "ratings": {"chat": 4, "reasoning": 3, "speed": 5, "coding": 3},
            "limits": {"rpm": 30, "tpm": 6000},
        },
        "openrouter:meta-llama/llama-3.3-70b-instruct:free": {
            "cost_tier": "remote_free",
            "ratings": {"chat": 4, "reasoning": 3, "speed": 2, "coding": 3},
        },
        "gpt-4o": {
            "cost_tier": "paid",
            "ratings": {"chat": 5, "reasoning": 5, "speed": 3, "coding": 5},
        },
        "gpt-4o-mini": {
            "cost_tier": "credit_backed",
            "uses_puter_credits": True,
            "capabilities": {"chat": True, "coding": True},
            "ratings": {"chat": 4, "coding": 4, "speed": 4},
        },
    },
    "free_models": ["mistral-small-latest", "whisper-large-v3"],
}

# Catalog order produced from SAMPLE_REGISTRY (known buckets iterate in fixed order).
SAMPLE_IDS = [
    "openrouter:meta-llama/llama-3.3-70b-instruct:free",
    "llama-3.3-70b-versatile",
    "whisper-large-v3",
    "gpt-4o",
    "gpt-4o-mini",
    "mistral-small-latest",
]

CREDENTIALS = {
    "GROQ_API_KEY": "gsk-test",
    "OPENROUTER_API_KEY": "or-test",
    "OPENAI_API_KEY": "sk-test",
    "MISTRAL_API_KEY": "mistral-test",
    "ANTHROPIC_API_KEY": "sk-ant-test",
    "GEMINI_API_KEY": "gemini-test",
    "COHERE_API_KEY": "cohere-test",
    "CLOUDFLARE_API_KEY": "cf-test",
    "CLOUDFLARE_ACCOUNT_ID": "acct-123",
    "HUGGINGFACE_API_KEY": "hf-test",
}


def openai_reply(content: str = "Hello!", headers: dict[str, str] | None = None, status: int = 200) -> httpx.Response:
    body = {
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 3, "completion_tokens": 2, "total_tokens": 5},
    }
    return httpx.Response(status, json=body, headers=headers or {})


class FakeClock:
    """Manually advanced clock usable wherever a ``clock`` callable is accepted."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBinding:
    """In-memory stand-in for the host SDK binding."""

    def __init__(
        self,
        signed_in: bool = True,
        credits: float = 5.0,
        username: str = "ada",
        reply: str = "hello from puter",
        fail_user: bool = False,
    ) -> None:
        self.signed_in = signed_in
        self.credits = credits
        self.username = username
        self.reply = reply
        self.fail_user = fail_user
        self.chat_calls: list[dict[str, Any]] = []
        self.image_calls: list[str] = []
        self.user_calls = 0

    async def chat(self, prompt: str, *, model: str, temperature: float) -> str:
        self.chat_calls.append({"prompt": prompt, "model": model, "temperature": temperature})
        return self.reply

    async def txt2img(self, prompt: str) -> str:
        self.image_calls.append(prompt)
        return "data:image/png;base64,AAAA"

    async def is_signed_in(self) -> bool:
        return self.signed_in

    async def get_user(self) -> dict[str, Any]:
        self.user_calls += 1
        if self.fail_user:
            raise RuntimeError("whoami failed")
        return {"username": self.username, "credits": self.credits}


class RecordingTransport:
    """Wraps a handler in httpx.MockTransport and keeps every request."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []
        self._handler = handler

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._handler(request)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last.content)


