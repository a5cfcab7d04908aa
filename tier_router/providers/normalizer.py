# tier_router/providers/normalizer.py
"""
Response normalizer.

extract_content() pulls the generated text out of whatever shape a
provider returned. Shapes are tried in a fixed priority order:

  1. choices[0].message.content           OpenAI-compatible
  2. content[0].text                      Anthropic blocks
  3. candidates[0].content.parts[0].text  Gemini
  4. message.content[0].text              Cohere v2
  5. result.response                      Cloudflare Workers AI
  6. generated_text / [{generated_text}]  HuggingFace

Anything else is serialised to JSON, so the caller always gets a string
and this function never raises.
"""

from __future__ import annotations

import json
from typing import Any


def _first(value: Any) -> Any:
    if isinstance(value, list) and value:
        return value[0]
    return None


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def extract_content(raw: Any) -> str:
    if isinstance(raw, dict):
        choice = _first(raw.get("choices"))
        if isinstance(choice, dict) and isinstance(choice.get("message"), dict):
            return _text(choice["message"].get("content"))

        block = _first(raw.get("content"))
        if isinstance(block, dict):
            return _text(block.get("text"))

        candidate = _first(raw.get("candidates"))
        if isinstance(candidate, dict) and isinstance(candidate.get("content"), dict):
            part = _first(candidate["content"].get("parts"))
            if isinstance(part, dict):
                return _text(part.get("text"))

        message = raw.get("message")
        if isinstance(message, dict):
            block = _first(message.get("content"))
            if isinstance(block, dict):
                return _text(block.get("text"))

        result = raw.get("result")
        if isinstance(result, dict):
            return _text(result.get("response"))

        if raw.get("generated_text"):
            return _text(raw["generated_text"])

    generated = _first(raw)
    if isinstance(generated, dict) and generated.get("generated_text"):
        return _text(generated["generated_text"])

    try:
        return json.dumps(raw, default=str)
    except (TypeError, ValueError):
        return repr(raw)
