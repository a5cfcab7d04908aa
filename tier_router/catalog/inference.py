# tier_router/catalog/inference.py
"""
Capability inference from a model id.

Fallback heuristic only: any model whose registry overlay lists explicit
capabilities never reaches this function. Matching is a case-insensitive
substring test, first match wins, in this order:

  1. speech recognition  (whisper)
  2. text-to-speech      (tts, playai)
  3. image / vision      (img, vision, image)
  4. video               (video, sora)
  5. everything else     → generic chat model

An unusual id that matches nothing is classified as a chat model. That is
a known limitation of the heuristic.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from ..constants import CAPABILITY_KEYS
from ..models import ModelCapabilities

_MARKER_RULES: tuple[tuple[tuple[str, ...], tuple[str, ...]], ...] = (
    (("whisper",), ("audio_speech", "speed")),
    (("tts", "playai"), ("audio_speech", "speed")),
    (("img", "vision", "image"), ("vision", "images")),
    (("video", "sora"), ("video",)),
)

_DEFAULT_FLAGS: tuple[str, ...] = ("chat", "reasoning", "speed", "coding")


def capability_template(flags: Mapping[str, bool] | Iterable[str] | None = None) -> ModelCapabilities:
    """
    Build a ModelCapabilities with only the given flags set.

    Accepts either a mapping of flag → truthy value or an iterable of flag
    names. Unknown flag names are ignored.
    """
    if flags is None:
        return ModelCapabilities()
    if isinstance(flags, Mapping):
        enabled = {k for k, v in flags.items() if v}
    else:
        enabled = set(flags)
    return ModelCapabilities(**{k: True for k in CAPABILITY_KEYS if k in enabled})


def infer_capabilities(model_id: str) -> ModelCapabilities:
    """Guess capability flags from *model_id*. Pure function."""
    lowered = model_id.lower()
    for markers, flags in _MARKER_RULES:
        if any(marker in lowered for marker in markers):
            return capability_template(flags)
    return capability_template(_DEFAULT_FLAGS)
