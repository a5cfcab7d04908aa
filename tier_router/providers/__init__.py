# tier_router/providers/__init__.py
from .anthropic import AnthropicProvider
from .base import BaseProvider, bearer_headers
from .cloudflare import CloudflareProvider
from .cohere import CohereProvider
from .gemini import GeminiProvider
from .huggingface import HuggingFaceProvider
from .normalizer import extract_content
from .openai_compatible import OpenAICompatibleProvider, make_openai_compatible
from .openrouter import openrouter_provider
from .puter import HostBinding, HostBindingState, PuterProvider
from .registry import ProviderRegistry

__all__ = [
    "BaseProvider",
    "bearer_headers",
    "OpenAICompatibleProvider",
    "make_openai_compatible",
    "openrouter_provider",
    "AnthropicProvider",
    "GeminiProvider",
    "CloudflareProvider",
    "HuggingFaceProvider",
    "CohereProvider",
    "PuterProvider",
    "HostBinding",
    "HostBindingState",
    "ProviderRegistry",
    "extract_content",
]
