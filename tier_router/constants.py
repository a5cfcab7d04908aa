# tier_router/constants.py
"""
Default constants for tier-router.
All tunable values are centralised here so they can be overridden via RouterConfig
without touching internal logic.
"""

# ---------------------------------------------------------------------------
# Cost tiers
# ---------------------------------------------------------------------------
COST_TIER_ORDER: tuple[str, ...] = ("local", "remote_free", "credit_backed", "paid")
"""Cost tier ordering, cheapest first. Index is the tier's rank."""

DEFAULT_COST_TIER: str = "paid"
"""Tier assigned when the registry gives none, or gives an unknown one."""

BOOST_TIERS: dict[str, str] = {
    "turbo": "remote_free",
    "ultra": "credit_backed",
}
"""Caller-facing boost tier alias → cost tier."""

# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------
CAPABILITY_KEYS: tuple[str, ...] = (
    "chat",
    "reasoning",
    "speed",
    "coding",
    "images",
    "audio_speech",
    "audio_music",
    "vision",
    "video",
)

DEFAULT_CAPABILITY: str = "chat"

TASK_CAPABILITY_MAP: dict[str, str] = {
    "chat": "chat",
    "reasoning": "reasoning",
    "coding": "coding",
    "image_generation": "images",
    "speech": "audio_speech",
    "music": "audio_music",
    "vision": "vision",
    "video": "video",
}
"""Preflight task_type → capability flag."""

MIN_RATING: int = 0
MAX_RATING: int = 5

# ---------------------------------------------------------------------------
# Registry buckets
# ---------------------------------------------------------------------------
PROVIDER_BUCKETS: tuple[str, ...] = (
    "direct_api",
    "openrouter",
    "togetherai",
    "groq",
    "mistral",
    "cerebras",
    "cloudflare",
    "huggingface",
    "gemini",
    "github",
    "cohere",
    "perplexity",
    "puter",
)
"""Known registry bucket names, in iteration order."""

DIRECT_ROUTES: frozenset[str] = frozenset({"direct", "direct_api"})

REGISTRY_CACHE_SECONDS: float = 60.0
"""How long a parsed registry snapshot is reused before re-reading the file."""

# ---------------------------------------------------------------------------
# Provider calls
# ---------------------------------------------------------------------------
DEFAULT_TEMPERATURE: float = 0.7
DEFAULT_MAX_TOKENS: int = 1024
HTTP_TIMEOUT_SECONDS: float = 60.0

PROVIDER_ENDPOINTS: dict[str, str] = {
    "groq": "https://api.groq.com/openai/v1/chat/completions",
    "mistral": "https://api.mistral.ai/v1/chat/completions",
    "openrouter": "https://openrouter.ai/api/v1/chat/completions",
    "togetherai": "https://api.together.xyz/v1/chat/completions",
    "cerebras": "https://api.cerebras.ai/v1/chat/completions",
    "perplexity": "https://api.perplexity.ai/chat/completions",
    "github": "https://models.inference.ai.azure.com/chat/completions",
    "openai": "https://api.openai.com/v1/chat/completions",
    "anthropic": "https://api.anthropic.com/v1/messages",
    "gemini": "https://generativelanguage.googleapis.com/v1beta/models",
    "cohere": "https://api.cohere.com/v2/chat",
    "cloudflare": "https://api.cloudflare.com/client/v4/accounts",
    "huggingface": "https://api-inference.huggingface.co/models",
}

ANTHROPIC_VERSION: str = "2023-06-01"
DEFAULT_APP_URL: str = "http://localhost:8080"
DEFAULT_APP_TITLE: str = "tier-router"

# ---------------------------------------------------------------------------
# Rate-limit cache
# ---------------------------------------------------------------------------
RATE_LIMIT_HEADER_MAP: dict[str, str] = {
    "x-ratelimit-remaining-requests": "requests_remaining",
    "x-ratelimit-limit-requests": "requests_limit",
    "x-ratelimit-remaining-tokens": "tokens_remaining",
    "x-ratelimit-limit-tokens": "tokens_limit",
    "x-ratelimit-reset-requests": "reset_time",
    "x-ratelimit-reset": "reset_time",
}

DEFAULT_WAIT_SECONDS: int = 60
"""Retry hint used when no reset time is cached. A conservative guess, not measured."""

# ---------------------------------------------------------------------------
# Health tracker
# ---------------------------------------------------------------------------
MAX_HISTORY_PER_PROVIDER: int = 100
HEALTH_WINDOW_SECONDS: int = 3_600

HEALTHY_SUCCESS_RATE: float = 0.95
HEALTHY_LATENCY_MS: float = 2_000.0
DEGRADED_SUCCESS_RATE: float = 0.5
DEGRADED_LATENCY_MS: float = 5_000.0

STALE_SUCCESS_SECONDS: int = 15 * 60
"""A provider whose last success is older than this is forced down..."""

STALE_MIN_CALLS: int = 6
"""...once at least this many calls sit in the window."""

# ---------------------------------------------------------------------------
# Preflight
# ---------------------------------------------------------------------------
MAX_BATCH_TASKS: int = 20
DEFAULT_TASK_TOKENS: int = 500
UNKNOWN_REQUEST_HEADROOM: int = 999
UNKNOWN_TOKEN_HEADROOM: int = 999_999
SHORT_WAIT_HINT_SECONDS: int = 120
