# examples/byoc.py
"""
BYOA — Bring Your Own Adapter.

A registry bucket the router has no adapter for ("ollama" below) passes
through as its own route. Registering an adapter under that route makes
the models callable; here a local OpenAI-compatible server.

Run with:
  python examples/byoc.py
"""

import asyncio

from tier_router import TierRouter
from tier_router.providers.openai_compatible import OpenAICompatibleProvider

REGISTRY = {
    "model_registry": {
        "meta": {"ollama": ["llama3.2"]},
    },
    "model_details": {
        "llama3.2": {"cost_tier": "local", "ratings": {"chat": 3, "speed": 4}},
    },
}


async def main():
    async with TierRouter(registry_document=REGISTRY) as router:
        router.providers.register_adapter(
            "ollama",
            OpenAICompatibleProvider(
                name="ollama",
                env_key="OLLAMA_API_KEY",
                endpoint="http://localhost:11434/v1/chat/completions",
                credentials={"OLLAMA_API_KEY": "ollama"},
            ),
        )

        result = await router.run({"input": "Hello, which model am I talking to?", "max_cost_tier": "local"})
        print(f"Model:    {result.model_id}")
        print(f"Response: {getattr(result, 'output', None) or result.error}")


if __name__ == "__main__":
    asyncio.run(main())
