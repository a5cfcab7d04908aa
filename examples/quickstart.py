# examples/quickstart.py
"""
Quickstart — tier-router with an in-memory registry.

Credentials are read from the environment (GROQ_API_KEY, OPENROUTER_API_KEY, ...).

Run with:
  python examples/quickstart.py
"""

import asyncio

from tier_router import RunError, TierRouter

REGISTRY = {
    "metadata": {"supported_providers": ["groq", "openrouter", "direct"]},
    "model_registry": {
        "meta": {
            "groq": ["llama-3.3-70b-versatile"],
            "openrouter": ["meta-llama/llama-3.3-70b-instruct:free"],
        },
        "openai": {"direct_api": ["gpt-4o"]},
    },
    "model_details": {
        "llama-3.3-70b-versatile": {
            "cost_tier": "remote_free",
            "ratings": {"chat": 4, "reasoning": 3, "speed": 5, "coding": 3},
            "limits": {"rpm": 30, "tpm": 6000},
        },
        "meta-llama/llama-3.3-70b-instruct:free": {
            "cost_tier": "remote_free",
            "ratings": {"chat": 4, "speed": 2},
        },
        "gpt-4o": {"cost_tier": "paid", "ratings": {"chat": 5, "reasoning": 5}},
    },
}


async def main():
    async with TierRouter(registry_document=REGISTRY) as router:
        print("Ranked for chat:")
        for model in router.suggest({"capability": "chat"}):
            print(f"  {model.id:45} {model.cost_tier.value:14} score={model.score}")

        result = await router.run({"input": "Summarise the benefits of functional programming."})
        if isinstance(result, RunError):
            print(f"\nRun failed ({result.status_code}): {result.error}")
            if result.suggestion:
                print(f"Try {result.suggestion.next_best_model} on {result.suggestion.next_best_provider}")
        else:
            print(f"\nModel:    {result.model_id} via {result.route}")
            print(f"Latency:  {result.metadata.execution_time_ms}ms")
            print(f"Output:   {result.output[:200]}...")

        # Preflight a small batch against the turbo tier
        batch = await router.preflight_batch(
            "turbo",
            [{"capability": "chat", "estimated_tokens": 2000}, {"capability": "coding", "estimated_tokens": 5000}],
        )
        print(f"\n{batch.recommendation}")

        # Health overview
        report = router.provider_health()
        for status in report.providers:
            print(f"{status.provider:12} {status.status.value:9} latency={status.latency_ms}ms")


if __name__ == "__main__":
    asyncio.run(main())
