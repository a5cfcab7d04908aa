# tier_router/engine/__init__.py
from .exhaustion import ExhaustionEvaluator
from .selector import filter_models, find_model, pick, suggest

__all__ = [
    "ExhaustionEvaluator",
    "filter_models",
    "find_model",
    "pick",
    "suggest",
]
