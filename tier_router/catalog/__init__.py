# tier_router/catalog/__init__.py
from .builder import build_catalog, parse_route_key, rating_from_capabilities
from .dashboard import (
    DashboardFilter,
    DashboardModel,
    build_presets,
    filter_dashboard_models,
    sort_dashboard_models,
    to_dashboard_model,
)
from .inference import infer_capabilities
from .ratings import RatingsStore, validate_rating_updates
from .store import RegistryStore, read_registry_file

__all__ = [
    "build_catalog",
    "parse_route_key",
    "rating_from_capabilities",
    "infer_capabilities",
    "DashboardFilter",
    "DashboardModel",
    "build_presets",
    "filter_dashboard_models",
    "sort_dashboard_models",
    "to_dashboard_model",
    "RatingsStore",
    "validate_rating_updates",
    "RegistryStore",
    "read_registry_file",
]
