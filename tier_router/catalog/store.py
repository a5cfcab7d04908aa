# tier_router/catalog/store.py
"""
Registry store.

Loads the registry document (JSON or YAML, chosen by file suffix) and
keeps the parsed snapshot for ``cache_seconds`` before re-reading the file.
A reload parses into a brand-new RegistryDocument and swaps the reference,
so a reader holding the previous snapshot is never affected.

If a reload fails after a good snapshot has been served, the old snapshot
stays in place and the failure is logged. The very first load has nothing
to fall back to and raises ConfigurationError.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Callable

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..constants import REGISTRY_CACHE_SECONDS
from ..exceptions import ConfigurationError
from ..models import RegistryDocument

logger = logging.getLogger("tier_router.catalog")

_YAML_SUFFIXES = {".yaml", ".yml"}


def read_registry_file(path: str | Path) -> RegistryDocument:
    """Parse a registry file into a RegistryDocument."""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            if path.suffix.lower() in _YAML_SUFFIXES:
                payload: Any = yaml.safe_load(handle)
            else:
                payload = json.load(handle)
    except FileNotFoundError as exc:
        raise ConfigurationError("registry_path", f"Registry file not found: {path}") from exc
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigurationError("registry_path", f"Registry file {path} is not parseable: {exc}") from exc

    if not isinstance(payload, dict):
        raise ConfigurationError("registry_path", f"Registry file {path} must contain a mapping at the top level")
    try:
        return RegistryDocument.model_validate(payload)
    except PydanticValidationError as exc:
        raise ConfigurationError("registry_path", f"Registry file {path} is invalid: {exc}") from exc


class RegistryStore:
    """
    Time-bounded cache around a registry document.

    Parameters
    ----------
    path:
        Registry file. May be None when *document* is supplied instead.
    cache_seconds:
        How long a snapshot is served before the file is re-read.
    document:
        A pre-built document. When given without *path* it is served
        forever and reload() is a no-op.
    clock:
        Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        path: str | Path | None = None,
        cache_seconds: float = REGISTRY_CACHE_SECONDS,
        document: RegistryDocument | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._path = Path(path) if path is not None else None
        self._cache_seconds = cache_seconds
        self._clock = clock
        self._snapshot: RegistryDocument | None = document
        self._loaded_at: float | None = clock() if document is not None else None

    @property
    def path(self) -> Path | None:
        return self._path

    def load(self) -> RegistryDocument:
        """Return the current snapshot, re-reading the file if it is stale."""
        if self._snapshot is not None and not self._is_stale():
            return self._snapshot
        return self.reload()

    def reload(self) -> RegistryDocument:
        """Force a re-read of the registry file."""
        if self._path is None:
            if self._snapshot is None:
                self._snapshot = RegistryDocument()
                self._loaded_at = self._clock()
            return self._snapshot

        try:
            fresh = read_registry_file(self._path)
        except ConfigurationError:
            if self._snapshot is None:
                raise
            logger.exception("registry reload failed, keeping previous snapshot")
            self._loaded_at = self._clock()
            return self._snapshot

        self._snapshot = fresh
        self._loaded_at = self._clock()
        logger.debug("registry loaded from %s (%d companies)", self._path, len(fresh.model_registry))
        return fresh

    def _is_stale(self) -> bool:
        if self._path is None or self._loaded_at is None:
            return False
        return self._clock() - self._loaded_at >= self._cache_seconds
