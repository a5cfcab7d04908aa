# tier_router/catalog/ratings.py
"""
Ratings-override store.

User-edited rating patches keyed by model id, persisted as one JSON file.
The file is read once on construction and rewritten in full after every
update (write-through, last write wins, no locking). Writes go to a
temporary sibling file first and are moved into place with Path.replace,
so a crash mid-write never leaves a truncated file behind.
"""

from __future__ import annotations

import contextlib
import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from uuid import uuid4

from pydantic import ValidationError as PydanticValidationError

from ..constants import CAPABILITY_KEYS, MAX_RATING, MIN_RATING
from ..exceptions import ValidationError
from ..models import RatingsOverride, utcnow_iso

logger = logging.getLogger("tier_router.ratings")


def _coerce_rating(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def validate_rating_updates(body: Mapping[str, Any]) -> RatingsOverride:
    """
    Validate a rating-update request body.

    Recognised keys are ``<capability>_rating`` (integer 0-5) and ``notes``.
    Everything else is ignored.

    Raises
    ------
    ValidationError
        On the first out-of-range or non-integer rating (with the offending
        field and value attached), or when the body contains no recognised
        update at all.
    """
    updates: dict[str, Any] = {}

    for capability in CAPABILITY_KEYS:
        key = f"{capability}_rating"
        if key not in body or body[key] is None:
            continue
        raw = body[key]
        value = _coerce_rating(raw)
        if value is None or not MIN_RATING <= value <= MAX_RATING:
            raise ValidationError(
                f"Invalid rating value for {key}. Must be integer {MIN_RATING}-{MAX_RATING}.",
                field=key,
                value=raw,
            )
        updates[capability] = value

    if body.get("notes") is not None:
        updates["notes"] = str(body["notes"])

    if not updates:
        raise ValidationError("No valid updates provided")

    return RatingsOverride(**updates)


class RatingsStore:
    """
    In-memory ratings overrides backed by an optional JSON file.

    With ``path=None`` the store is purely in-memory.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._overrides: dict[str, RatingsOverride] = {}
        self.load()

    @property
    def path(self) -> Path | None:
        return self._path

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def load(self) -> dict[str, RatingsOverride]:
        """(Re)read the overrides file. A missing or corrupt file yields no overrides."""
        if self._path is None or not self._path.exists():
            self._overrides = {}
            return self._overrides

        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("could not load ratings overrides from %s: %s", self._path, exc)
            self._overrides = {}
            return self._overrides

        overrides: dict[str, RatingsOverride] = {}
        if isinstance(payload, dict):
            for model_id, entry in payload.items():
                try:
                    overrides[model_id] = RatingsOverride.model_validate(entry)
                except PydanticValidationError:
                    logger.warning("skipping invalid ratings override for %s", model_id)
        self._overrides = overrides
        return self._overrides

    def overrides(self) -> dict[str, RatingsOverride]:
        return dict(self._overrides)

    def get(self, model_id: str) -> RatingsOverride | None:
        return self._overrides.get(model_id)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def update_model_rating(self, model_id: str, updates: RatingsOverride) -> RatingsOverride:
        """Merge *updates* into the model's override, stamp it, and persist."""
        current = self._overrides.get(model_id)
        merged: dict[str, Any] = current.model_dump(exclude_none=True) if current else {}
        merged.update(updates.model_dump(exclude_none=True, exclude={"updated_at"}))
        merged["updated_at"] = utcnow_iso()

        override = RatingsOverride.model_validate(merged)
        self._overrides[model_id] = override
        self.save()
        return override

    def save(self) -> None:
        if self._path is None:
            return
        payload = {
            model_id: override.model_dump(exclude_none=True)
            for model_id, override in self._overrides.items()
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_name(f".{self._path.name}.{uuid4().hex}.tmp")
        try:
            with temp_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
            temp_path.replace(self._path)
        except Exception:
            with contextlib.suppress(Exception):
                temp_path.unlink(missing_ok=True)
            raise
