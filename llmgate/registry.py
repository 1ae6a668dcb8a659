"""Model registry — which logical models exist and whether they are loaded.

Usage::

    from llmgate.registry import ModelRegistry

    registry = ModelRegistry()
    registry.register(entry)
    registry.load("mistral")
    entry = registry.resolve_loaded("mistral")

A single lock covers reads and writes alike.  Every critical section is a
lookup plus field mutation; callers do their upstream I/O after the method
returns.  Entries handed out are copies, so callers never mutate registry
state directly.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from typing import Iterable, Optional

from .errors import (
    ModelAlreadyLoadedError,
    ModelConflictError,
    ModelNotFoundError,
    ModelNotLoadedError,
)
from .types import BackendKind, LatencyProfile, ModelCapability, ModelEntry

logger = logging.getLogger(__name__)


class ModelRegistry:
    """In-memory, process-lifetime registry of :class:`ModelEntry`."""

    def __init__(self, entries: Optional[Iterable[ModelEntry]] = None) -> None:
        self._lock = threading.Lock()
        # dicts keep insertion order, which is the listing order
        self._entries: dict[str, ModelEntry] = {}
        if entries:
            self.register_many(entries)

    def register(self, entry: ModelEntry) -> ModelEntry:
        """Add a model, initially unloaded.

        Raises ModelConflictError if the id is already registered.
        """
        stored = entry.copy()
        stored.loaded = False
        stored.loaded_at = None
        with self._lock:
            if stored.id in self._entries:
                raise ModelConflictError(stored.id)
            self._entries[stored.id] = stored
            result = stored.copy()
        logger.info("Registered model %s (%s)", stored.id, stored.backend.value)
        return result

    def register_many(self, entries: Iterable[ModelEntry]) -> list[ModelEntry]:
        return [self.register(entry) for entry in entries]

    def list(self) -> list[ModelEntry]:
        with self._lock:
            return [entry.copy() for entry in self._entries.values()]

    def get(self, model_id: str) -> Optional[ModelEntry]:
        with self._lock:
            entry = self._entries.get(model_id)
            return entry.copy() if entry is not None else None

    def __contains__(self, model_id: object) -> bool:
        with self._lock:
            return model_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def loaded_count(self) -> int:
        with self._lock:
            return sum(1 for entry in self._entries.values() if entry.loaded)

    def load(self, model_id: str) -> ModelEntry:
        """Mark a model loaded.

        Raises ModelNotFoundError or ModelAlreadyLoadedError.
        """
        with self._lock:
            entry = self._entries.get(model_id)
            if entry is None:
                raise ModelNotFoundError(model_id)
            if entry.loaded:
                raise ModelAlreadyLoadedError(model_id)
            entry.loaded = True
            entry.loaded_at = datetime.now(timezone.utc)
            result = entry.copy()
        logger.info("Loaded model %s", model_id)
        return result

    def unload(self, model_id: str) -> ModelEntry:
        """Mark a model unloaded.  Unloading an unloaded model succeeds."""
        with self._lock:
            entry = self._entries.get(model_id)
            if entry is None:
                raise ModelNotFoundError(model_id)
            was_loaded = entry.loaded
            entry.loaded = False
            entry.loaded_at = None
            result = entry.copy()
        if was_loaded:
            logger.info("Unloaded model %s", model_id)
        else:
            logger.debug("Unload requested for already unloaded model %s", model_id)
        return result

    def resolve_loaded(self, model_id: str) -> ModelEntry:
        """Return the entry for an inference call.

        Raises ModelNotFoundError for unknown ids and ModelNotLoadedError
        for known but unloaded ones, so callers can tell "register it"
        apart from "load it".
        """
        with self._lock:
            entry = self._entries.get(model_id)
            if entry is None:
                raise ModelNotFoundError(model_id)
            if not entry.loaded:
                raise ModelNotLoadedError(model_id)
            return entry.copy()

    def find(
        self,
        capability: Optional[ModelCapability] = None,
        latency: Optional[LatencyProfile] = None,
        backend: Optional[BackendKind] = None,
        min_context: Optional[int] = None,
        loaded: Optional[bool] = None,
    ) -> list[ModelEntry]:
        """Entries matching every given constraint, in registration order."""
        with self._lock:
            candidates = [entry.copy() for entry in self._entries.values()]

        results: list[ModelEntry] = []
        for entry in candidates:
            if capability is not None and capability not in entry.capabilities:
                continue
            if latency is not None and entry.latency != latency:
                continue
            if backend is not None and entry.backend != backend:
                continue
            if min_context and entry.context_length < min_context:
                continue
            if loaded is not None and entry.loaded != loaded:
                continue
            results.append(entry)
        return results

    def find_one(self, **constraints: object) -> Optional[ModelEntry]:
        matches = self.find(**constraints)  # type: ignore[arg-type]
        return matches[0] if matches else None
