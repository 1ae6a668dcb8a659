"""Environment-driven configuration.

Backend base URLs and credentials are read from the environment on every
request, so rotating a key or pointing a backend elsewhere does not need a
restart.  The registry can be seeded at startup from a JSON file::

    {
      "entries": {
        "mistral": {"name": "Mistral 7B", "backend": "ollama", "context_length": 8192}
      }
    }

A bare JSON list of entries (each with an ``id``) is accepted as well.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from .errors import ConfigurationError
from .types import (
    DEFAULT_SIZE_BYTES,
    BackendKind,
    LatencyProfile,
    ModelCapability,
    ModelEntry,
)

logger = logging.getLogger(__name__)

MODELS_FILE_ENV = "LLMGATE_MODELS_FILE"

# Older clients send the registry fields under these names.
_FIELD_ALIASES = {
    "inference": "backend",
    "context": "context_length",
    "quant": "quantization",
}


@dataclass
class BackendSettings:
    """Snapshot of backend URLs and credentials.

    ``environ`` defaults to ``os.environ``; tests pass a plain dict.
    """

    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)

    @classmethod
    def from_env(cls) -> BackendSettings:
        return cls(environ=os.environ)

    def get(self, *names: str) -> str:
        """Return the first non-empty value among ``names``, or ``""``."""
        for name in names:
            value = self.environ.get(name, "")
            if value:
                return value
        return ""

    def base_url(self, env_name: str, default: str) -> str:
        return (self.get(env_name) or default).rstrip("/")


def parse_entry(data: Mapping[str, Any], model_id: Optional[str] = None) -> ModelEntry:
    """Build a :class:`ModelEntry` from a JSON-shaped mapping.

    Load state in ``data`` is ignored: entries always start unloaded.
    """
    fields = {_FIELD_ALIASES.get(k, k): v for k, v in data.items()}
    entry_id = model_id or fields.get("id")
    if not entry_id:
        raise ConfigurationError("Model entry is missing an 'id'")
    try:
        backend = BackendKind(fields["backend"])
        capabilities = [ModelCapability(c) for c in fields.get("capabilities", [])]
        latency = fields.get("latency")
        return ModelEntry(
            id=entry_id,
            name=fields.get("name") or entry_id,
            backend=backend,
            context_length=int(fields.get("context_length", 0)),
            capabilities=capabilities,
            quantization=fields.get("quantization"),
            latency=LatencyProfile(latency) if latency else None,
            size_bytes=int(fields.get("size_bytes", DEFAULT_SIZE_BYTES)),
            upstream_model=fields.get("upstream_model"),
        )
    except KeyError as exc:
        raise ConfigurationError(
            f"Model entry '{entry_id}' is missing field {exc}"
        ) from exc
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid model entry '{entry_id}': {exc}") from exc


def load_models_file(path: Union[str, Path, None] = None) -> list[ModelEntry]:
    """Read registry seed entries from ``path`` or ``$LLMGATE_MODELS_FILE``.

    Returns an empty list when neither is set.
    """
    if path is None:
        path = os.environ.get(MODELS_FILE_ENV) or None
    if path is None:
        return []

    path = Path(path)
    try:
        raw = json.loads(path.read_text())
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Cannot read models file {path}: {exc}") from exc

    if isinstance(raw, list):
        entries = [parse_entry(item) for item in raw]
    elif isinstance(raw, dict) and isinstance(raw.get("entries"), dict):
        entries = [parse_entry(item, model_id) for model_id, item in raw["entries"].items()]
    else:
        raise ConfigurationError(
            f"Models file {path} must be a list or an object with 'entries'"
        )

    seen: set[str] = set()
    for entry in entries:
        if entry.id in seen:
            raise ConfigurationError(f"Models file {path} lists model '{entry.id}' twice")
        seen.add(entry.id)

    logger.info("Loaded %d model entries from %s", len(entries), path)
    return entries
