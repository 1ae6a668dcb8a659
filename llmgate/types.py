"""Canonical gateway types shared by the registry, adapters and server."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Optional

DEFAULT_MAX_TOKENS = 100
DEFAULT_TEMPERATURE = 0.7
DEFAULT_SIZE_BYTES = 4_000_000_000


class BackendKind(str, enum.Enum):
    """Upstream inference service a model is served by."""

    OLLAMA = "ollama"  # tag server, NDJSON streaming
    LLAMA = "llama"  # llama.cpp completion server, SSE streaming
    HUGGINGFACE = "huggingface"  # hosted inference API, no streaming
    OPENAI = "openai"  # chat completions, SSE delta streaming


class ModelCapability(str, enum.Enum):
    CHAT = "chat"
    VISION = "vision"
    EMBEDDING = "embedding"
    COMPLETION = "completion"


class LatencyProfile(str, enum.Enum):
    EXTREME = "extreme"
    FAST = "fast"
    SLOW = "slow"


@dataclass
class ModelEntry:
    """A logical model known to the gateway.

    ``loaded_at`` is set exactly when ``loaded`` is true.  Only the
    registry flips the load state.
    """

    id: str
    name: str
    backend: BackendKind
    context_length: int
    capabilities: list[ModelCapability] = field(default_factory=list)
    quantization: Optional[str] = None
    latency: Optional[LatencyProfile] = None
    size_bytes: int = DEFAULT_SIZE_BYTES
    upstream_model: Optional[str] = None
    loaded: bool = False
    loaded_at: Optional[datetime] = None

    @property
    def upstream_name(self) -> str:
        """Model identifier sent to the backend."""
        return self.upstream_model or self.id

    def copy(self) -> ModelEntry:
        return replace(self, capabilities=list(self.capabilities))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "backend": self.backend.value,
            "context_length": self.context_length,
            "quantization": self.quantization,
            "capabilities": [c.value for c in self.capabilities],
            "latency": self.latency.value if self.latency else None,
            "size_bytes": self.size_bytes,
            "upstream_model": self.upstream_model,
            "loaded": self.loaded,
            "loaded_at": self.loaded_at.isoformat() if self.loaded_at else None,
        }


@dataclass
class CanonicalRequest:
    model_id: str
    prompt: str
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE


@dataclass
class CanonicalToken:
    """One token of a normalized stream."""

    text: str
    sequence_index: int
    is_final: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "token": self.text,
            "token_id": self.sequence_index,
            "complete": self.is_final,
        }


@dataclass
class CanonicalResult:
    model_id: str
    text: str
    tokens_generated: int
    finish_reason: str = "stop"

    def to_dict(self) -> dict[str, Any]:
        return {
            "model_id": self.model_id,
            "text": self.text,
            "tokens_generated": self.tokens_generated,
            "finish_reason": self.finish_reason,
        }


@dataclass
class Completion:
    """Non-streaming adapter output before it is tagged with a model id."""

    text: str
    tokens_generated: int
