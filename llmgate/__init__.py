"""
llmgate — one text generation API over heterogeneous inference backends.

Clients talk to a single gateway; the gateway keeps an in-memory registry
of logical models and translates each request to the Ollama, llama.cpp,
Hugging Face or OpenAI-compatible backend serving the model.
"""

from __future__ import annotations

__version__ = "1.0.0"

from .dispatch import Dispatcher, TokenStream
from .errors import (
    ConfigurationError,
    GatewayError,
    ModelAlreadyLoadedError,
    ModelConflictError,
    ModelNotFoundError,
    ModelNotLoadedError,
    NoMatchingModelError,
    UnsupportedOperationError,
    UpstreamError,
)
from .registry import ModelRegistry
from .types import (
    BackendKind,
    CanonicalRequest,
    CanonicalResult,
    CanonicalToken,
    LatencyProfile,
    ModelCapability,
    ModelEntry,
)

__all__ = [
    "BackendKind",
    "CanonicalRequest",
    "CanonicalResult",
    "CanonicalToken",
    "ConfigurationError",
    "Dispatcher",
    "GatewayError",
    "LatencyProfile",
    "ModelAlreadyLoadedError",
    "ModelCapability",
    "ModelConflictError",
    "ModelEntry",
    "ModelNotFoundError",
    "ModelNotLoadedError",
    "ModelRegistry",
    "NoMatchingModelError",
    "TokenStream",
    "UnsupportedOperationError",
    "UpstreamError",
    "__version__",
]
