"""Backend adapters — one per upstream inference service.

Usage::

    from llmgate.backends import get_adapter

    adapter = get_adapter(entry.backend)
    upstream = adapter.build_request(entry, request, settings)
"""

from __future__ import annotations

from ..types import BackendKind
from .base import BackendAdapter, UpstreamRequest, word_count
from .huggingface import HuggingFaceAdapter
from .llamacpp import LlamaCppAdapter
from .ollama import OllamaAdapter
from .openai import OpenAIAdapter

# Adapters are stateless, so one instance per kind is shared.
_ADAPTERS: dict[BackendKind, BackendAdapter] = {
    BackendKind.OLLAMA: OllamaAdapter(),
    BackendKind.LLAMA: LlamaCppAdapter(),
    BackendKind.HUGGINGFACE: HuggingFaceAdapter(),
    BackendKind.OPENAI: OpenAIAdapter(),
}


def get_adapter(kind: BackendKind) -> BackendAdapter:
    """Return the adapter serving ``kind``."""
    return _ADAPTERS[kind]


__all__ = [
    "BackendAdapter",
    "HuggingFaceAdapter",
    "LlamaCppAdapter",
    "OllamaAdapter",
    "OpenAIAdapter",
    "UpstreamRequest",
    "get_adapter",
    "word_count",
]
