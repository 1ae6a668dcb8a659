"""Hugging Face hosted inference adapter.

Non-streaming only.  Requires a bearer token from ``HUGGINGFACE_API_KEY``
(or ``HF_TOKEN``); a missing token fails the request, not the startup.
The response is a JSON array whose first element is either
``{"generated_text": ...}`` or a bare string.
"""

from __future__ import annotations

from typing import Any

from ..config import BackendSettings
from ..types import BackendKind, CanonicalRequest, Completion, ModelEntry
from .base import BackendAdapter, UpstreamRequest, word_count

HUGGINGFACE_BASE_URL = "https://api-inference.huggingface.co"


class HuggingFaceAdapter(BackendAdapter):
    kind = BackendKind.HUGGINGFACE
    name = "huggingface"
    url_env = "HUGGINGFACE_BASE_URL"
    default_base_url = HUGGINGFACE_BASE_URL
    credential_envs = ("HUGGINGFACE_API_KEY", "HF_TOKEN")
    requires_credential = True
    supports_streaming = False

    def build_request(
        self,
        entry: ModelEntry,
        request: CanonicalRequest,
        settings: BackendSettings,
        stream: bool = False,
    ) -> UpstreamRequest:
        return UpstreamRequest(
            url=f"{self.base_url(settings)}/models/{entry.upstream_name}",
            payload={
                "inputs": request.prompt,
                "parameters": {
                    "max_new_tokens": request.max_tokens,
                    "temperature": request.temperature,
                    "return_full_text": False,
                },
            },
            headers=self.headers(settings),
        )

    def parse_response(self, data: Any) -> Completion:
        if not isinstance(data, list) or not data:
            raise self.malformed("expected a non-empty array")
        first = data[0]
        if isinstance(first, str):
            text = first
        elif isinstance(first, dict) and isinstance(first.get("generated_text"), str):
            text = first["generated_text"]
        else:
            raise self.malformed("expected generated_text or a string")
        return Completion(text=text, tokens_generated=word_count(text))
