"""Ollama adapter — tag-based local server.

Non-streaming ``/api/generate`` returns a single JSON object with the full
``response``; Ollama reports no usable token count for it here, so the
word count stands in.  Streaming sends one JSON object per line (NDJSON,
not SSE) and ends with an object whose ``done`` is true.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from ..config import BackendSettings
from ..streaming import StreamEvent, decode_frame
from ..types import BackendKind, CanonicalRequest, Completion, ModelEntry
from .base import BackendAdapter, UpstreamRequest, word_count

logger = logging.getLogger(__name__)

OLLAMA_BASE_URL = "http://localhost:11434"


class OllamaAdapter(BackendAdapter):
    kind = BackendKind.OLLAMA
    name = "ollama"
    url_env = "OLLAMA_BASE_URL"
    default_base_url = OLLAMA_BASE_URL

    def build_request(
        self,
        entry: ModelEntry,
        request: CanonicalRequest,
        settings: BackendSettings,
        stream: bool = False,
    ) -> UpstreamRequest:
        return UpstreamRequest(
            url=f"{self.base_url(settings)}/api/generate",
            payload={
                "model": entry.upstream_name,
                "prompt": request.prompt,
                "stream": stream,
                "options": {
                    "num_predict": request.max_tokens,
                    "temperature": request.temperature,
                },
            },
            headers=self.headers(settings),
        )

    def parse_response(self, data: Any) -> Completion:
        if not isinstance(data, dict) or not isinstance(data.get("response"), str):
            raise self.malformed("expected an object with a 'response' string")
        text = data["response"]
        return Completion(text=text, tokens_generated=word_count(text))

    def parse_frame(self, frame: bytes) -> Optional[StreamEvent]:
        line = decode_frame(frame)
        if not line:
            return None
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("Dropping undecodable Ollama frame: %r", line[:200])
            return None
        self.check_error(data)
        if not isinstance(data, dict):
            return None
        text = data.get("response") or ""
        return StreamEvent(text=text, final=bool(data.get("done", False)))
