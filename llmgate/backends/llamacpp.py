"""llama.cpp adapter — completion server.

Requests carry ``prompt``, ``n_predict`` and ``temperature``.  Responses
use the completions shape (``choices[0].text``).  Streaming is SSE:
``data: `` lines, terminated by a non-null ``finish_reason`` or the
``[DONE]`` sentinel, whichever arrives first.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from ..config import BackendSettings
from ..streaming import SSE_DONE, StreamEvent, strip_sse_data
from ..types import BackendKind, CanonicalRequest, Completion, ModelEntry
from .base import BackendAdapter, UpstreamRequest, word_count

logger = logging.getLogger(__name__)

LLAMA_CPP_BASE_URL = "http://localhost:8081"


def first_choice(data: Any) -> Optional[dict[str, Any]]:
    """``data["choices"][0]`` if present and an object, else ``None``."""
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    choice = choices[0]
    return choice if isinstance(choice, dict) else None


class LlamaCppAdapter(BackendAdapter):
    kind = BackendKind.LLAMA
    name = "llama.cpp"
    url_env = "LLAMA_CPP_BASE_URL"
    default_base_url = LLAMA_CPP_BASE_URL

    def build_request(
        self,
        entry: ModelEntry,
        request: CanonicalRequest,
        settings: BackendSettings,
        stream: bool = False,
    ) -> UpstreamRequest:
        return UpstreamRequest(
            url=f"{self.base_url(settings)}/v1/completions",
            payload={
                "model": entry.upstream_name,
                "prompt": request.prompt,
                "n_predict": request.max_tokens,
                "temperature": request.temperature,
                "stream": stream,
            },
            headers=self.headers(settings),
        )

    def parse_response(self, data: Any) -> Completion:
        choice = first_choice(data)
        if choice is None or not isinstance(choice.get("text"), str):
            raise self.malformed("expected choices[0].text")
        text = choice["text"]
        return Completion(text=text, tokens_generated=word_count(text))

    def parse_frame(self, frame: bytes) -> Optional[StreamEvent]:
        payload = strip_sse_data(frame)
        if payload is None:
            return None
        if payload == SSE_DONE:
            return StreamEvent(text="", final=True)
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("Dropping undecodable llama.cpp frame: %r", payload[:200])
            return None
        self.check_error(data)
        choice = first_choice(data)
        if choice is None:
            return None
        text = choice.get("text") or ""
        return StreamEvent(text=text, final=choice.get("finish_reason") is not None)
