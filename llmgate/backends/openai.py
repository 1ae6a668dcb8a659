"""OpenAI-compatible chat completion adapter.

The prompt is sent as a single user message.  Unlike the other backends,
the non-streaming response carries an authoritative token count in
``usage.completion_tokens``.  Streaming is SSE with delta objects; empty
deltas are suppressed unless they carry the finish signal.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from ..config import BackendSettings
from ..streaming import SSE_DONE, StreamEvent, strip_sse_data
from ..types import BackendKind, CanonicalRequest, Completion, ModelEntry
from .base import BackendAdapter, UpstreamRequest, word_count
from .llamacpp import first_choice

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com"


class OpenAIAdapter(BackendAdapter):
    kind = BackendKind.OPENAI
    name = "openai"
    url_env = "OPENAI_BASE_URL"
    default_base_url = OPENAI_BASE_URL
    credential_envs = ("OPENAI_API_KEY",)

    def build_request(
        self,
        entry: ModelEntry,
        request: CanonicalRequest,
        settings: BackendSettings,
        stream: bool = False,
    ) -> UpstreamRequest:
        return UpstreamRequest(
            url=f"{self.base_url(settings)}/v1/chat/completions",
            payload={
                "model": entry.upstream_name,
                "messages": [{"role": "user", "content": request.prompt}],
                "max_tokens": request.max_tokens,
                "temperature": request.temperature,
                "stream": stream,
            },
            headers=self.headers(settings),
        )

    def parse_response(self, data: Any) -> Completion:
        choice = first_choice(data)
        message = choice.get("message") if choice else None
        if not isinstance(message, dict) or not isinstance(message.get("content"), str):
            raise self.malformed("expected choices[0].message.content")
        text = message["content"]

        usage = data.get("usage")
        if isinstance(usage, dict) and isinstance(usage.get("completion_tokens"), int):
            tokens = usage["completion_tokens"]
        else:
            tokens = word_count(text)
        return Completion(text=text, tokens_generated=tokens)

    def parse_frame(self, frame: bytes) -> Optional[StreamEvent]:
        payload = strip_sse_data(frame)
        if payload is None:
            return None
        if payload == SSE_DONE:
            return StreamEvent(text="", final=True)
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("Dropping undecodable OpenAI frame: %r", payload[:200])
            return None
        self.check_error(data)
        choice = first_choice(data)
        if choice is None:
            return None
        delta = choice.get("delta")
        text = delta.get("content") if isinstance(delta, dict) else None
        return StreamEvent(
            text=text or "",
            final=choice.get("finish_reason") is not None,
        )
