"""Python client for a running llmgate gateway.

Usage::

    from llmgate.client import GatewayClient

    client = GatewayClient("http://localhost:8080")
    client.register_model({"id": "mistral", "name": "Mistral 7B",
                           "backend": "ollama", "context_length": 8192})
    client.load_model("mistral")
    for token in client.inference_stream("mistral", "What is the meaning of life?"):
        print(token.text, end="", flush=True)
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterator, Optional

import httpx

from .errors import ModelNotFoundError, ModelNotLoadedError
from .types import DEFAULT_MAX_TOKENS, CanonicalResult, CanonicalToken

logger = logging.getLogger(__name__)

DEFAULT_GATEWAY_URL = "http://localhost:8080"

_MODEL_ID_RE = re.compile(r"Model '([^']+)'")


class GatewayClientError(RuntimeError):
    """Non-2xx response (or stream error event) from the gateway."""

    def __init__(
        self, message: str, status_code: Optional[int] = None, code: str = "API_ERROR"
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


class GatewayClient:
    def __init__(
        self,
        base_url: str = DEFAULT_GATEWAY_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        with self._client() as client:
            res = client.request(method, path, **kwargs)
        if res.status_code >= 400:
            raise _error_from_response(res.status_code, res.text)
        return res.json()

    # -- models --------------------------------------------------------------

    def health(self) -> dict[str, Any]:
        return self._request("GET", "/health")

    def list_models(self) -> list[dict[str, Any]]:
        return self._request("GET", "/v1/models")["models"]

    def register_model(self, entry: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/v1/models/register", json=entry)

    def load_model(self, model_id: str) -> dict[str, Any]:
        return self._request("POST", "/v1/models/load", json={"model_id": model_id})

    def unload_model(self, model_id: str) -> dict[str, Any]:
        return self._request("POST", f"/v1/models/unload/{model_id}")

    # -- inference -----------------------------------------------------------

    def inference(
        self,
        model_id: str,
        prompt: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: Optional[float] = None,
    ) -> CanonicalResult:
        data = self._request(
            "POST",
            "/v1/inference",
            json=_inference_payload(model_id, prompt, max_tokens, temperature),
        )
        return CanonicalResult(
            model_id=data["model_id"],
            text=data["text"],
            tokens_generated=data["tokens_generated"],
            finish_reason=data.get("finish_reason", "stop"),
        )

    def inference_stream(
        self,
        model_id: str,
        prompt: str,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: Optional[float] = None,
    ) -> Iterator[CanonicalToken]:
        """Yield tokens from ``POST /v1/inference/stream`` as they arrive."""
        payload = _inference_payload(model_id, prompt, max_tokens, temperature)
        headers = {"Accept": "text/event-stream"}
        with self._client() as client:
            with client.stream(
                "POST", "/v1/inference/stream", json=payload, headers=headers
            ) as response:
                if response.status_code >= 400:
                    response.read()
                    raise _error_from_response(response.status_code, response.text)
                yield from _parse_sse_events(response.iter_lines())


# ------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------


def _inference_payload(
    model_id: str, prompt: str, max_tokens: int, temperature: Optional[float]
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "model_id": model_id,
        "prompt": prompt,
        "max_tokens": max_tokens,
    }
    if temperature is not None:
        payload["temperature"] = temperature
    return payload


def _error_from_response(status_code: int, body: str) -> Exception:
    """Map a gateway error response to the matching exception."""
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        data = None
    if isinstance(data, dict) and isinstance(data.get("detail"), str):
        message = data["detail"]
        code = data.get("code") or "API_ERROR"
    else:
        message = body
        code = "API_ERROR"

    match = _MODEL_ID_RE.search(message)
    if match:
        if status_code == 404 and code == "MODEL_NOT_FOUND":
            return ModelNotFoundError(match.group(1))
        if status_code == 412:
            return ModelNotLoadedError(match.group(1))
    return GatewayClientError(message, status_code=status_code, code=code)


def _parse_sse_events(lines: Iterator[str]) -> Iterator[CanonicalToken]:
    """Parse ``event:``/``data:`` SSE records into tokens."""
    event = "message"
    for line in lines:
        line = line.strip()
        if not line:
            event = "message"
            continue
        if line.startswith("event:"):
            event = line[len("event:") :].strip()
            continue
        if not line.startswith("data:"):
            continue
        data_str = line[len("data:") :].strip()
        try:
            data = json.loads(data_str)
        except json.JSONDecodeError:
            logger.warning("Failed to parse SSE data: %s", data_str)
            continue
        if event == "error":
            raise GatewayClientError(
                data.get("detail", "stream failed"), code=data.get("code", "API_ERROR")
            )
        if event != "token":
            continue
        token = CanonicalToken(
            text=data.get("token", ""),
            sequence_index=data.get("token_id", 0),
            is_final=data.get("complete", False),
        )
        yield token
        if token.is_final:
            return
