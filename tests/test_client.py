"""Tests for llmgate.client — GatewayClient against a mocked gateway."""

from __future__ import annotations

import json

import httpx
import pytest

from llmgate.client import GatewayClient, GatewayClientError, _parse_sse_events
from llmgate.errors import ModelNotFoundError, ModelNotLoadedError


def _client(handler) -> GatewayClient:
    return GatewayClient("http://gateway:8080/", transport=httpx.MockTransport(handler))


def _sse(*events: tuple[str, dict]) -> bytes:
    return "".join(
        f"event: {name}\ndata: {json.dumps(data)}\n\n" for name, data in events
    ).encode()


class TestModelCalls:
    def test_list_models(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"models": [{"id": "m1"}]})

        assert _client(handler).list_models() == [{"id": "m1"}]
        assert str(seen[0].url) == "http://gateway:8080/v1/models"

    def test_register_sends_entry(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(201, json={"success": True, "model": seen[-1]})

        entry = {"id": "m1", "name": "M", "backend": "ollama", "context_length": 2048}
        result = _client(handler).register_model(entry)
        assert result["success"] is True
        assert seen == [entry]

    def test_load_and_unload_paths(self):
        paths = []

        def handler(request):
            paths.append((request.url.path, json.loads(request.content or b"null")))
            return httpx.Response(200, json={"success": True})

        client = _client(handler)
        client.load_model("m1")
        client.unload_model("m1")
        assert paths[0] == ("/v1/models/load", {"model_id": "m1"})
        assert paths[1][0] == "/v1/models/unload/m1"

    def test_health(self):
        client = _client(lambda r: httpx.Response(200, json={"status": "healthy"}))
        assert client.health()["status"] == "healthy"


class TestErrorMapping:
    def test_not_found(self):
        body = {"detail": "Model 'ghost' not found in registry", "code": "MODEL_NOT_FOUND"}
        client = _client(lambda r: httpx.Response(404, json=body))
        with pytest.raises(ModelNotFoundError) as exc_info:
            client.load_model("ghost")
        assert exc_info.value.model_id == "ghost"

    def test_not_loaded(self):
        body = {"detail": "Model 'm1' is not loaded. Load it first.", "code": "MODEL_NOT_LOADED"}
        client = _client(lambda r: httpx.Response(412, json=body))
        with pytest.raises(ModelNotLoadedError) as exc_info:
            client.inference("m1", "hi")
        assert exc_info.value.model_id == "m1"

    def test_no_matching_model_is_generic(self):
        body = {"detail": "No suitable model found", "code": "NO_MATCHING_MODEL"}
        client = _client(lambda r: httpx.Response(404, json=body))
        with pytest.raises(GatewayClientError) as exc_info:
            client.list_models()
        assert exc_info.value.status_code == 404
        assert exc_info.value.code == "NO_MATCHING_MODEL"

    def test_non_json_error_body(self):
        client = _client(lambda r: httpx.Response(502, text="Bad Gateway"))
        with pytest.raises(GatewayClientError) as exc_info:
            client.health()
        assert exc_info.value.status_code == 502
        assert str(exc_info.value) == "Bad Gateway"


class TestInference:
    def test_inference(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(
                200,
                json={
                    "model_id": "m1",
                    "text": "hello there",
                    "tokens_generated": 2,
                    "finish_reason": "stop",
                },
            )

        result = _client(handler).inference("m1", "hi", max_tokens=5)
        assert result.text == "hello there"
        assert result.tokens_generated == 2
        assert seen == [{"model_id": "m1", "prompt": "hi", "max_tokens": 5}]

    def test_inference_sends_temperature_when_given(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(
                200, json={"model_id": "m1", "text": "", "tokens_generated": 0}
            )

        _client(handler).inference("m1", "hi", temperature=0.1)
        assert seen[0]["temperature"] == 0.1

    def test_inference_stream(self):
        body = _sse(
            ("token", {"token": "Hel", "token_id": 0, "complete": False}),
            ("token", {"token": "lo", "token_id": 1, "complete": False}),
            ("token", {"token": "", "token_id": 2, "complete": True}),
        )
        client = _client(
            lambda r: httpx.Response(
                200, content=body, headers={"content-type": "text/event-stream"}
            )
        )
        tokens = list(client.inference_stream("m1", "hi"))
        assert [(t.text, t.sequence_index, t.is_final) for t in tokens] == [
            ("Hel", 0, False),
            ("lo", 1, False),
            ("", 2, True),
        ]

    def test_inference_stream_error_status(self):
        body = {"detail": "Model 'm1' is not loaded. Load it first.", "code": "MODEL_NOT_LOADED"}
        client = _client(lambda r: httpx.Response(412, json=body))
        with pytest.raises(ModelNotLoadedError):
            list(client.inference_stream("m1", "hi"))

    def test_inference_stream_error_event(self):
        body = _sse(
            ("token", {"token": "a", "token_id": 0, "complete": False}),
            ("error", {"detail": "ollama backend failed: reset", "code": "INFERENCE_ERROR"}),
        )
        client = _client(lambda r: httpx.Response(200, content=body))
        received = []
        with pytest.raises(GatewayClientError) as exc_info:
            for token in client.inference_stream("m1", "hi"):
                received.append(token)
        assert [t.text for t in received] == ["a"]
        assert exc_info.value.code == "INFERENCE_ERROR"


class TestParseSSEEvents:
    def test_stops_after_final(self):
        lines = [
            "event: token",
            'data: {"token": "x", "token_id": 0, "complete": true}',
            "",
            "event: token",
            'data: {"token": "late", "token_id": 1, "complete": false}',
        ]
        assert [t.text for t in _parse_sse_events(iter(lines))] == ["x"]

    def test_ignores_untyped_and_bad_data(self):
        lines = [
            'data: {"token": "no event name"}',
            "",
            "event: token",
            "data: not-json",
            "",
            "event: token",
            'data: {"token": "ok", "token_id": 0, "complete": false}',
        ]
        assert [t.text for t in _parse_sse_events(iter(lines))] == ["ok"]
