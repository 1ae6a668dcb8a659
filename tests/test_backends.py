"""Tests for the backend adapters — upstream payloads and response parsing."""

from __future__ import annotations

import unittest

from llmgate.backends import (
    HuggingFaceAdapter,
    LlamaCppAdapter,
    OllamaAdapter,
    OpenAIAdapter,
    get_adapter,
    word_count,
)
from llmgate.config import BackendSettings
from llmgate.errors import ConfigurationError, UnsupportedOperationError, UpstreamError
from llmgate.types import BackendKind, CanonicalRequest, ModelEntry


def _entry(backend: BackendKind, **overrides) -> ModelEntry:
    fields = {
        "id": "m1",
        "name": "Model One",
        "backend": backend,
        "context_length": 4096,
    }
    fields.update(overrides)
    return ModelEntry(**fields)


REQUEST = CanonicalRequest(model_id="m1", prompt="Tell me a story", max_tokens=5, temperature=0.2)


# ------------------------------------------------------------------
# Registry of adapters
# ------------------------------------------------------------------


class GetAdapterTests(unittest.TestCase):
    def test_every_backend_kind_has_an_adapter(self):
        for kind in BackendKind:
            self.assertEqual(get_adapter(kind).kind, kind)

    def test_word_count(self):
        self.assertEqual(word_count("hello there  world\n"), 3)
        self.assertEqual(word_count(""), 0)
        self.assertEqual(word_count("   "), 0)


# ------------------------------------------------------------------
# Ollama
# ------------------------------------------------------------------


class OllamaAdapterTests(unittest.TestCase):
    def setUp(self):
        self.adapter = OllamaAdapter()
        self.settings = BackendSettings(environ={})

    def test_build_request_default_url(self):
        upstream = self.adapter.build_request(
            _entry(BackendKind.OLLAMA), REQUEST, self.settings
        )
        self.assertEqual(upstream.url, "http://localhost:11434/api/generate")
        self.assertEqual(
            upstream.payload,
            {
                "model": "m1",
                "prompt": "Tell me a story",
                "stream": False,
                "options": {"num_predict": 5, "temperature": 0.2},
            },
        )
        self.assertNotIn("Authorization", upstream.headers)

    def test_build_request_stream_and_upstream_model(self):
        upstream = self.adapter.build_request(
            _entry(BackendKind.OLLAMA, upstream_model="mistral:7b"),
            REQUEST,
            self.settings,
            stream=True,
        )
        self.assertTrue(upstream.payload["stream"])
        self.assertEqual(upstream.payload["model"], "mistral:7b")

    def test_base_url_from_env_without_trailing_slash(self):
        settings = BackendSettings(environ={"OLLAMA_BASE_URL": "http://gpu-box:11434/"})
        upstream = self.adapter.build_request(_entry(BackendKind.OLLAMA), REQUEST, settings)
        self.assertEqual(upstream.url, "http://gpu-box:11434/api/generate")

    def test_parse_response(self):
        completion = self.adapter.parse_response(
            {"model": "m1", "response": "Once upon a time", "done": True}
        )
        self.assertEqual(completion.text, "Once upon a time")
        self.assertEqual(completion.tokens_generated, 4)

    def test_parse_response_is_deterministic(self):
        data = {"response": "same text every time"}
        self.assertEqual(
            self.adapter.parse_response(data).tokens_generated,
            self.adapter.parse_response(data).tokens_generated,
        )

    def test_parse_response_malformed(self):
        for data in ({}, {"response": 42}, [], "text"):
            with self.subTest(data=data):
                with self.assertRaises(UpstreamError) as ctx:
                    self.adapter.parse_response(data)
                self.assertEqual(ctx.exception.backend, "ollama")

    def test_parse_frame(self):
        event = self.adapter.parse_frame(b'{"response":"Hi","done":false}')
        self.assertEqual((event.text, event.final), ("Hi", False))
        done = self.adapter.parse_frame(b'{"response":"","done":true}')
        self.assertTrue(done.final)

    def test_parse_frame_skips_blank_and_bad(self):
        self.assertIsNone(self.adapter.parse_frame(b""))
        self.assertIsNone(self.adapter.parse_frame(b"{nope"))
        self.assertIsNone(self.adapter.parse_frame(b"[1, 2]"))


# ------------------------------------------------------------------
# llama.cpp
# ------------------------------------------------------------------


class LlamaCppAdapterTests(unittest.TestCase):
    def setUp(self):
        self.adapter = LlamaCppAdapter()
        self.settings = BackendSettings(environ={})

    def test_build_request(self):
        upstream = self.adapter.build_request(_entry(BackendKind.LLAMA), REQUEST, self.settings)
        self.assertEqual(upstream.url, "http://localhost:8081/v1/completions")
        self.assertEqual(
            upstream.payload,
            {
                "model": "m1",
                "prompt": "Tell me a story",
                "n_predict": 5,
                "temperature": 0.2,
                "stream": False,
            },
        )

    def test_base_url_from_env(self):
        settings = BackendSettings(environ={"LLAMA_CPP_BASE_URL": "http://10.0.0.5:9000"})
        upstream = self.adapter.build_request(_entry(BackendKind.LLAMA), REQUEST, settings)
        self.assertEqual(upstream.url, "http://10.0.0.5:9000/v1/completions")

    def test_parse_response(self):
        completion = self.adapter.parse_response(
            {"choices": [{"text": "a b c", "finish_reason": "length"}]}
        )
        self.assertEqual(completion.text, "a b c")
        self.assertEqual(completion.tokens_generated, 3)

    def test_parse_response_malformed(self):
        for data in ({}, {"choices": []}, {"choices": [{"text": None}]}, {"choices": ["x"]}):
            with self.subTest(data=data):
                with self.assertRaises(UpstreamError):
                    self.adapter.parse_response(data)

    def test_parse_frame(self):
        event = self.adapter.parse_frame(b'data: {"choices":[{"text":"x","finish_reason":null}]}')
        self.assertEqual((event.text, event.final), ("x", False))
        self.assertTrue(self.adapter.parse_frame(b"data: [DONE]").final)
        self.assertIsNone(self.adapter.parse_frame(b""))
        self.assertIsNone(self.adapter.parse_frame(b"data: {oops"))


# ------------------------------------------------------------------
# Hugging Face
# ------------------------------------------------------------------


class HuggingFaceAdapterTests(unittest.TestCase):
    def setUp(self):
        self.adapter = HuggingFaceAdapter()
        self.settings = BackendSettings(environ={"HUGGINGFACE_API_KEY": "hf_secret"})

    def test_build_request(self):
        upstream = self.adapter.build_request(
            _entry(BackendKind.HUGGINGFACE, upstream_model="gpt2"), REQUEST, self.settings
        )
        self.assertEqual(upstream.url, "https://api-inference.huggingface.co/models/gpt2")
        self.assertEqual(
            upstream.payload,
            {
                "inputs": "Tell me a story",
                "parameters": {
                    "max_new_tokens": 5,
                    "temperature": 0.2,
                    "return_full_text": False,
                },
            },
        )
        self.assertEqual(upstream.headers["Authorization"], "Bearer hf_secret")

    def test_hf_token_fallback(self):
        settings = BackendSettings(environ={"HF_TOKEN": "hf_other"})
        upstream = self.adapter.build_request(
            _entry(BackendKind.HUGGINGFACE), REQUEST, settings
        )
        self.assertEqual(upstream.headers["Authorization"], "Bearer hf_other")

    def test_missing_credential(self):
        with self.assertRaises(ConfigurationError) as ctx:
            self.adapter.build_request(
                _entry(BackendKind.HUGGINGFACE), REQUEST, BackendSettings(environ={})
            )
        self.assertIn("HUGGINGFACE_API_KEY", str(ctx.exception))

    def test_parse_response_object_form(self):
        completion = self.adapter.parse_response([{"generated_text": "hi there"}])
        self.assertEqual(completion.text, "hi there")
        self.assertEqual(completion.tokens_generated, 2)

    def test_parse_response_string_form(self):
        completion = self.adapter.parse_response(["plain string output"])
        self.assertEqual(completion.text, "plain string output")
        self.assertEqual(completion.tokens_generated, 3)

    def test_parse_response_malformed(self):
        for data in ([], {"generated_text": "x"}, [{"text": "x"}], [42]):
            with self.subTest(data=data):
                with self.assertRaises(UpstreamError):
                    self.adapter.parse_response(data)

    def test_streaming_unsupported(self):
        self.assertFalse(self.adapter.supports_streaming)
        with self.assertRaises(UnsupportedOperationError):
            self.adapter.parse_frame(b"data: {}")


# ------------------------------------------------------------------
# OpenAI-compatible
# ------------------------------------------------------------------


class OpenAIAdapterTests(unittest.TestCase):
    def setUp(self):
        self.adapter = OpenAIAdapter()

    def test_build_request_without_key(self):
        upstream = self.adapter.build_request(
            _entry(BackendKind.OPENAI, upstream_model="gpt-4o-mini"),
            REQUEST,
            BackendSettings(environ={}),
        )
        self.assertEqual(upstream.url, "https://api.openai.com/v1/chat/completions")
        self.assertEqual(
            upstream.payload,
            {
                "model": "gpt-4o-mini",
                "messages": [{"role": "user", "content": "Tell me a story"}],
                "max_tokens": 5,
                "temperature": 0.2,
                "stream": False,
            },
        )
        self.assertNotIn("Authorization", upstream.headers)

    def test_build_request_with_key_and_base_url(self):
        settings = BackendSettings(
            environ={"OPENAI_API_KEY": "sk-test", "OPENAI_BASE_URL": "http://vllm:8000"}
        )
        upstream = self.adapter.build_request(
            _entry(BackendKind.OPENAI), REQUEST, settings, stream=True
        )
        self.assertEqual(upstream.url, "http://vllm:8000/v1/chat/completions")
        self.assertEqual(upstream.headers["Authorization"], "Bearer sk-test")
        self.assertTrue(upstream.payload["stream"])

    def test_parse_response_uses_usage(self):
        completion = self.adapter.parse_response(
            {
                "choices": [{"message": {"content": "hello there"}, "finish_reason": "stop"}],
                "usage": {"completion_tokens": 7},
            }
        )
        self.assertEqual(completion.text, "hello there")
        self.assertEqual(completion.tokens_generated, 7)

    def test_parse_response_without_usage_counts_words(self):
        completion = self.adapter.parse_response(
            {"choices": [{"message": {"content": "one two three"}}]}
        )
        self.assertEqual(completion.tokens_generated, 3)

    def test_parse_response_malformed(self):
        for data in ({}, {"choices": [{"message": {}}]}, {"choices": [{"text": "x"}]}):
            with self.subTest(data=data):
                with self.assertRaises(UpstreamError) as ctx:
                    self.adapter.parse_response(data)
                self.assertEqual(ctx.exception.status_code, 502)

    def test_parse_frame(self):
        event = self.adapter.parse_frame(
            b'data: {"choices":[{"delta":{"content":"Hel"},"finish_reason":null}]}'
        )
        self.assertEqual((event.text, event.final), ("Hel", False))
        stop = self.adapter.parse_frame(
            b'data: {"choices":[{"delta":{},"finish_reason":"stop"}]}'
        )
        self.assertEqual((stop.text, stop.final), ("", True))
        self.assertTrue(self.adapter.parse_frame(b"data: [DONE]").final)
        self.assertIsNone(self.adapter.parse_frame(b'data: {"choices":[]}'))


if __name__ == "__main__":
    unittest.main()
