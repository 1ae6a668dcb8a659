"""Dispatcher — canonical requests to backend calls.

Usage::

    dispatcher = Dispatcher(registry)
    result = await dispatcher.dispatch(CanonicalRequest("mistral", "Hi"))

    stream = await dispatcher.dispatch_stream(CanonicalRequest("mistral", "Hi"))
    async with stream:
        async for token in stream:
            print(token.text, end="")

The registry is only consulted before the upstream call, so a slow
backend never holds the registry lock.  Upstream failures are wrapped in
:class:`UpstreamError` and never retried.
"""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from typing import Any, AsyncIterator, Optional

import httpx

from .backends import BackendAdapter, get_adapter
from .config import BackendSettings
from .errors import NoMatchingModelError, UnsupportedOperationError, UpstreamError
from .registry import ModelRegistry
from .streaming import normalize_stream
from .types import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    BackendKind,
    CanonicalRequest,
    CanonicalResult,
    CanonicalToken,
    LatencyProfile,
    ModelCapability,
    ModelEntry,
)

logger = logging.getLogger(__name__)

_ERROR_BODY_LIMIT = 500


class TokenStream:
    """Single-pass async iterator over one upstream stream.

    The upstream connection is closed as soon as the final token is
    produced, on any error, or when :meth:`aclose` is called (for example
    because the gateway client disconnected).  Iterating again after that
    yields nothing.
    """

    def __init__(
        self,
        model_id: str,
        tokens: AsyncIterator[CanonicalToken],
        resources: AsyncExitStack,
    ) -> None:
        self.model_id = model_id
        self._tokens = tokens
        self._resources = resources
        self._closed = False

    def __aiter__(self) -> TokenStream:
        return self

    async def __anext__(self) -> CanonicalToken:
        if self._closed:
            raise StopAsyncIteration
        try:
            token = await self._tokens.__anext__()
        except BaseException:
            await self.aclose()
            raise
        if token.is_final:
            await self.aclose()
        return token

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._tokens.aclose()  # type: ignore[attr-defined]
        finally:
            await self._resources.aclose()

    async def __aenter__(self) -> TokenStream:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def collect(self) -> CanonicalResult:
        """Drain the stream into a :class:`CanonicalResult`."""
        parts: list[str] = []
        count = 0
        async for token in self:
            if token.text:
                parts.append(token.text)
                count += 1
        return CanonicalResult(model_id=self.model_id, text="".join(parts), tokens_generated=count)


class Dispatcher:
    """Routes canonical requests to the adapter of the model's backend.

    Parameters
    ----------
    settings:
        Fixed backend settings.  When ``None`` the environment is read
        on every request.
    transport:
        Optional httpx transport, e.g. ``httpx.MockTransport`` in tests.
    timeout:
        Upstream timeout in seconds; ``None`` waits indefinitely.
    """

    def __init__(
        self,
        registry: ModelRegistry,
        settings: Optional[BackendSettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.registry = registry
        self._settings = settings
        self._transport = transport
        self._timeout = timeout

    def settings(self) -> BackendSettings:
        return self._settings if self._settings is not None else BackendSettings.from_env()

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self._timeout)

    def _resolve(self, model_id: str) -> tuple[ModelEntry, BackendAdapter]:
        entry = self.registry.resolve_loaded(model_id)
        return entry, get_adapter(entry.backend)

    async def dispatch(self, request: CanonicalRequest) -> CanonicalResult:
        """Run a non-streaming completion.

        Raises ModelNotFoundError, ModelNotLoadedError, ConfigurationError
        or UpstreamError.
        """
        entry, adapter = self._resolve(request.model_id)
        upstream = adapter.build_request(entry, request, self.settings())
        logger.debug("Dispatching %s to %s at %s", entry.id, adapter.name, upstream.url)

        try:
            async with self._client() as client:
                response = await client.post(
                    upstream.url, json=upstream.payload, headers=upstream.headers
                )
        except httpx.HTTPError as exc:
            raise UpstreamError(adapter.name, f"request failed: {exc}") from exc

        if not response.is_success:
            raise UpstreamError(
                adapter.name,
                f"HTTP {response.status_code}: {response.text[:_ERROR_BODY_LIMIT]}",
            )
        try:
            data = response.json()
        except ValueError as exc:
            raise adapter.malformed(f"invalid JSON: {exc}") from exc

        completion = adapter.parse_response(data)
        logger.info(
            "Completed %s via %s (%d tokens)",
            entry.id,
            adapter.name,
            completion.tokens_generated,
        )
        return CanonicalResult(
            model_id=entry.id,
            text=completion.text,
            tokens_generated=completion.tokens_generated,
            finish_reason="stop",
        )

    async def dispatch_stream(self, request: CanonicalRequest) -> TokenStream:
        """Open a streaming completion.

        Resolution, streaming support, credentials and the upstream status
        are all checked before this returns, so those failures surface as
        exceptions here rather than inside the stream.
        """
        entry, adapter = self._resolve(request.model_id)
        if not adapter.supports_streaming:
            raise UnsupportedOperationError(
                f"Streaming is not supported by the {adapter.name} backend"
            )
        upstream = adapter.build_request(entry, request, self.settings(), stream=True)
        logger.debug("Opening %s stream for %s at %s", adapter.name, entry.id, upstream.url)

        resources = AsyncExitStack()
        try:
            client = await resources.enter_async_context(self._client())
            response = await resources.enter_async_context(
                client.stream(
                    "POST", upstream.url, json=upstream.payload, headers=upstream.headers
                )
            )
            if not response.is_success:
                body = await response.aread()
                detail = body[:_ERROR_BODY_LIMIT].decode("utf-8", errors="replace")
                raise UpstreamError(adapter.name, f"HTTP {response.status_code}: {detail}")
        except httpx.HTTPError as exc:
            await resources.aclose()
            raise UpstreamError(adapter.name, f"request failed: {exc}") from exc
        except BaseException:
            await resources.aclose()
            raise

        tokens = normalize_stream(response.aiter_bytes(), adapter.parse_frame, adapter.name)
        return TokenStream(entry.id, tokens, resources)

    def select_model(
        self,
        model: Optional[str] = None,
        capability: Optional[ModelCapability] = ModelCapability.CHAT,
        latency: Optional[LatencyProfile] = None,
        backend: Optional[BackendKind] = None,
        min_context: Optional[int] = None,
    ) -> ModelEntry:
        """Pick a model by id or by constraints, preferring loaded ones."""
        if model:
            entry = self.registry.get(model)
            if entry is None:
                raise NoMatchingModelError(f"Model '{model}' not found in registry")
            return entry

        constraints = dict(
            capability=capability, latency=latency, backend=backend, min_context=min_context
        )
        entry = self.registry.find_one(loaded=True, **constraints) or self.registry.find_one(
            **constraints
        )
        if entry is None:
            raise NoMatchingModelError("No suitable model found for the given constraints")
        return entry

    async def route(
        self,
        prompt: str,
        *,
        model: Optional[str] = None,
        capability: Optional[ModelCapability] = ModelCapability.CHAT,
        latency: Optional[LatencyProfile] = None,
        backend: Optional[BackendKind] = None,
        min_context: Optional[int] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
    ) -> CanonicalResult:
        """Select a model with :meth:`select_model` and dispatch to it."""
        entry = self.select_model(model, capability, latency, backend, min_context)
        logger.debug("Routed prompt to %s", entry.id)
        return await self.dispatch(
            CanonicalRequest(
                model_id=entry.id,
                prompt=prompt,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        )
