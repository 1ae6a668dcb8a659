"""
Gateway HTTP server — one API in front of several inference backends.

Usage::

    from llmgate.server import run_server
    run_server(port=8080, models_file="models.json")

    # Then:
    # curl localhost:8080/v1/models/register \\
    #   -d '{"id":"mistral","name":"Mistral 7B","backend":"ollama","context_length":8192}'
    # curl localhost:8080/v1/models/load -d '{"model_id":"mistral"}'
    # curl localhost:8080/v1/inference -d '{"model_id":"mistral","prompt":"Hi"}'
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

import httpx
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from .config import BackendSettings, load_models_file
from .dispatch import Dispatcher, TokenStream
from .errors import GatewayError
from .registry import ModelRegistry
from .types import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_SIZE_BYTES,
    DEFAULT_TEMPERATURE,
    BackendKind,
    CanonicalRequest,
    LatencyProfile,
    ModelCapability,
    ModelEntry,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class RegisterModelBody(BaseModel):
    id: str
    name: str
    backend: BackendKind = Field(validation_alias=AliasChoices("backend", "inference"))
    context_length: int = Field(validation_alias=AliasChoices("context_length", "context"))
    quantization: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("quantization", "quant")
    )
    capabilities: list[ModelCapability] = Field(default_factory=list)
    latency: Optional[LatencyProfile] = None
    size_bytes: int = DEFAULT_SIZE_BYTES
    upstream_model: Optional[str] = None

    def to_entry(self) -> ModelEntry:
        return ModelEntry(
            id=self.id,
            name=self.name,
            backend=self.backend,
            context_length=self.context_length,
            capabilities=list(self.capabilities),
            quantization=self.quantization,
            latency=self.latency,
            size_bytes=self.size_bytes,
            upstream_model=self.upstream_model,
        )


class LoadModelBody(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_id: str


class InferenceBody(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    prompt: str
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1)
    temperature: Optional[float] = None

    def to_request(self) -> CanonicalRequest:
        return CanonicalRequest(
            model_id=self.model_id,
            prompt=self.prompt,
            max_tokens=self.max_tokens,
            temperature=(
                self.temperature if self.temperature is not None else DEFAULT_TEMPERATURE
            ),
        )


class RouterOptions(BaseModel):
    model: Optional[str] = None
    capability: Optional[ModelCapability] = ModelCapability.CHAT
    latency: Optional[LatencyProfile] = None
    backend: Optional[BackendKind] = Field(
        default=None, validation_alias=AliasChoices("backend", "inference")
    )
    min_context: Optional[int] = Field(
        default=None, validation_alias=AliasChoices("min_context", "minContext")
    )
    max_tokens: int = Field(default=DEFAULT_MAX_TOKENS, ge=1)
    temperature: float = DEFAULT_TEMPERATURE


class RouterInferenceBody(BaseModel):
    prompt: str
    options: RouterOptions = Field(default_factory=RouterOptions)


# ---------------------------------------------------------------------------
# FastAPI app factory
# ---------------------------------------------------------------------------


def _error_payload(exc: GatewayError) -> dict[str, Any]:
    return {"detail": exc.message, "code": exc.code}


def create_app(
    registry: Optional[ModelRegistry] = None,
    *,
    models_file: Optional[str] = None,
    settings: Optional[BackendSettings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    upstream_timeout: Optional[float] = None,
    enable_router: bool = False,
) -> Any:
    """Create the gateway FastAPI app.

    Parameters
    ----------
    registry:
        Registry shared by every request.  A fresh empty one by default.
    models_file:
        JSON file of entries to seed the registry with (falls back to
        ``$LLMGATE_MODELS_FILE``).  Seeded entries start unloaded.
    settings, transport, upstream_timeout:
        Passed to the :class:`~llmgate.dispatch.Dispatcher`.
    enable_router:
        Expose ``POST /v1/router/inference`` for constraint-based model
        selection.
    """
    from contextlib import asynccontextmanager

    from fastapi import FastAPI, Request
    from fastapi.middleware.cors import CORSMiddleware
    from fastapi.responses import JSONResponse, StreamingResponse

    if registry is None:
        registry = ModelRegistry()
    seed = load_models_file(models_file)
    if seed:
        registry.register_many(seed)

    dispatcher = Dispatcher(
        registry, settings, transport=transport, timeout=upstream_timeout
    )

    @asynccontextmanager
    async def lifespan(app: Any) -> Any:
        logger.info("llmgate gateway ready (%d models registered)", len(registry))
        logger.info("  - GET  /health")
        logger.info("  - GET  /v1/models")
        logger.info("  - POST /v1/models/register")
        logger.info("  - POST /v1/models/load")
        logger.info("  - POST /v1/models/unload/{model_id}")
        logger.info("  - POST /v1/inference")
        logger.info("  - POST /v1/inference/stream")
        if enable_router:
            logger.info("  - POST /v1/router/inference")
        yield

    app = FastAPI(title="llmgate", version="1.0.0", lifespan=lifespan)
    app.state.registry = registry
    app.state.dispatcher = dispatcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> Any:
        if exc.status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content=_error_payload(exc))

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "models_registered": len(registry),
            "models_loaded": registry.loaded_count(),
        }

    @app.get("/v1/models")
    async def list_models() -> dict[str, Any]:
        return {"models": [entry.to_dict() for entry in registry.list()]}

    @app.post("/v1/models/register", status_code=201)
    async def register_model(body: RegisterModelBody) -> dict[str, Any]:
        entry = registry.register(body.to_entry())
        return {
            "success": True,
            "model": entry.to_dict(),
            "message": "Model registered successfully",
        }

    @app.post("/v1/models/load")
    async def load_model(body: LoadModelBody) -> dict[str, Any]:
        registry.load(body.model_id)
        return {
            "success": True,
            "model_id": body.model_id,
            "message": "Model loaded successfully",
        }

    @app.post("/v1/models/unload/{model_id:path}")
    async def unload_model(model_id: str) -> dict[str, Any]:
        registry.unload(model_id)
        return {
            "success": True,
            "model_id": model_id,
            "message": "Model unloaded successfully",
        }

    @app.post("/v1/inference")
    async def inference_complete(body: InferenceBody) -> dict[str, Any]:
        result = await dispatcher.dispatch(body.to_request())
        return result.to_dict()

    @app.post("/v1/inference/stream")
    async def inference_stream(body: InferenceBody) -> Any:
        stream = await dispatcher.dispatch_stream(body.to_request())
        return StreamingResponse(
            _sse_events(stream),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    if enable_router:

        @app.post("/v1/router/inference")
        async def router_inference(body: RouterInferenceBody) -> dict[str, Any]:
            opts = body.options
            result = await dispatcher.route(
                body.prompt,
                model=opts.model,
                capability=opts.capability,
                latency=opts.latency,
                backend=opts.backend,
                min_context=opts.min_context,
                max_tokens=opts.max_tokens,
                temperature=opts.temperature,
            )
            return result.to_dict()

    return app


def format_sse(event: str, data: dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


async def _sse_events(stream: TokenStream) -> AsyncIterator[str]:
    """Yield ``token`` SSE events; a mid-stream failure ends with an ``error`` event."""
    try:
        async for token in stream:
            yield format_sse("token", token.to_dict())
    except GatewayError as exc:
        logger.warning("Stream for %s failed: %s", stream.model_id, exc)
        yield format_sse("error", _error_payload(exc))
    finally:
        # Also runs when the client disconnects and the response is
        # cancelled; shielded so the upstream connection is still released.
        await asyncio.shield(stream.aclose())


def run_server(
    *,
    port: int = 8080,
    host: str = "0.0.0.0",
    log_level: str = "info",
    models_file: Optional[str] = None,
    enable_router: bool = False,
) -> None:
    """Start the gateway (blocking)."""
    import uvicorn

    app = create_app(models_file=models_file, enable_router=enable_router)
    logger.info("Server starting on http://%s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level=log_level)
