"""Gateway error taxonomy.

Every error carries the HTTP status code and machine-readable code the
server maps it to, so the same classes are raised by the core and
re-raised by :mod:`llmgate.client` from gateway responses.
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base class for all recoverable gateway errors."""

    status_code: int = 500
    code: str = "GATEWAY_ERROR"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ModelNotFoundError(GatewayError):
    status_code = 404
    code = "MODEL_NOT_FOUND"

    def __init__(self, model_id: str) -> None:
        super().__init__(f"Model '{model_id}' not found in registry")
        self.model_id = model_id


class NoMatchingModelError(GatewayError):
    """No registered model satisfies the routing constraints."""

    status_code = 404
    code = "NO_MATCHING_MODEL"


class ModelNotLoadedError(GatewayError):
    status_code = 412
    code = "MODEL_NOT_LOADED"

    def __init__(self, model_id: str) -> None:
        super().__init__(f"Model '{model_id}' is not loaded. Load it first.")
        self.model_id = model_id


class ModelConflictError(GatewayError):
    """Raised when a model id is registered twice."""

    status_code = 409
    code = "MODEL_CONFLICT"

    def __init__(self, model_id: str, message: str = "") -> None:
        super().__init__(message or f"Model '{model_id}' is already registered")
        self.model_id = model_id


class ModelAlreadyLoadedError(ModelConflictError):
    code = "MODEL_ALREADY_LOADED"

    def __init__(self, model_id: str) -> None:
        super().__init__(model_id, f"Model '{model_id}' is already loaded")


class UpstreamError(GatewayError):
    """Network failure, non-2xx status or malformed body from a backend."""

    status_code = 502
    code = "INFERENCE_ERROR"

    def __init__(self, backend: str, detail: str) -> None:
        super().__init__(f"{backend} backend failed: {detail}")
        self.backend = backend
        self.detail = detail


class UnsupportedOperationError(GatewayError):
    status_code = 501
    code = "NOT_IMPLEMENTED"


class ConfigurationError(GatewayError):
    """A required setting (usually a credential) is missing."""

    status_code = 500
    code = "CONFIGURATION_ERROR"
