"""Abstract backend adapter interface.

Each upstream inference service (Ollama, llama.cpp, Hugging Face, OpenAI)
implements this interface so the dispatcher can treat them uniformly:

- build_request(): canonical request -> upstream URL, JSON body, headers
- parse_response(): upstream non-streaming body -> Completion
- parse_frame(): one newline-delimited stream frame -> StreamEvent
"""

from __future__ import annotations

import abc
import json
from dataclasses import dataclass, field
from typing import Any, Optional

from ..config import BackendSettings
from ..errors import ConfigurationError, UnsupportedOperationError, UpstreamError
from ..streaming import StreamEvent
from ..types import BackendKind, CanonicalRequest, Completion, ModelEntry


@dataclass
class UpstreamRequest:
    """A fully resolved upstream HTTP call."""

    url: str
    payload: dict[str, Any]
    headers: dict[str, str] = field(default_factory=dict)


def word_count(text: str) -> int:
    """Whitespace word count, the token estimate for backends without usage data."""
    return len(text.split())


class BackendAdapter(abc.ABC):
    """Base class for backend adapters.

    Subclasses set the class attributes and implement the three
    translation methods.  Base URLs and credentials are looked up from
    ``settings`` on every call.
    """

    kind: BackendKind
    name: str = "base"
    url_env: str = ""
    default_base_url: str = ""
    credential_envs: tuple[str, ...] = ()
    requires_credential: bool = False
    supports_streaming: bool = True

    def base_url(self, settings: BackendSettings) -> str:
        return settings.base_url(self.url_env, self.default_base_url)

    def credential(self, settings: BackendSettings) -> Optional[str]:
        """Return the configured credential.

        Raises ConfigurationError when the backend requires one and none
        is set.
        """
        value = settings.get(*self.credential_envs) if self.credential_envs else ""
        if not value and self.requires_credential:
            raise ConfigurationError(
                f"{self.name} backend requires a credential; "
                f"set {' or '.join(self.credential_envs)}"
            )
        return value or None

    def headers(self, settings: BackendSettings) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.credential(settings)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    @abc.abstractmethod
    def build_request(
        self,
        entry: ModelEntry,
        request: CanonicalRequest,
        settings: BackendSettings,
        stream: bool = False,
    ) -> UpstreamRequest:
        """Translate a canonical request into this backend's HTTP call."""

    @abc.abstractmethod
    def parse_response(self, data: Any) -> Completion:
        """Translate a decoded non-streaming body.

        Raises UpstreamError if the body does not have the expected shape.
        """

    def parse_frame(self, frame: bytes) -> Optional[StreamEvent]:
        """Translate one stream frame, or return ``None`` to skip it."""
        raise UnsupportedOperationError(
            f"Streaming is not supported by the {self.name} backend"
        )

    def malformed(self, detail: str) -> UpstreamError:
        return UpstreamError(self.name, f"malformed response: {detail}")

    def check_error(self, data: Any) -> None:
        """Raise UpstreamError for an in-band ``{"error": ...}`` frame.

        Ollama and OpenAI-compatible servers report generation failures
        this way after the 200 status has already been sent.
        """
        if not isinstance(data, dict) or not data.get("error"):
            return
        error = data["error"]
        if isinstance(error, dict):
            error = error.get("message") or json.dumps(error)
        raise UpstreamError(self.name, str(error))
