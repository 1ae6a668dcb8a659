"""Stream normalizer — raw upstream bytes to canonical tokens.

Every backend frames its stream by newline: Ollama sends one JSON object
per line, the SSE backends send ``data: `` lines.  :class:`FrameBuffer`
does the byte-level framing; each adapter turns one frame into a
:class:`StreamEvent` (or ``None`` to skip it); :func:`normalize_stream`
numbers the surviving events and stops at the terminator.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Optional

import httpx

from .errors import UpstreamError
from .types import CanonicalToken

logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data: "
SSE_DONE = "[DONE]"


@dataclass
class StreamEvent:
    """What one upstream frame contributes to the canonical stream.

    ``final`` marks the terminating frame; its text may be empty.
    """

    text: str
    final: bool = False


FrameParser = Callable[[bytes], Optional[StreamEvent]]


class FrameBuffer:
    """Accumulates raw bytes and splits them into newline-delimited frames.

    Framing happens on bytes so multi-byte characters split across
    chunks are reassembled before decoding.
    """

    def __init__(self) -> None:
        self._buf = bytearray()

    def feed(self, chunk: bytes) -> list[bytes]:
        """Append ``chunk`` and return every frame it completed."""
        self._buf.extend(chunk)
        frames: list[bytes] = []
        while True:
            idx = self._buf.find(b"\n")
            if idx < 0:
                break
            frame = bytes(self._buf[:idx])
            del self._buf[: idx + 1]
            frames.append(frame.rstrip(b"\r"))
        return frames

    def flush(self) -> Optional[bytes]:
        """Return and clear the unterminated remainder, if any."""
        if not self._buf:
            return None
        frame = bytes(self._buf).rstrip(b"\r")
        self._buf.clear()
        return frame

    def __len__(self) -> int:
        return len(self._buf)


def decode_frame(frame: bytes) -> str:
    return frame.decode("utf-8", errors="replace").strip()


def strip_sse_data(frame: bytes) -> Optional[str]:
    """Payload of an SSE ``data: `` line, or ``None`` for any other line."""
    line = frame.decode("utf-8", errors="replace")
    if not line.startswith(SSE_DATA_PREFIX):
        return None
    return line[len(SSE_DATA_PREFIX) :].strip()


async def normalize_stream(
    chunks: AsyncIterator[bytes],
    parse_frame: FrameParser,
    backend: str = "upstream",
) -> AsyncIterator[CanonicalToken]:
    """Yield canonical tokens from a raw byte-chunk stream.

    Tokens come out in arrival order.  Exactly one token has
    ``is_final=True``: the terminating frame's, or an empty one if the
    upstream closed without a terminator.  Non-final events with empty
    text are dropped without consuming a sequence number.  A transport
    error while reading, or an in-band error frame rejected by the
    adapter, is raised as :class:`UpstreamError`.
    """
    buffer = FrameBuffer()
    index = 0

    try:
        async for chunk in chunks:
            for frame in buffer.feed(chunk):
                event = parse_frame(frame)
                if event is None:
                    continue
                if event.final:
                    yield CanonicalToken(event.text, index, is_final=True)
                    return
                if not event.text:
                    continue
                yield CanonicalToken(event.text, index)
                index += 1
    except httpx.HTTPError as exc:
        raise UpstreamError(backend, f"stream read failed: {exc}") from exc

    # Upstream closed without a terminator.  An undecodable trailing
    # partial frame is dropped here like any other bad frame.
    tail = buffer.flush()
    if tail:
        event = parse_frame(tail)
        if event is not None and (event.text or event.final):
            yield CanonicalToken(event.text, index, is_final=True)
            return
    logger.debug("%s stream ended without a terminator", backend)
    yield CanonicalToken("", index, is_final=True)
