"""
Line framing for the VIP-X JSON-RPC stream.

Wire format: one JSON object per line, lines terminated by CR LF, no other
envelope or length prefix.

The receive buffer may contain:
- Partial lines (kept until the terminator arrives)
- Complete lines (decoded and yielded)
- Several lines from a single read (all yielded, in order)
- Blank lines (dropped silently)
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from .errors import FrameParseError

TERMINATOR = b"\r\n"


@dataclass
class Frame:
    """
    One complete line from the stream.

    Attributes:
        raw: Decoded line text without terminator
        message: Parsed JSON object, or None when malformed
        error: Parse failure, or None when ``message`` is set
    """

    raw: str
    message: Optional[dict[str, Any]] = None
    error: Optional[FrameParseError] = None

    @property
    def is_malformed(self) -> bool:
        return self.error is not None


class LineFramer:
    """Splits a byte stream into CR LF terminated JSON frames."""

    def __init__(self) -> None:
        self._recv_buffer = bytearray()

    @property
    def pending_bytes(self) -> int:
        """Number of buffered bytes belonging to an unterminated line."""
        return len(self._recv_buffer)

    def feed(self, data: bytes) -> Iterator[Frame]:
        """
        Append data to the receive buffer and yield every complete frame.

        A malformed line yields a frame carrying a FrameParseError; the
        buffer stays consistent and following lines are still produced.

        Args:
            data: Bytes as read from the socket

        Yields:
            Frame objects in stream order
        """
        self._recv_buffer.extend(data)
        return self._drain()

    def _drain(self) -> Iterator[Frame]:
        while True:
            idx = self._recv_buffer.find(TERMINATOR)
            if idx < 0:
                break

            line_bytes = bytes(self._recv_buffer[:idx])
            del self._recv_buffer[: idx + len(TERMINATOR)]

            try:
                line = line_bytes.decode("utf-8")
            except UnicodeDecodeError as err:
                line = line_bytes.decode("utf-8", errors="replace")
                yield Frame(raw=line, error=FrameParseError(line, f"invalid UTF-8: {err}"))
                continue

            if not line.strip():
                continue

            yield decode_line(line)

    def clear(self) -> None:
        """Discard any partial line."""
        self._recv_buffer.clear()


def decode_line(line: str) -> Frame:
    """Parse a single line into a Frame."""
    try:
        message = json.loads(line)
    except ValueError as err:
        return Frame(raw=line, error=FrameParseError(line, f"JSON parse error: {err}"))

    if not isinstance(message, dict):
        return Frame(
            raw=line,
            error=FrameParseError(line, f"expected JSON object, got {type(message).__name__}"),
        )

    return Frame(raw=line, message=message)


def serialize(message: dict[str, Any]) -> bytes:
    """Encode a message as one terminated line."""
    return json.dumps(message, ensure_ascii=False, separators=(",", ":")).encode("utf-8") + TERMINATOR
