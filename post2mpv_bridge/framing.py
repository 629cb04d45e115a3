"""Native Messaging framing over a pair of byte streams.

Each frame is a 4-byte unsigned little-endian length followed by that many
bytes of UTF-8 JSON. The same framing is used in both directions.
"""

from __future__ import annotations

import json
import logging
import struct
import sys
from typing import BinaryIO

from .config import DEFAULT_MAX_FRAME_BYTES
from .messages import InboundMessage, MessageShapeError, OutboundMessage

_HEADER = struct.Struct("<I")
_DRAIN_CHUNK = 64 * 1024

logger = logging.getLogger("post2mpv.bridge.framing")


class FrameError(Exception):
    pass


class EndOfStream(FrameError):
    """Input closed cleanly on a frame boundary."""


class FrameReadError(FrameError):
    pass


class FrameTooLargeError(FrameReadError):
    pass


class FrameDecodeError(FrameError):
    pass


class FrameWriteError(FrameError):
    pass


class FrameChannel:
    """Reads and writes frames on two unidirectional byte streams."""

    def __init__(
        self,
        reader: BinaryIO,
        writer: BinaryIO,
        *,
        max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._max_frame_bytes = max(0, int(max_frame_bytes))

    @classmethod
    def stdio(cls, *, max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES) -> FrameChannel:
        return cls(sys.stdin.buffer, sys.stdout.buffer, max_frame_bytes=max_frame_bytes)

    def _read_exact(self, n: int) -> bytes:
        buf = bytearray()
        while len(buf) < n:
            try:
                chunk = self._reader.read(n - len(buf))
            except OSError as exc:
                raise FrameReadError(f"read failed: {exc}") from exc
            if not chunk:
                break
            buf.extend(chunk)
        return bytes(buf)

    def _drain(self, n: int) -> None:
        remaining = n
        while remaining > 0:
            want = min(remaining, _DRAIN_CHUNK)
            chunk = self._read_exact(want)
            remaining -= len(chunk)
            if len(chunk) < want:
                raise FrameReadError(f"unexpected EOF: frame truncated ({n - remaining} of {n} bytes)")

    def read_frame(self) -> bytes:
        """Read one raw frame payload (not JSON-validated)."""
        header = self._read_exact(_HEADER.size)
        if not header:
            raise EndOfStream()
        if len(header) < _HEADER.size:
            raise FrameReadError(f"unexpected EOF: length prefix truncated ({len(header)} of {_HEADER.size} bytes)")
        (length,) = _HEADER.unpack(header)
        if self._max_frame_bytes and length > self._max_frame_bytes:
            logger.warning("frame_too_large length=%d limit=%d", length, self._max_frame_bytes)
            self._drain(length)
            raise FrameTooLargeError(f"frame length {length} exceeds limit of {self._max_frame_bytes} bytes")
        payload = self._read_exact(length)
        if len(payload) < length:
            raise FrameReadError(f"unexpected EOF: frame truncated ({len(payload)} of {length} bytes)")
        return payload

    def write_frame(self, payload: bytes) -> None:
        try:
            self._writer.write(_HEADER.pack(len(payload)) + payload)
            self._writer.flush()
        except (OSError, ValueError) as exc:
            # ValueError: write to a closed file.
            raise FrameWriteError(f"write failed: {exc}") from exc

    def read_message(self) -> InboundMessage:
        raw = self.read_frame()
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise FrameDecodeError(f"invalid JSON: {exc}") from exc
        try:
            return InboundMessage.from_dict(data)
        except MessageShapeError as exc:
            raise FrameDecodeError(str(exc)) from exc

    def write_message(self, message: OutboundMessage) -> None:
        raw = json.dumps(message.to_dict(), ensure_ascii=False, separators=(",", ":")).encode("utf-8")
        self.write_frame(raw)


__all__ = [
    "EndOfStream",
    "FrameChannel",
    "FrameDecodeError",
    "FrameError",
    "FrameReadError",
    "FrameTooLargeError",
    "FrameWriteError",
]
