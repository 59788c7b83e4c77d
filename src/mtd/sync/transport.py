"""
Framed transport -- one opaque blob at a time over a byte stream.

Wire format:
    [length: 8-byte unsigned big-endian][payload: length bytes]

Works over anything socket-like (``sendall``, ``recv``,
``settimeout``, ``close``). Reads are bounded by a deadline for the
whole frame; a timeout aborts the stream. No retries at this layer.
"""

from __future__ import annotations

import logging
import socket
import struct
import time
from typing import Optional

from ..errors import ConnectionClosed, FrameTooLarge, Timeout

logger = logging.getLogger("mtd.sync.transport")

HEADER = struct.Struct(">Q")
MAX_FRAME_SIZE = 64 * 1024 * 1024  # 64 MiB
RECV_CHUNK = 64 * 1024


class FrameTransport:
    """Length-prefixed framing over a connected stream.

    Args:
        stream: Connected socket (or any object with the same methods).
        timeout: Seconds allowed to receive one complete frame.
            ``None`` blocks forever.
        max_frame_size: Largest payload accepted or sent.
    """

    def __init__(
        self,
        stream,
        timeout: Optional[float] = None,
        max_frame_size: int = MAX_FRAME_SIZE,
    ) -> None:
        self._stream = stream
        self._timeout = timeout
        self._max_frame_size = max_frame_size
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send_frame(self, payload: bytes) -> None:
        """Write one frame: length prefix, then payload.

        Raises:
            FrameTooLarge: If the payload exceeds the frame limit.
            ConnectionClosed: If the peer is gone or the write fails.
        """
        if len(payload) > self._max_frame_size:
            raise FrameTooLarge(
                f"Frame of {len(payload)} bytes exceeds limit of {self._max_frame_size}"
            )
        try:
            self._stream.settimeout(self._timeout)
            self._stream.sendall(HEADER.pack(len(payload)) + payload)
        except socket.timeout as exc:
            self.abort()
            raise ConnectionClosed("Timed out writing frame to peer") from exc
        except OSError as exc:
            self.abort()
            raise ConnectionClosed(f"Writing frame failed: {exc}") from exc
        logger.debug("Sent frame of %d bytes", len(payload))

    def recv_frame(self) -> bytes:
        """Read one complete frame.

        Returns:
            The payload bytes, exactly as sent.

        Raises:
            Timeout: If the frame did not arrive before the deadline.
            ConnectionClosed: If the peer closed the stream mid-frame.
            FrameTooLarge: If the announced length exceeds the limit.
        """
        deadline = None if self._timeout is None else time.monotonic() + self._timeout

        (length,) = HEADER.unpack(self._recv_exact(HEADER.size, deadline))
        if length > self._max_frame_size:
            self.abort()
            raise FrameTooLarge(
                f"Peer announced a {length} byte frame, limit is {self._max_frame_size}"
            )

        payload = self._recv_exact(length, deadline)
        logger.debug("Received frame of %d bytes", length)
        return payload

    def _recv_exact(self, size: int, deadline: Optional[float]) -> bytes:
        buf = bytearray()
        while len(buf) < size:
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    self.abort()
                    raise Timeout(f"Frame not received within {self._timeout}s")
                self._stream.settimeout(remaining)
            try:
                chunk = self._stream.recv(min(size - len(buf), RECV_CHUNK))
            except socket.timeout as exc:
                self.abort()
                raise Timeout(f"Frame not received within {self._timeout}s") from exc
            except OSError as exc:
                self.abort()
                raise ConnectionClosed(f"Reading frame failed: {exc}") from exc
            if not chunk:
                self.abort()
                raise ConnectionClosed(
                    f"Peer closed the connection after {len(buf)} of {size} bytes"
                )
            buf.extend(chunk)
        return bytes(buf)

    def abort(self) -> None:
        """Close the stream. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            self._stream.close()
        except OSError as exc:
            logger.debug("Error closing stream: %s", exc)

    close = abort

    def __enter__(self) -> "FrameTransport":
        return self

    def __exit__(self, *exc_info) -> None:
        self.abort()
