# src/hl7_engine/mllp.py
"""
MLLP (Minimal Lower Layer Protocol) framing.

A frame on the wire is::

    <start byte> <HL7 text> <end byte> <terminator byte>

with defaults VT (0x0B), FS (0x1C) and CR (0x0D). FrameCodec wraps outgoing
payloads and extracts complete payloads from an accumulating receive buffer;
FrameBuffer keeps that buffer across reads of one connection.
"""

from __future__ import annotations

from typing import List, Optional, Tuple, Union

from .model import Message

START_BLOCK = 0x0B
END_BLOCK = 0x1C
CARRIAGE_RETURN = 0x0D

Payload = Union[str, bytes, Message]


def _check_marker(name: str, value: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{name} must be int, got {type(value).__name__}")
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} must be a single byte (0-255), got {value}")
    return value


class FrameCodec:
    """
    Encoder/decoder for MLLP frames.

    Parameters
    ----------
    start_byte, end_byte, terminator_byte : int
        The three marker bytes.
    encoding : str, default "utf-8"
        Text encoding of the HL7 payload.
    """

    def __init__(
        self,
        start_byte: int = START_BLOCK,
        end_byte: int = END_BLOCK,
        terminator_byte: int = CARRIAGE_RETURN,
        encoding: str = "utf-8",
    ) -> None:
        self.start_byte = _check_marker("start_byte", start_byte)
        self.end_byte = _check_marker("end_byte", end_byte)
        self.terminator_byte = _check_marker("terminator_byte", terminator_byte)
        self.encoding = encoding

    @property
    def start(self) -> bytes:
        return bytes((self.start_byte,))

    @property
    def end(self) -> bytes:
        return bytes((self.end_byte,))

    @property
    def terminator(self) -> bytes:
        return bytes((self.terminator_byte,))

    def encode(self, payload: Payload) -> bytes:
        if isinstance(payload, Message):
            payload = payload.serialize()
        if isinstance(payload, str):
            return payload.encode(self.encoding)
        if isinstance(payload, (bytes, bytearray)):
            return bytes(payload)
        raise TypeError(
            f"payload must be str, bytes or Message, got {type(payload).__name__}"
        )

    def decode(self, payload: bytes) -> str:
        return payload.decode(self.encoding, errors="replace")

    def wrap(self, payload: Payload) -> bytes:
        """Return ``payload`` enclosed in start, end and terminator bytes."""
        return self.start + self.encode(payload) + self.end + self.terminator

    def extract(self, buffer: bytes) -> Tuple[Optional[bytes], bytes]:
        """
        Take the first complete frame out of ``buffer``.

        Returns
        -------
        (payload, rest)
            ``payload`` is the text strictly between the start byte and the
            first end byte after it; ``rest`` is everything after the end
            byte, less one terminator byte if it follows immediately. When no
            complete frame is present the result is ``(None, buffer)`` and
            nothing is discarded.
        """
        start = buffer.find(self.start)
        if start < 0:
            return None, buffer
        end = buffer.find(self.end, start + 1)
        if end < 0:
            return None, buffer

        payload = buffer[start + 1 : end]
        rest = buffer[end + 1 :]
        if rest[:1] == self.terminator:
            rest = rest[1:]
        return payload, rest

    def extract_all(self, buffer: bytes) -> Tuple[List[bytes], bytes]:
        """Extract every complete frame, in order, plus the unconsumed rest."""
        payloads: List[bytes] = []
        while True:
            payload, buffer = self.extract(buffer)
            if payload is None:
                return payloads, buffer
            payloads.append(payload)

    def split_text(self, text: str) -> List[str]:
        """
        Split a text blob on the start and end markers.

        Used for files holding one or more frames; blank tokens (including
        the terminators between frames) are dropped.
        """
        start, end = chr(self.start_byte), chr(self.end_byte)
        tokens = text.replace(start, end).split(end)
        return [token for token in tokens if token.strip()]


class FrameBuffer:
    """
    Per-connection receive buffer.

    ``feed`` appends a chunk and returns every payload completed by it;
    partial frames stay buffered until the rest arrives.
    """

    def __init__(self, codec: Optional[FrameCodec] = None) -> None:
        self.codec = codec or FrameCodec()
        self._buffer = b""

    def feed(self, chunk: bytes) -> List[bytes]:
        payloads, self._buffer = self.codec.extract_all(self._buffer + chunk)
        return payloads

    @property
    def residual(self) -> bytes:
        return self._buffer

    def clear(self) -> None:
        self._buffer = b""

    def __len__(self) -> int:
        return len(self._buffer)
