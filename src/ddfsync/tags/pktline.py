"""
Incremental codec for the git pkt-line framing.

Each packet starts with four hexadecimal digits containing the length of
the packet including the prefix itself. The special lengths `0000` (flush)
and `0001` (delimiter) carry no payload. See gitprotocol-common(5).
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Final

from ..errors import ProtocolError

FLUSH_PKT: Final[bytes] = b"0000"
MAX_PKT_LEN: Final[int] = 65520

_HEADER_LEN: Final[int] = 4


def encode_pkt_line(payload: bytes) -> bytes:
    """Frame the given payload as a single pkt-line."""
    length = len(payload) + _HEADER_LEN
    if length > MAX_PKT_LEN:
        raise ValueError(f"pkt-line payload too long: {len(payload)} bytes")
    return f"{length:04x}".encode("ascii") + payload


def iter_pkt_lines(chunks: Iterable[bytes]) -> Iterator[bytes | None]:
    """
    Decode pkt-lines from a stream of arbitrarily sized byte chunks.

    Yields each payload as soon as it is complete, or None for flush and
    delimiter packets. Stops when the chunks are exhausted.

    Raises:
        ProtocolError: on a malformed length prefix, on an `ERR` packet
            sent by the remote, or when the stream ends mid-packet.
    """
    buffer = bytearray()
    for chunk in chunks:
        buffer += chunk
        while len(buffer) >= _HEADER_LEN:
            length = _parse_length(bytes(buffer[:_HEADER_LEN]))
            if length in (0, 1):
                del buffer[:_HEADER_LEN]
                yield None
                continue
            if len(buffer) < length:
                break
            payload = bytes(buffer[_HEADER_LEN:length])
            del buffer[:length]
            if payload.startswith(b"ERR "):
                message = payload[4:].decode("utf-8", errors="replace").strip()
                raise ProtocolError(f"remote error: {message}")
            yield payload
    if buffer:
        raise ProtocolError(f"truncated pkt-line at end of stream: {bytes(buffer)!r}")


def _parse_length(header: bytes) -> int:
    try:
        length = int(header.decode("ascii"), 16)
    except (UnicodeDecodeError, ValueError) as exc:
        raise ProtocolError(f"invalid pkt-line length: {header!r}") from exc
    if length in (0, 1):
        return length
    if length < _HEADER_LEN or length > MAX_PKT_LEN:
        raise ProtocolError(f"invalid pkt-line length: {header!r}")
    return length
