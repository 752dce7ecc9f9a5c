"""Source RCON wire protocol encoding and decoding."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING

from srcon.errors import ProtocolDecodeError

if TYPE_CHECKING:
    from collections.abc import Iterator


class PacketType(IntEnum):
    """RCON packet types.

    SERVERDATA_EXECCOMMAND and SERVERDATA_AUTH_RESPONSE share the value 2 and
    are therefore the same member; the direction of the packet tells them apart.
    """

    SERVERDATA_RESPONSE_VALUE = 0
    SERVERDATA_AUTH_RESPONSE = 2
    SERVERDATA_EXECCOMMAND = 2
    SERVERDATA_AUTH = 3


# 4 bytes each for size, request_id, and type
HEADER_SIZE = 12
# request_id + type + the two trailing nulls
MIN_PACKET_SIZE = 10
MAX_BODY = 4096
MAX_PACKET_SIZE = MAX_BODY + MIN_PACKET_SIZE

_INT32 = struct.Struct("<i")
_HEADER = struct.Struct("<iii")


@dataclass(frozen=True)
class Packet:
    """A single RCON packet.

    Wire format: [size:i32][request_id:i32][type:i32][body\\0\\0]
    Size covers everything after itself (request_id + type + body + 2 nulls).
    """

    request_id: int
    packet_type: int
    body: str

    @property
    def size(self) -> int:
        """Value of the size field for this packet."""
        return len(self.body) + MIN_PACKET_SIZE

    def encode(self) -> bytes:
        """Encode the packet into bytes for transmission."""
        return encode_packet(self.request_id, self.packet_type, self.body)


def encode_packet(request_id: int, packet_type: int, body: str) -> bytes:
    """Build a complete frame, size prefix included.

    The body is sent as single-byte ASCII; characters outside ASCII become "?".
    """
    body_bytes = body.encode("ascii", errors="replace")
    size = len(body_bytes) + MIN_PACKET_SIZE
    return _HEADER.pack(size, request_id, packet_type) + body_bytes + b"\x00\x00"


def decode_packet(data: bytes) -> Packet:
    """Decode a complete frame, size prefix included.

    Raises:
        ProtocolDecodeError: If the buffer is too short or its length does not
            match the declared size.
    """
    if len(data) < HEADER_SIZE + 2:
        msg = f"Packet too short: {len(data)} bytes"
        raise ProtocolDecodeError(msg)

    size, request_id, packet_type = _HEADER.unpack_from(data, 0)
    if size < MIN_PACKET_SIZE:
        msg = f"Invalid packet size: {size}"
        raise ProtocolDecodeError(msg)
    if size != len(data) - 4:
        msg = f"Declared size {size} does not match {len(data) - 4} received bytes"
        raise ProtocolDecodeError(msg)

    body = data[HEADER_SIZE:-2].decode("ascii", errors="replace")
    return Packet(request_id=request_id, packet_type=packet_type, body=body)


class FrameBuffer:
    """Reassemble frames from a stream of arbitrarily split TCP chunks."""

    def __init__(self) -> None:
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    def feed(self, chunk: bytes) -> Iterator[bytes]:
        """Add a chunk and yield every frame that is now complete.

        Bytes of a trailing partial frame stay buffered for the next call.
        """
        self._buffer.extend(chunk)
        while len(self._buffer) >= _INT32.size:
            (size,) = _INT32.unpack_from(self._buffer, 0)
            if not MIN_PACKET_SIZE <= size <= MAX_PACKET_SIZE:
                self._buffer.clear()
                msg = f"Invalid packet size: {size}"
                raise ProtocolDecodeError(msg)

            end = _INT32.size + size
            if len(self._buffer) < end:
                return
            frame = bytes(self._buffer[:end])
            del self._buffer[:end]
            yield frame

    def clear(self) -> None:
        """Drop any partially received data."""
        self._buffer.clear()
