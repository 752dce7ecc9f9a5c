"""RCON session: authentication and request/response over one connection."""

from __future__ import annotations

import asyncio
import logging
import random
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from srcon.errors import (
    AuthenticationError,
    ConnectionError,
    ProtocolDecodeError,
    RconError,
)
from srcon.protocol import FrameBuffer, Packet, PacketType, decode_packet
from srcon.transport import Transport

if TYPE_CHECKING:
    from types import TracebackType

log = logging.getLogger(__name__)

AUTH_REQUEST_ID = 10
AUTH_FAILED_ID = -1
_MAX_COMMAND_ID = 10000
# Ids of timed-out requests whose late answers are still discarded
_MAX_ABANDONED = 32


class SessionState(Enum):
    """Lifecycle of an RconSession."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


@dataclass
class _PendingRequest:
    packet: Packet
    future: asyncio.Future[Packet]


class RconSession:
    """One logical RCON connection to a Source-protocol server.

    Requests are sent one at a time: overlapping calls to send() wait their
    turn, so each caller gets the response to its own packet.
    """

    def __init__(self, host: str, port: int, timeout: float | None = None) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout
        self._state = SessionState.DISCONNECTED
        self._transport: Transport | None = None
        self._frames = FrameBuffer()
        self._pending: _PendingRequest | None = None
        self._lock = asyncio.Lock()
        self._abandoned: deque[int] = deque(maxlen=_MAX_ABANDONED)

    @property
    def state(self) -> SessionState:
        """Current lifecycle state."""
        return self._state

    @property
    def authenticated(self) -> bool:
        """Whether the server has accepted our password."""
        return self._state is SessionState.AUTHENTICATED

    async def __aenter__(self) -> RconSession:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.wait_closed()

    async def connect(self) -> None:
        """Open the TCP connection to the server."""
        if self._state is SessionState.CLOSED:
            msg = "Session is closed"
            raise ConnectionError(msg)
        if self._transport is not None:
            return

        transport = await Transport.open(self.host, self.port, timeout=self.timeout)
        transport.set_listener(self._on_data, self._on_error)
        self._transport = transport
        self._state = SessionState.CONNECTED

    def close(self) -> None:
        """Close the connection immediately.

        A request still waiting for its response fails with ConnectionError.
        Calling close() again does nothing.
        """
        if self._state is SessionState.CLOSED:
            return
        self._state = SessionState.CLOSED
        if self._transport is not None:
            self._transport.close()
        self._frames.clear()
        self._reject(ConnectionError("Session closed"))
        log.debug("Closed session to %s:%d", self.host, self.port)

    async def wait_closed(self) -> None:
        """Close the session and wait for the socket to be released."""
        self.close()
        if self._transport is not None:
            await self._transport.wait_closed()

    async def authenticate(self, password: str) -> None:
        """Authenticate with the RCON server.

        Raises:
            AuthenticationError: If the server rejects the password. The
                session stays connected, so another password may be tried.
        """
        request = Packet(
            request_id=AUTH_REQUEST_ID,
            packet_type=PacketType.SERVERDATA_AUTH,
            body=password,
        )
        try:
            await self.send(request)
        except AuthenticationError:
            if self._state is SessionState.AUTHENTICATED:
                self._state = SessionState.CONNECTED
            raise

        self._state = SessionState.AUTHENTICATED
        log.debug("Authenticated with %s:%d", self.host, self.port)

    async def send_command(self, command: str) -> str:
        """Execute a console command and return the response text."""
        if self._state is SessionState.CONNECTED:
            msg = "Not authenticated"
            raise RconError(msg)

        request_id = random.randrange(_MAX_COMMAND_ID)  # noqa: S311
        while request_id in self._abandoned:
            request_id = random.randrange(_MAX_COMMAND_ID)  # noqa: S311

        request = Packet(
            request_id=request_id,
            packet_type=PacketType.SERVERDATA_EXECCOMMAND,
            body=command,
        )
        response = await self.send(request)
        return response.body

    async def send(self, packet: Packet) -> Packet:
        """Write a packet and wait for the packet the server sends back.

        Raises:
            ConnectionError: If the session is not open or the socket fails.
            AuthenticationError: If the server answers with an auth failure.
            ProtocolDecodeError: If the answer is malformed or carries another id.
            TimeoutError: If the session timeout expires first.
        """
        async with self._lock:
            transport = self._require_transport()
            future: asyncio.Future[Packet] = asyncio.get_running_loop().create_future()
            self._pending = _PendingRequest(packet, future)
            try:
                try:
                    transport.write(packet.encode())
                    await transport.drain()
                except ConnectionError:
                    self._pending = None
                    self.close()
                    raise
                try:
                    return await asyncio.wait_for(future, timeout=self.timeout)
                except TimeoutError:
                    self._abandoned.append(packet.request_id)
                    raise
            finally:
                self._pending = None

    def _require_transport(self) -> Transport:
        if self._state is SessionState.CLOSED:
            msg = "Session is closed"
            raise ConnectionError(msg)
        if self._transport is None:
            msg = "Not connected"
            raise ConnectionError(msg)
        return self._transport

    def _on_data(self, chunk: bytes) -> None:
        try:
            for frame in self._frames.feed(chunk):
                self._dispatch(decode_packet(frame))
        except ProtocolDecodeError as e:
            # The stream cannot be resynchronised after a framing error
            log.debug("Closing session after malformed data: %s", e)
            self._reject(e)
            self.close()

    def _on_error(self, error: Exception) -> None:
        if self._state is SessionState.CLOSED:
            return
        self._state = SessionState.CLOSED
        self._frames.clear()
        self._reject(error)

    def _dispatch(self, packet: Packet) -> None:
        pending = self._pending
        if packet.request_id in self._abandoned and (
            pending is None or packet.request_id != pending.packet.request_id
        ):
            log.debug(
                "Dropping late answer to timed-out request %d", packet.request_id
            )
            return

        if pending is None or pending.future.done():
            log.debug(
                "Dropping unsolicited packet (id=%d, type=%d)",
                packet.request_id,
                packet.packet_type,
            )
            return

        request = pending.packet
        if (
            packet.packet_type == PacketType.SERVERDATA_AUTH_RESPONSE
            and packet.request_id == AUTH_FAILED_ID
        ):
            pending.future.set_exception(AuthenticationError("Wrong RCON password!"))
            return

        # Servers send an empty RESPONSE_VALUE ahead of the AUTH_RESPONSE
        if (
            request.packet_type == PacketType.SERVERDATA_AUTH
            and packet.packet_type == PacketType.SERVERDATA_RESPONSE_VALUE
            and not packet.body
        ):
            return

        if packet.request_id != request.request_id:
            msg = (
                f"Response id {packet.request_id} does not match"
                f" request id {request.request_id}"
            )
            pending.future.set_exception(ProtocolDecodeError(msg))
            return

        pending.future.set_result(packet)

    def _reject(self, error: Exception) -> None:
        pending = self._pending
        if pending is not None and not pending.future.done():
            pending.future.set_exception(error)


async def connect(host: str, port: int, *, timeout: float | None = None) -> RconSession:
    """Open a session to host:port, ready to authenticate."""
    session = RconSession(host, port, timeout=timeout)
    await session.connect()
    return session
