"""TCP transport for an RCON session, built on asyncio streams."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

from srcon.errors import ConnectionError

if TYPE_CHECKING:
    from collections.abc import Callable

log = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096


class Transport:
    """Owns a single TCP connection.

    Inbound bytes are read by a background task and handed, chunk by chunk,
    to the registered listener. There is one listener slot: registering a new
    listener replaces the previous one.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._on_data: Callable[[bytes], None] | None = None
        self._on_error: Callable[[Exception], None] | None = None
        self._closed = False
        self._read_task = asyncio.get_running_loop().create_task(self._read_loop())

    @classmethod
    async def open(
        cls, host: str, port: int, *, timeout: float | None = None
    ) -> Transport:
        """Open a TCP connection to host:port.

        Raises:
            ConnectionError: If the host cannot be resolved, refuses the
                connection, or the connect timeout expires.
        """
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=timeout
            )
        except TimeoutError as e:
            msg = f"Failed to connect to {host}:{port}: timed out"
            raise ConnectionError(msg) from e
        except OSError as e:
            msg = f"Failed to connect to {host}:{port}: {e}"
            raise ConnectionError(msg) from e

        log.debug("Connected to %s:%d", host, port)
        return cls(reader, writer)

    @property
    def closed(self) -> bool:
        """Whether the transport has been closed."""
        return self._closed

    def set_listener(
        self,
        on_data: Callable[[bytes], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        """Register the callbacks for inbound chunks and for socket failure."""
        self._on_data = on_data
        self._on_error = on_error

    def write(self, data: bytes) -> None:
        """Queue bytes for sending without waiting for them to be flushed."""
        if self._closed:
            msg = "Not connected"
            raise ConnectionError(msg)
        self._writer.write(data)

    async def drain(self) -> None:
        """Wait until the write buffer has been flushed to the socket."""
        try:
            await self._writer.drain()
        except OSError as e:
            self.close()
            msg = f"Failed to send data: {e}"
            raise ConnectionError(msg) from e

    def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._read_task.cancel()
        self._writer.close()

    async def wait_closed(self) -> None:
        """Wait for the socket and the reader task to be fully released."""
        self.close()
        # wait() does not re-raise the reader's own cancellation
        await asyncio.wait({self._read_task})
        with contextlib.suppress(OSError):
            await self._writer.wait_closed()

    async def _read_loop(self) -> None:
        while True:
            try:
                chunk = await self._reader.read(READ_CHUNK_SIZE)
            except OSError as e:
                self._fail(ConnectionError(f"Connection lost: {e}"))
                return

            if not chunk:
                self._fail(ConnectionError("Connection closed by server"))
                return

            log.debug("Received %d bytes", len(chunk))
            if self._on_data is not None:
                self._on_data(chunk)

    def _fail(self, error: Exception) -> None:
        if self._closed:
            return
        log.debug("Transport failed: %s", error)
        self._closed = True
        self._writer.close()
        if self._on_error is not None:
            self._on_error(error)
