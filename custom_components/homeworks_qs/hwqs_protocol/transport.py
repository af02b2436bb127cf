"""Async transport layer for HomeWorks QS telnet communication.

This module handles:
- Async TCP socket connection
- Read/write operations

No message parsing and no login logic here - just bytes in/out. The
handshake is driven line by line by the client's state machine.
"""

from __future__ import annotations

import asyncio
import logging
import socket

from .exceptions import HomeworksQSConnectionFailed, HomeworksQSConnectionLost

_LOGGER = logging.getLogger(__name__)

# Protocol constants
CRLF = b"\r\n"

# Timeouts
CONNECT_TIMEOUT = 10.0
READ_SIZE = 4096


class HomeworksQSTransport:
    """Async transport for one connection to the processor.

    A new instance is created for every connection attempt and is
    discarded once closed.

    Does NOT handle:
    - Message parsing (use LineFramer / classify)
    - Command building (use commands module)
    - Reconnection (handled by the client)
    """

    def __init__(
        self,
        host: str,
        port: int,
        connect_timeout: float = CONNECT_TIMEOUT,
    ) -> None:
        """Initialize transport.

        Args:
            host: Processor hostname or IP
            port: Telnet port
            connect_timeout: Seconds to wait for the TCP connection
        """
        self._host = host
        self._port = port
        self._connect_timeout = connect_timeout

        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None

    @property
    def connected(self) -> bool:
        """Return True if connected."""
        return self._writer is not None and not self._writer.is_closing()

    @property
    def host(self) -> str:
        """Return host."""
        return self._host

    @property
    def port(self) -> int:
        """Return port."""
        return self._port

    async def connect(self) -> None:
        """Open the TCP connection.

        Raises:
            HomeworksQSConnectionFailed: If connection fails
        """
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self._host, self._port),
                timeout=self._connect_timeout,
            )
        except asyncio.TimeoutError as err:
            raise HomeworksQSConnectionFailed(
                f"Connection to {self._host}:{self._port} timed out"
            ) from err
        except (OSError, UnicodeError) as err:
            raise HomeworksQSConnectionFailed(
                f"Failed to connect to {self._host}:{self._port}: {err}"
            ) from err

        sock = self._writer.get_extra_info("socket")
        if sock is not None:
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
            except OSError as err:
                _LOGGER.debug("Could not enable TCP keepalive: %s", err)

        _LOGGER.info("Connected to %s:%s", self._host, self._port)

    def write(self, command: str, redact: bool = False) -> bool:
        """Write a command to the processor.

        The data is queued on the socket buffer; this never waits.

        Args:
            command: Command string (without CRLF)
            redact: Keep the command out of the log (credentials)

        Returns:
            True if the data was queued, False otherwise
        """
        if not self.connected:
            return False

        try:
            self._writer.write(command.encode("utf-8") + CRLF)
        except (ConnectionError, OSError) as err:
            _LOGGER.debug("Write failed: %s", err)
            return False
        _LOGGER.debug("Sent: %s", "****" if redact else command)
        return True

    async def read(self, size: int = READ_SIZE) -> bytes:
        """Read the next chunk from the processor.

        Returns:
            Bytes read (never empty)

        Raises:
            HomeworksQSConnectionLost: If the connection is closed or fails
        """
        if not self._reader:
            raise HomeworksQSConnectionLost("Not connected")

        try:
            data = await self._reader.read(size)
        except (ConnectionError, OSError) as err:
            raise HomeworksQSConnectionLost(f"Read failed: {err}") from err

        if not data:
            raise HomeworksQSConnectionLost("Connection closed by processor")
        _LOGGER.debug("Received: %s", data)
        return data

    async def close(self) -> None:
        """Close the connection."""
        writer = self._writer
        self._writer = None
        self._reader = None
        if writer is None:
            return
        try:
            writer.close()
            await writer.wait_closed()
        except (ConnectionError, OSError) as err:
            _LOGGER.debug("Error while closing connection: %s", err)
        _LOGGER.debug("Connection closed")
