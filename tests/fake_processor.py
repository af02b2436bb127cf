"""Fake HomeWorks QS processor for testing."""

import asyncio
import logging

_LOGGER = logging.getLogger(__name__)

PROMPT = b"QNET> "


class FakeQSProcessor:
    """A fake HomeWorks QS processor for testing.

    Simulates the telnet integration interface:
    - login:/password: prompts without line terminators
    - #MONITORING acknowledgement
    - ?OUTPUT and #OUTPUT with ~OUTPUT feedback
    - ?SYSTEM,6 replies
    """

    def __init__(
        self,
        port: int = 0,
        username: str = "lutron",
        password: str = "integration",
        ack_monitoring: bool = True,
    ):
        """Initialize the fake processor."""
        self._port = port
        self._username = username
        self._password = password
        self.ack_monitoring = ack_monitoring
        self._server: asyncio.Server | None = None
        self._clients: list[asyncio.StreamWriter] = []

        # Simulated state
        self._levels: dict[str, float] = {}

        # Everything received, in order (credentials included)
        self.received: list[str] = []
        self.connection_count = 0

    @property
    def port(self) -> int:
        """Return the server port."""
        return self._port

    def set_level(self, integration_id: str, level: float) -> None:
        """Set the level reported for an output."""
        self._levels[integration_id] = level

    def get_level(self, integration_id: str) -> float:
        """Return the level of an output."""
        return self._levels.get(integration_id, 0.0)

    def count(self, command: str) -> int:
        """Return how many times a line was received."""
        return self.received.count(command)

    async def start(self) -> None:
        """Start the fake processor server."""
        self._server = await asyncio.start_server(
            self._handle_client,
            "127.0.0.1",
            self._port,
        )
        if self._port == 0:
            self._port = self._server.sockets[0].getsockname()[1]

        _LOGGER.info("Fake processor started on port %d", self._port)

    async def stop(self) -> None:
        """Stop the fake processor server."""
        await self.simulate_disconnect()
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    async def _handle_client(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Handle a client connection."""
        self._clients.append(writer)
        self.connection_count += 1
        _LOGGER.debug("Client connected")

        try:
            while True:
                writer.write(b"login: ")
                await writer.drain()
                username = await self._read_line(reader)
                writer.write(b"password: ")
                await writer.drain()
                password = await self._read_line(reader)
                if username == self._username and password == self._password:
                    break
                writer.write(b"bad login\r\n")

            writer.write(b"\r\n" + PROMPT)
            await writer.drain()

            while True:
                command = await self._read_line(reader)
                await self._process_command(command, writer)
        except (ConnectionError, asyncio.IncompleteReadError):
            pass
        finally:
            if writer in self._clients:
                self._clients.remove(writer)
            writer.close()

    async def _read_line(self, reader: asyncio.StreamReader) -> str:
        data = await reader.readuntil(b"\r\n")
        line = data[:-2].decode("utf-8")
        self.received.append(line)
        return line

    async def _process_command(
        self, command: str, writer: asyncio.StreamWriter
    ) -> None:
        """Process a command from the client."""
        _LOGGER.debug("Received command: %s", command)
        fields = command.split(",")

        if command.startswith("#MONITORING") and len(fields) == 3:
            if self.ack_monitoring:
                writer.write(f"~MONITORING,{fields[1]},{fields[2]}\r\n".encode())

        elif command.startswith("?OUTPUT") and len(fields) == 3:
            level = self.get_level(fields[1])
            writer.write(f"~OUTPUT,{fields[1]},1,{level:.2f}\r\n".encode())

        elif command.startswith("#OUTPUT") and len(fields) >= 4:
            self._levels[fields[1]] = float(fields[3])
            writer.write(f"~OUTPUT,{fields[1]},1,{float(fields[3]):.2f}\r\n".encode())

        elif command == "?SYSTEM,6":
            writer.write(b"~SYSTEM,6,12.3.0\r\n")

        writer.write(PROMPT)
        await writer.drain()

    async def broadcast(self, data: bytes) -> None:
        """Send raw bytes to all clients."""
        for writer in self._clients:
            writer.write(data)
            await writer.drain()

    async def simulate_disconnect(self) -> None:
        """Simulate a disconnect (close all client connections)."""
        for writer in list(self._clients):
            writer.close()
        self._clients.clear()
