"""Session engine for a HomeWorks QS processor.

This module provides:
- The connection state machine (connect, log in, enable monitoring)
- Dispatch of device updates and session-ready notifications
- Idle watchdog and automatic reconnection
- Typed command helpers

Uses the transport layer for socket operations and the protocol layer
for framing and classification. Everything runs on one event loop:
``connect()`` and the registration methods must be called from the
loop's thread; ``send()`` and its helpers may be called from any thread.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import logging
from typing import Callable

from . import commands
from .exceptions import (
    HomeworksQSConnectionFailed,
    HomeworksQSConnectionLost,
)
from .messages import (
    AnyMessage,
    DeviceUpdate,
    LoginPromptMessage,
    MonitorAckMessage,
    PasswordPromptMessage,
    PingAckMessage,
    ReadyPromptMessage,
)
from .protocol import DEFAULT_MONITORING_CHANNEL, LineFramer, classify
from .transport import CONNECT_TIMEOUT, HomeworksQSTransport
from .watchdog import DEFAULT_CHECK_INTERVAL, DEFAULT_IDLE_THRESHOLD, Watchdog

_LOGGER = logging.getLogger(__name__)

DEFAULT_PORT = 23
MONITORING_RETRY_DELAY = 2.5
RECONNECT_DELAY = 5.0

# Callback types
ReceiveCallback = Callable[[DeviceUpdate], None]
ConnectCallback = Callable[[], None]
DisconnectCallback = Callable[[], None]


class SessionState(Enum):
    """State of the processor session."""

    BOOT = "boot"
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    ESTABLISHING = "establishing"
    READY = "ready"
    DISCONNECTED = "disconnected"


@dataclass(frozen=True)
class HomeworksQSClientConfig:
    """Configuration for the session engine.

    Immutable for the lifetime of a client.
    """

    host: str
    port: int = DEFAULT_PORT
    username: str = ""
    password: str = ""
    monitoring_channel: int = DEFAULT_MONITORING_CHANNEL
    monitoring_retry_delay: float = MONITORING_RETRY_DELAY
    idle_threshold: float = DEFAULT_IDLE_THRESHOLD
    watchdog_interval: float = DEFAULT_CHECK_INTERVAL
    reconnect_delay: float = RECONNECT_DELAY
    connect_timeout: float = CONNECT_TIMEOUT
    dimmable_fade_time: str = commands.DEFAULT_DIMMABLE_FADE_TIME
    default_fade_time: str = commands.DEFAULT_FADE_TIME


@dataclass(frozen=True)
class MonitorTarget:
    """An output the host is interested in."""

    integration_id: str
    display_name: str


class HomeworksQSClient:
    """Resident client for a HomeWorks QS processor.

    This class provides:
    - Exactly one monitored session, re-established after any drop
    - Fan-out of device updates to registered callbacks
    - A fire-and-forget ``send()`` for outbound commands

    Example:
        def on_update(update):
            print(update.device_id, update.value)

        client = HomeworksQSClient(
            HomeworksQSClientConfig("192.168.1.10", username="lutron", password="integration")
        )
        client.register_receive_callback(on_update)
        client.start()
        ...
        client.set_level("12", 75, dimmable=True)
    """

    def __init__(self, config: HomeworksQSClientConfig) -> None:
        """Initialize client."""
        self._config = config
        self._state = SessionState.BOOT
        self._loop: asyncio.AbstractEventLoop | None = None

        # Per-connection resources
        self._transport: HomeworksQSTransport | None = None
        self._framer: LineFramer | None = None
        self._watchdog: Watchdog | None = None
        self._connection_task: asyncio.Task | None = None

        # Timers
        self._monitoring_retry: asyncio.TimerHandle | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._auto_reconnect = True

        # Subscribers, in registration order
        self._receive_callbacks: list[ReceiveCallback] = []
        self._connect_callbacks: list[ConnectCallback] = []
        self._disconnect_callbacks: list[DisconnectCallback] = []

        # integration_id -> MonitorTarget
        self._monitor_targets: dict[str, MonitorTarget] = {}

        self._login_prompts = 0

        # Health metrics
        self._connected_at: datetime | None = None
        self._last_message_at: datetime | None = None
        self._message_count = 0
        self._reconnect_count = 0
        self._probe_count = 0

    @property
    def config(self) -> HomeworksQSClientConfig:
        """Return the client configuration."""
        return self._config

    @property
    def state(self) -> SessionState:
        """Return the session state."""
        return self._state

    @property
    def is_ready(self) -> bool:
        """Return True once monitoring is acknowledged."""
        return self._state is SessionState.READY

    @property
    def host(self) -> str:
        """Return host."""
        return self._config.host

    @property
    def port(self) -> int:
        """Return port."""
        return self._config.port

    @property
    def connected_at(self) -> datetime | None:
        """Return time the session last became ready."""
        return self._connected_at

    @property
    def last_message_at(self) -> datetime | None:
        """Return time of last received data."""
        return self._last_message_at

    @property
    def message_count(self) -> int:
        """Return total lines received."""
        return self._message_count

    @property
    def reconnect_count(self) -> int:
        """Return number of reconnection attempts."""
        return self._reconnect_count

    @property
    def probe_count(self) -> int:
        """Return number of watchdog probes sent."""
        return self._probe_count

    @property
    def reconnect_pending(self) -> bool:
        """Return True if a reconnect is scheduled."""
        return self._reconnect_handle is not None

    @property
    def monitor_targets(self) -> list[MonitorTarget]:
        """Return registered monitor targets."""
        return list(self._monitor_targets.values())

    # =========================================================================
    # Registration
    # =========================================================================

    def register_receive_callback(self, callback: ReceiveCallback) -> None:
        """Register a callback for device updates."""
        self._receive_callbacks.append(callback)

    def register_did_connect_callback(self, callback: ConnectCallback) -> None:
        """Register a callback for when the session becomes ready."""
        self._connect_callbacks.append(callback)

    def register_disconnect_callback(self, callback: DisconnectCallback) -> None:
        """Register a callback for when the connection drops."""
        self._disconnect_callbacks.append(callback)

    def set_monitor_targets(self, targets: Iterable[MonitorTarget]) -> None:
        """Set the outputs polled whenever the session becomes ready."""
        self._monitor_targets = {t.integration_id: t for t in targets}
        _LOGGER.debug("Monitoring %d outputs", len(self._monitor_targets))

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start the client with automatic reconnection."""
        self._auto_reconnect = True
        if self._state is SessionState.DISCONNECTED and not self.reconnect_pending:
            self._set_state(SessionState.BOOT)
        self.connect()

    def connect(self) -> None:
        """Open a new connection to the processor.

        Only valid in BOOT; any other state logs an error and returns.
        """
        if self._state is not SessionState.BOOT:
            _LOGGER.error(
                "Can't connect to %s, session in invalid state: %s",
                self._config.host,
                self._state.name,
            )
            return

        self._loop = asyncio.get_running_loop()
        self._set_state(SessionState.CONNECTING)
        _LOGGER.info(
            "Connecting to %s:%s", self._config.host, self._config.port
        )
        if self._connection_task and not self._connection_task.done():
            self._connection_task.cancel()
        self._connection_task = self._loop.create_task(self._run_connection())

    async def stop(self) -> None:
        """Stop the client.

        Cancels all timers, closes the connection and does not reconnect.
        """
        self._auto_reconnect = False
        self._cancel_reconnect()
        self._stop_session_timers()

        task = self._connection_task
        self._connection_task = None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if self._transport:
            await self._transport.close()
            self._transport = None

        self._set_state(SessionState.DISCONNECTED)

    async def _run_connection(self) -> None:
        """Connect and read until the connection drops."""
        config = self._config
        transport = HomeworksQSTransport(
            config.host, config.port, connect_timeout=config.connect_timeout
        )
        self._transport = transport
        self._framer = LineFramer()
        self._watchdog = Watchdog(
            probe=self._send_probe,
            is_ready=lambda: self.is_ready,
            idle_threshold=config.idle_threshold,
            check_interval=config.watchdog_interval,
            loop=self._loop,
        )
        self._login_prompts = 0

        try:
            await transport.connect()
            while True:
                data = await transport.read()
                self._process_data(data)
        except HomeworksQSConnectionFailed as err:
            _LOGGER.warning("Connection failed: %s", err)
        except HomeworksQSConnectionLost as err:
            _LOGGER.warning("Connection lost: %s", err)
        except asyncio.CancelledError:
            await transport.close()
            raise
        except Exception:  # noqa: BLE001
            _LOGGER.exception("Unexpected error on connection to %s", config.host)

        if self._transport is transport:
            self._transport = None
        # DISCONNECTED before the socket has finished closing
        self._handle_connection_closed()
        await transport.close()

    def _handle_connection_closed(self) -> None:
        """Move to DISCONNECTED and schedule a reconnect.

        Safe to call more than once for the same drop.
        """
        self._stop_session_timers()
        if self._framer:
            self._framer.reset()
            self._framer = None

        if self._state is not SessionState.DISCONNECTED:
            self._set_state(SessionState.DISCONNECTED)
            self._fire_callbacks(self._disconnect_callbacks, "Disconnect")

        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if not self._auto_reconnect:
            return
        if self._reconnect_handle is not None:
            _LOGGER.debug("Reconnect already scheduled")
            return
        if self._loop is None:
            return

        _LOGGER.info("Reconnecting in %ss", self._config.reconnect_delay)
        self._reconnect_handle = self._loop.call_later(
            self._config.reconnect_delay, self._reconnect
        )

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _reconnect(self) -> None:
        """Reconnect timer fired."""
        self._reconnect_handle = None
        if self._state is not SessionState.DISCONNECTED:
            return
        self._reconnect_count += 1
        self._set_state(SessionState.BOOT)
        self.connect()

    def _stop_session_timers(self) -> None:
        if self._monitoring_retry is not None:
            self._monitoring_retry.cancel()
            self._monitoring_retry = None
        if self._watchdog is not None:
            self._watchdog.stop()
            self._watchdog = None

    # =========================================================================
    # Inbound
    # =========================================================================

    def _process_data(self, data: bytes) -> None:
        """Handle one chunk received from the socket."""
        if self._state in (SessionState.BOOT, SessionState.DISCONNECTED):
            return

        if self._watchdog:
            self._watchdog.touch()
        self._last_message_at = datetime.now()

        if not self._framer:
            return
        for line in self._framer.feed(data):
            self._message_count += 1
            self._handle_message(classify(line, self._config.monitoring_channel))
            # A callback may have stopped the client
            if self._state is SessionState.DISCONNECTED:
                return

    def _handle_message(self, msg: AnyMessage) -> None:
        """Route a classified line."""
        if isinstance(
            msg, (LoginPromptMessage, PasswordPromptMessage, ReadyPromptMessage)
        ):
            self._handle_prompt(msg)
        elif isinstance(msg, MonitorAckMessage):
            self._handle_monitor_ack()
        elif isinstance(msg, PingAckMessage):
            _LOGGER.debug("Watchdog probe answered")
        elif isinstance(msg, DeviceUpdate):
            if self._state is SessionState.READY:
                self._dispatch_update(msg)
            else:
                _LOGGER.debug(
                    "Ignoring update in state %s: %s", self._state.name, msg.raw
                )

    def _handle_prompt(
        self, msg: LoginPromptMessage | PasswordPromptMessage | ReadyPromptMessage
    ) -> None:
        """Drive the login handshake."""
        if self._state is SessionState.CONNECTING:
            self._set_state(SessionState.AUTHENTICATING)

        if self._state is not SessionState.AUTHENTICATING:
            # The command prompt is repeated after every command
            if not isinstance(msg, ReadyPromptMessage):
                _LOGGER.debug(
                    "Ignoring prompt in state %s: %s", self._state.name, msg.raw
                )
            return

        if isinstance(msg, LoginPromptMessage):
            self._login_prompts += 1
            if self._login_prompts > 1:
                _LOGGER.warning(
                    "Login prompt repeated on %s, credentials may have been rejected",
                    self._config.host,
                )
            _LOGGER.debug("Establishing session...")
            self._write(self._config.username)
        elif isinstance(msg, PasswordPromptMessage):
            _LOGGER.debug("Authenticating...")
            self._write(self._config.password, redact=True)
        else:
            self._set_state(SessionState.ESTABLISHING)
            _LOGGER.debug("Session open, requesting monitoring")
            self._write(commands.monitoring_enable(self._config.monitoring_channel))
            self._monitoring_retry = self._loop.call_later(
                self._config.monitoring_retry_delay, self._retry_monitoring
            )

    def _retry_monitoring(self) -> None:
        """Resend the monitoring request once if it was not acknowledged."""
        self._monitoring_retry = None
        if self._state is not SessionState.ESTABLISHING:
            return
        _LOGGER.warning("Monitoring not acknowledged, retrying")
        self._write(commands.monitoring_enable(self._config.monitoring_channel))

    def _handle_monitor_ack(self) -> None:
        """Monitoring acknowledged: the session is ready."""
        if self._state is not SessionState.ESTABLISHING:
            _LOGGER.debug("Ignoring monitoring acknowledgement in state %s", self._state.name)
            return

        if self._monitoring_retry is not None:
            self._monitoring_retry.cancel()
            self._monitoring_retry = None

        self._set_state(SessionState.READY)
        self._connected_at = datetime.now()
        _LOGGER.info("Connected to HomeWorks processor [%s]", self._config.host)

        if self._watchdog:
            self._watchdog.start()

        self._fire_callbacks(self._connect_callbacks, "Connect")
        if self._state is SessionState.READY:
            self._poll_monitor_targets()

    def _poll_monitor_targets(self) -> None:
        for target in self._monitor_targets.values():
            _LOGGER.debug("Requesting updates for: %s", target.display_name)
            self._write(commands.query_output_level(target.integration_id))

    def _dispatch_update(self, update: DeviceUpdate) -> None:
        """Deliver a device update to every receive callback."""
        target = self._monitor_targets.get(update.device_id)
        if target:
            _LOGGER.debug("Update for %s: %s", target.display_name, update.raw)
        else:
            _LOGGER.debug("Update for unmonitored output: %s", update.raw)

        for callback in list(self._receive_callbacks):
            try:
                callback(update)
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Receive callback error")

    def _fire_callbacks(
        self, callbacks: list[Callable[[], None]], kind: str
    ) -> None:
        for callback in list(callbacks):
            try:
                callback()
            except Exception:  # noqa: BLE001
                _LOGGER.exception("%s callback error", kind)

    def _set_state(self, state: SessionState) -> None:
        if state is not self._state:
            _LOGGER.debug("Session state %s -> %s", self._state.name, state.name)
            self._state = state

    # =========================================================================
    # Outbound
    # =========================================================================

    def _write(self, command: str, redact: bool = False) -> bool:
        if not self._transport:
            _LOGGER.debug("No connection, dropping: %s", "****" if redact else command)
            return False
        return self._transport.write(command, redact=redact)

    def _in_loop(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def _send_probe(self) -> None:
        self._probe_count += 1
        self.send(commands.system_ping())

    def send(self, command: str) -> bool:
        """Send a raw command string.

        Commands are fire-and-forget. Sending before the session is ready
        is allowed but logged.

        May be called from any thread; calls from outside the event loop
        are handed to the loop and report True once queued.

        Args:
            command: Command string (without CRLF)

        Returns:
            True if the command was written to the socket
        """
        if self._loop is not None and not self._in_loop():
            self._loop.call_soon_threadsafe(self.send, command)
            return True

        if self._state is not SessionState.READY:
            _LOGGER.warning(
                "Sending while session is %s: %s", self._state.name, command
            )
        return self._write(command)

    def set_level(self, integration_id: str, level: float, dimmable: bool = True) -> bool:
        """Set an output level.

        Args:
            integration_id: Output integration ID
            level: Target level 0-100
            dimmable: Selects the fade time

        Returns:
            True if the command was written
        """
        fade_time = commands.fade_time_for(
            dimmable,
            self._config.dimmable_fade_time,
            self._config.default_fade_time,
        )
        return self.send(commands.set_output_level(integration_id, level, fade_time))

    def request_level(self, integration_id: str) -> bool:
        """Query an output's current level."""
        return self.send(commands.query_output_level(integration_id))
