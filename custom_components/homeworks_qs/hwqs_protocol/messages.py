"""Typed message structures for the HomeWorks QS integration protocol.

Every line received from the processor is classified into exactly one
of the dataclasses below. They are immutable and carry the raw line so
callers can log or inspect what was actually on the wire.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, auto

# Operation codes seen in ~OUTPUT lines
OUTPUT_OPERATION_LEVEL = 1
OUTPUT_OPERATION_MOTION = 32

# Action code of an ~OUTPUT,<id>,32,<action>,<level> line meaning "stopped"
MOTION_ACTION_STOPPED = 2


class MessageType(Enum):
    """Classification of a received line."""

    # Handshake
    LOGIN_PROMPT = auto()
    PASSWORD_PROMPT = auto()
    READY_PROMPT = auto()
    MONITOR_ACK = auto()

    # Watchdog
    PING_ACK = auto()

    # Device state
    DEVICE_UPDATE = auto()

    # Known but ignored
    NOISE = auto()

    # Unknown/unparsed
    UNKNOWN = auto()


@dataclass(frozen=True)
class HomeworksQSMessage:
    """Base class for all HomeWorks QS messages."""

    raw: str  # Line as received, without CRLF
    timestamp: datetime

    message_type = MessageType.UNKNOWN

    @classmethod
    def create(cls, raw: str) -> "HomeworksQSMessage":
        """Create a message with current timestamp."""
        return cls(raw=raw, timestamp=datetime.now())


@dataclass(frozen=True)
class LoginPromptMessage(HomeworksQSMessage):
    """The processor is asking for a username (``login:``)."""

    message_type = MessageType.LOGIN_PROMPT


@dataclass(frozen=True)
class PasswordPromptMessage(HomeworksQSMessage):
    """The processor is asking for a password (``password:``)."""

    message_type = MessageType.PASSWORD_PROMPT


@dataclass(frozen=True)
class ReadyPromptMessage(HomeworksQSMessage):
    """The processor's idle command prompt, e.g. ``QNET>``."""

    message_type = MessageType.READY_PROMPT


@dataclass(frozen=True)
class MonitorAckMessage(HomeworksQSMessage):
    """Acknowledgement of ``#MONITORING,<channel>,1``.

    Format: ~MONITORING,<channel>,1
    """

    channel: int

    message_type = MessageType.MONITOR_ACK


@dataclass(frozen=True)
class PingAckMessage(HomeworksQSMessage):
    """Reply to the watchdog probe (``~SYSTEM,6,...``).

    Carries no device data.
    """

    message_type = MessageType.PING_ACK


@dataclass(frozen=True)
class DeviceUpdate(HomeworksQSMessage):
    """Output state reported by the processor.

    Formats:
    - ~OUTPUT,<id>,1,<level>            (level update)
    - ~OUTPUT,<id>,32,<action>,<level>  (motion event, action 2 = stopped)
    """

    device_id: str  # Integration ID as it appears on the wire
    operation: int
    value: float | None = None
    action: int | None = None

    message_type = MessageType.DEVICE_UPDATE

    @property
    def is_level_update(self) -> bool:
        """Return True for a plain level report."""
        return self.operation == OUTPUT_OPERATION_LEVEL

    @property
    def is_motion_stopped(self) -> bool:
        """Return True if this reports that a shade stopped moving."""
        return (
            self.operation == OUTPUT_OPERATION_MOTION
            and self.action == MOTION_ACTION_STOPPED
        )


@dataclass(frozen=True)
class NoiseMessage(HomeworksQSMessage):
    """Recognised chatter that is deliberately ignored.

    Examples: ~DEVICE, ~ADDRESS, serial number dumps.
    """

    message_type = MessageType.NOISE


@dataclass(frozen=True)
class UnknownMessage(HomeworksQSMessage):
    """Unknown or malformed message."""

    reason: str | None = None

    message_type = MessageType.UNKNOWN


# Type alias for any message
AnyMessage = (
    LoginPromptMessage
    | PasswordPromptMessage
    | ReadyPromptMessage
    | MonitorAckMessage
    | PingAckMessage
    | DeviceUpdate
    | NoiseMessage
    | UnknownMessage
)
