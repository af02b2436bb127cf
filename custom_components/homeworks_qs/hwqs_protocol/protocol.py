"""Protocol parsing for HomeWorks QS integration (telnet) messages.

This module handles:
- Line framing (CRLF-delimited, plus the processor's unterminated prompts)
- Classifying a single line into a typed message

All parsing is stateless apart from the framer's partial-line buffer -
just input bytes, output messages.
"""

from __future__ import annotations

from datetime import datetime
import logging
import math
import re

from .messages import (
    OUTPUT_OPERATION_MOTION,
    AnyMessage,
    DeviceUpdate,
    LoginPromptMessage,
    MonitorAckMessage,
    NoiseMessage,
    PasswordPromptMessage,
    PingAckMessage,
    ReadyPromptMessage,
    UnknownMessage,
)

_LOGGER = logging.getLogger(__name__)

# Line separator
CRLF = b"\r\n"

DEFAULT_MONITORING_CHANNEL = 5

# Prompts are sent without a line terminator
LOGIN_PROMPT = "login:"
PASSWORD_PROMPT = "password:"
READY_PROMPT_SUFFIX = "T>"  # QNET>, GNET>, ...
LOGIN_PROMPTS = (LOGIN_PROMPT, PASSWORD_PROMPT)

PING_ACK_MARKER = "~SYSTEM,6,"
OUTPUT_PREFIX = "~OUTPUT,"

# Lines the processor emits that carry nothing we act on
NOISE_PREFIXES = ("~DEVICE,", "~ADDRESS")
NOISE_MARKERS = ("GLINK_DEVICE_SERIAL_NUM", "Device serial ")

# "QNET> ~OUTPUT,1,1,0" -> ("QNET>", "~OUTPUT,1,1,0")
_PROMPT_PREFIX_RE = re.compile(r"^(\S*T>)\s+(\S.*)$")
_READY_PROMPT_RE = re.compile(r"^\S*T>$")


class LineFramer:
    """Split a raw byte stream into logical protocol lines.

    Chunk boundaries are not line boundaries. A trailing partial line is
    buffered until more data arrives, except when it is one of the
    processor's prompts, which never get a CRLF of their own.
    """

    def __init__(self) -> None:
        """Initialize the framer."""
        self._buffer = b""

    @property
    def pending(self) -> bytes:
        """Return buffered bytes of an incomplete line."""
        return self._buffer

    def feed(self, data: bytes) -> list[str]:
        """Feed bytes and return any complete lines.

        Args:
            data: Raw bytes from socket

        Returns:
            Lines without terminator, stripped, empty lines dropped
        """
        self._buffer += data
        lines: list[str] = []

        while CRLF in self._buffer:
            raw, self._buffer = self._buffer.split(CRLF, 1)
            try:
                text = raw.decode("utf-8")
            except UnicodeDecodeError:
                _LOGGER.warning("Invalid message encoding: %s", raw)
                continue
            lines.extend(_split_prompt_prefix(text))

        if self._buffer:
            prompts = _unterminated_prompts(self._buffer)
            if prompts:
                self._buffer = b""
                lines.extend(prompts)

        return lines

    def reset(self) -> None:
        """Discard any partial line."""
        if self._buffer:
            _LOGGER.debug("Discarding partial line: %s", self._buffer)
        self._buffer = b""


def _split_prompt_prefix(text: str) -> list[str]:
    """Separate a leading command prompt from the data that follows it."""
    lines = []
    text = text.strip()
    while text:
        match = _PROMPT_PREFIX_RE.match(text)
        if not match:
            lines.append(text)
            break
        lines.append(match.group(1))
        text = match.group(2).strip()
    return lines


def _unterminated_prompts(buffer: bytes) -> list[str]:
    """Return the prompts a partial buffer holds, or [] to keep waiting.

    A command prompt only counts once the whitespace after it has
    arrived and every token is a prompt, so the same bytes frame the
    same way whether or not a CRLF follows in a later chunk.
    """
    text = buffer.decode("utf-8", errors="ignore")
    tail = text.strip()
    if tail.endswith(LOGIN_PROMPTS):
        return _split_prompt_prefix(tail)
    if not tail or text == text.rstrip():
        return []
    prompts = _split_prompt_prefix(tail)
    if all(_READY_PROMPT_RE.match(prompt) for prompt in prompts):
        return prompts
    return []


def classify(
    line: str, monitoring_channel: int = DEFAULT_MONITORING_CHANNEL
) -> AnyMessage:
    """Classify a single line.

    Rules are checked in priority order; the first match wins.

    Args:
        line: Line without CRLF
        monitoring_channel: Channel used in #MONITORING,<channel>,1

    Returns:
        A typed message, UnknownMessage if nothing matched
    """
    timestamp = datetime.now()

    if LOGIN_PROMPT in line:
        return LoginPromptMessage(raw=line, timestamp=timestamp)

    if PASSWORD_PROMPT in line:
        return PasswordPromptMessage(raw=line, timestamp=timestamp)

    if line.rstrip().endswith(READY_PROMPT_SUFFIX):
        return ReadyPromptMessage(raw=line, timestamp=timestamp)

    if f"~MONITORING,{monitoring_channel},1" in line:
        return MonitorAckMessage(
            raw=line, timestamp=timestamp, channel=monitoring_channel
        )

    if PING_ACK_MARKER in line:
        return PingAckMessage(raw=line, timestamp=timestamp)

    if line.startswith(OUTPUT_PREFIX):
        return _parse_output(line, timestamp)

    if line.startswith(NOISE_PREFIXES) or any(
        marker in line for marker in NOISE_MARKERS
    ):
        return NoiseMessage(raw=line, timestamp=timestamp)

    _LOGGER.debug("Unclassified line: %s", line)
    return UnknownMessage(raw=line, timestamp=timestamp)


def _parse_output(line: str, ts: datetime) -> DeviceUpdate | UnknownMessage:
    """Parse an ~OUTPUT line.

    Formats:
        ~OUTPUT,<id>,<operation>,<level>
        ~OUTPUT,<id>,32,<action>,<level>
    """
    fields = [f.strip() for f in line.split(",")]
    if len(fields) < 4:
        _LOGGER.debug("Short output line: %s", line)
        return UnknownMessage(raw=line, timestamp=ts, reason="too few fields")

    device_id = fields[1]
    if not device_id:
        _LOGGER.warning("Output line without integration id: %s", line)
        return UnknownMessage(raw=line, timestamp=ts, reason="missing id")

    try:
        operation = int(fields[2])
    except ValueError:
        _LOGGER.warning("Non-numeric output operation: %s", line)
        return UnknownMessage(raw=line, timestamp=ts, reason="bad operation")

    if operation == OUTPUT_OPERATION_MOTION:
        if len(fields) != 5:
            _LOGGER.warning(
                "Unexpected field count %d for motion event: %s", len(fields), line
            )
            return UnknownMessage(raw=line, timestamp=ts, reason="bad field count")
        action = _parse_int(fields[3])
        value = _parse_number(fields[4])
        if action is None or value is None:
            _LOGGER.warning("Non-numeric motion event: %s", line)
            return UnknownMessage(raw=line, timestamp=ts, reason="not numeric")
        return DeviceUpdate(
            raw=line,
            timestamp=ts,
            device_id=device_id,
            operation=operation,
            value=value,
            action=action,
        )

    if len(fields) != 4:
        _LOGGER.debug("Unsupported output layout: %s", line)
        return UnknownMessage(raw=line, timestamp=ts, reason="unsupported layout")

    value = _parse_number(fields[3])
    if value is None:
        _LOGGER.warning("Non-numeric output level: %s", line)
        return UnknownMessage(raw=line, timestamp=ts, reason="not numeric")

    return DeviceUpdate(
        raw=line,
        timestamp=ts,
        device_id=device_id,
        operation=operation,
        value=value,
    )


def _parse_number(text: str) -> float | None:
    """Parse a finite decimal number."""
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    return number


def _parse_int(text: str) -> int | None:
    """Parse an integer code."""
    try:
        return int(text)
    except ValueError:
        return None


class MessageParser:
    """Framer and classifier bundled for one connection.

    Feed raw socket bytes, get typed messages back.
    """

    def __init__(self, monitoring_channel: int = DEFAULT_MONITORING_CHANNEL) -> None:
        """Initialize the parser."""
        self._framer = LineFramer()
        self._monitoring_channel = monitoring_channel

    def feed(self, data: bytes) -> list[AnyMessage]:
        """Feed bytes to the parser and return any complete messages."""
        return [
            classify(line, self._monitoring_channel)
            for line in self._framer.feed(data)
        ]

    def reset(self) -> None:
        """Clear the buffer."""
        self._framer.reset()
