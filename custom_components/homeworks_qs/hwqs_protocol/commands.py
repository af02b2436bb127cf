"""Command builders for the HomeWorks QS integration protocol.

This module provides typed functions for building command strings.
Commands start with '#' (execute) or '?' (query).

Terminated with CRLF (handled by transport layer).
"""

from __future__ import annotations

DEFAULT_DIMMABLE_FADE_TIME = "00:01"
DEFAULT_FADE_TIME = "00:00"

# Output action numbers
ACTION_OUTPUT_LEVEL = 1

# System query numbers
SYSTEM_OS_REVISION = 6


def _format_level(level: float) -> str:
    """Render a 0-100 level, dropping a trailing '.0'."""
    level = round(max(0.0, min(100.0, float(level))), 2)
    if level.is_integer():
        return str(int(level))
    return f"{level:.2f}".rstrip("0").rstrip(".")


# =============================================================================
# Monitoring Commands
# =============================================================================


def monitoring_enable(channel: int) -> str:
    """Build #MONITORING command enabling a monitoring channel."""
    return f"#MONITORING,{channel},1"


def monitoring_disable(channel: int) -> str:
    """Build #MONITORING command disabling a monitoring channel."""
    return f"#MONITORING,{channel},2"


# =============================================================================
# Output Commands
# =============================================================================


def set_output_level(integration_id: str, level: float, fade_time: str) -> str:
    """Build #OUTPUT command.

    Args:
        integration_id: Output integration ID
        level: Target level 0-100 percent
        fade_time: Fade time string, e.g. "00:01"

    Returns:
        Command string
    """
    return (
        f"#OUTPUT,{integration_id},{ACTION_OUTPUT_LEVEL},"
        f"{_format_level(level)},{fade_time}"
    )


def query_output_level(integration_id: str) -> str:
    """Build ?OUTPUT query for the current level."""
    return f"?OUTPUT,{integration_id},{ACTION_OUTPUT_LEVEL}"


def fade_time_for(
    dimmable: bool,
    dimmable_fade: str = DEFAULT_DIMMABLE_FADE_TIME,
    default_fade: str = DEFAULT_FADE_TIME,
) -> str:
    """Return the fade time used for a target."""
    return dimmable_fade if dimmable else default_fade


# =============================================================================
# System Commands
# =============================================================================


def system_ping() -> str:
    """Build the watchdog probe.

    Any cheap query works; the OS revision reply is classified as a ping
    acknowledgement.
    """
    return f"?SYSTEM,{SYSTEM_OS_REVISION}"
