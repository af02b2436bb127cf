"""hwqs_protocol - Async client for Lutron HomeWorks QS processors.

This package provides a typed interface to the processor's telnet
integration protocol.

Main components:
- HomeworksQSClient: Session engine with login, monitoring, watchdog and reconnect
- Message types: Typed dataclasses for classified protocol lines
- Command builders: Functions to construct protocol commands

Example:
    from .hwqs_protocol import HomeworksQSClient, HomeworksQSClientConfig

    def on_update(update):
        print(f"Output {update.device_id} at {update.value}")

    client = HomeworksQSClient(
        HomeworksQSClientConfig("192.168.1.100", username="lutron", password="integration")
    )
    client.register_receive_callback(on_update)
    client.start()
    client.set_level("12", 75)
"""

from .client import (
    HomeworksQSClient,
    HomeworksQSClientConfig,
    MonitorTarget,
    SessionState,
)
from .exceptions import (
    HomeworksQSConnectionFailed,
    HomeworksQSConnectionLost,
    HomeworksQSException,
)
from .messages import (
    MOTION_ACTION_STOPPED,
    OUTPUT_OPERATION_LEVEL,
    OUTPUT_OPERATION_MOTION,
    AnyMessage,
    DeviceUpdate,
    HomeworksQSMessage,
    MessageType,
    UnknownMessage,
)
from .protocol import LineFramer, MessageParser, classify

__all__ = [
    # Client
    "HomeworksQSClient",
    "HomeworksQSClientConfig",
    "MonitorTarget",
    "SessionState",
    # Messages
    "AnyMessage",
    "DeviceUpdate",
    "HomeworksQSMessage",
    "MessageType",
    "UnknownMessage",
    "MOTION_ACTION_STOPPED",
    "OUTPUT_OPERATION_LEVEL",
    "OUTPUT_OPERATION_MOTION",
    # Protocol utilities
    "LineFramer",
    "MessageParser",
    "classify",
    # Exceptions
    "HomeworksQSConnectionFailed",
    "HomeworksQSConnectionLost",
    "HomeworksQSException",
]
