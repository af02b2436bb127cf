"""Exceptions for the HomeWorks QS protocol engine."""

from __future__ import annotations


class HomeworksQSException(Exception):
    """Base exception for HomeWorks QS errors."""


class HomeworksQSConnectionFailed(HomeworksQSException):
    """Raised when the TCP connection to the processor cannot be opened."""


class HomeworksQSConnectionLost(HomeworksQSException):
    """Raised when an established connection is closed or fails."""
