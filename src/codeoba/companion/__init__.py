"""Companion device commands, notifications and proxies."""

from codeoba.companion.base import (
    CompanionCommand,
    CompanionNotification,
    CompanionProxy,
    ConnectRequest,
    LoggingCompanionProxy,
    MicToggleRequest,
    ShowError,
    ShowRepoEvent,
    ShowStatus,
)
from codeoba.companion.mock import MockCompanionProxy

__all__ = [
    "CompanionCommand",
    "CompanionNotification",
    "CompanionProxy",
    "ConnectRequest",
    "LoggingCompanionProxy",
    "MicToggleRequest",
    "MockCompanionProxy",
    "ShowError",
    "ShowRepoEvent",
    "ShowStatus",
]
