"""Companion device contract (wearables that mirror the session)."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime

from codeoba.core.broadcast import EventStream

logger = logging.getLogger("codeoba.companion")


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ShowStatus:
    """Display a status line on the companion."""

    text: str


@dataclass(frozen=True)
class ShowError:
    """Display an error on the companion."""

    text: str


@dataclass(frozen=True)
class ShowRepoEvent:
    """Display the outcome of a repository operation."""

    summary: str


CompanionCommand = ShowStatus | ShowError | ShowRepoEvent


@dataclass(frozen=True)
class MicToggleRequest:
    """The companion asked to toggle the microphone."""

    from_device_id: str
    timestamp: datetime = field(default_factory=_utcnow, compare=False)


@dataclass(frozen=True)
class ConnectRequest:
    """The companion asked to (re)connect the realtime session."""

    from_device_id: str
    timestamp: datetime = field(default_factory=_utcnow, compare=False)


CompanionNotification = MicToggleRequest | ConnectRequest


class CompanionProxy(ABC):
    """Two-way link to a companion device.

    Commands go out through :meth:`send_command`; requests from the device
    arrive on :attr:`notifications`.
    """

    def __init__(self) -> None:
        self.notifications: EventStream[CompanionNotification] = EventStream(
            "companion.notifications"
        )

    @abstractmethod
    async def send_command(self, command: CompanionCommand) -> None: ...

    async def close(self) -> None:
        self.notifications.close()


class LoggingCompanionProxy(CompanionProxy):
    """Proxy for setups without a companion device; commands are only logged."""

    async def send_command(self, command: CompanionCommand) -> None:
        match command:
            case ShowStatus(text=text):
                logger.info("Companion status: %s", text)
            case ShowError(text=text):
                logger.warning("Companion error: %s", text)
            case ShowRepoEvent(summary=summary):
                logger.info("Companion repo event: %s", summary)
