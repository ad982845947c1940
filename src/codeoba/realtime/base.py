"""Connection state, configuration and events for realtime sessions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from codeoba.models.enums import ConnectionStatus

DEFAULT_ENDPOINT = "https://api.openai.com/v1/realtime"
DEFAULT_MODEL = "gpt-realtime-mini"
DEFAULT_VOICE = "alloy"
DEFAULT_INSTRUCTIONS = "You are a helpful AI assistant for coding tasks."


def _utcnow() -> datetime:
    """Get current UTC time (timezone-aware)."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class ConnectionState:
    """Connection state of a realtime session.

    ``ERROR`` carries a message and gates like ``DISCONNECTED``: sending is
    refused and a new ``connect()`` is allowed.
    """

    status: ConnectionStatus
    message: str | None = None

    DISCONNECTED: ClassVar[ConnectionState]
    CONNECTING: ClassVar[ConnectionState]
    CONNECTED: ClassVar[ConnectionState]

    @classmethod
    def error(cls, message: str) -> ConnectionState:
        return cls(ConnectionStatus.ERROR, message)

    @property
    def is_connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED

    @property
    def is_busy(self) -> bool:
        """True while connecting or connected; ``connect()`` is ignored then."""
        return self.status in (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED)

    def __str__(self) -> str:
        if self.message:
            return f"{self.status}({self.message})"
        return str(self.status)


ConnectionState.DISCONNECTED = ConnectionState(ConnectionStatus.DISCONNECTED)
ConnectionState.CONNECTING = ConnectionState(ConnectionStatus.CONNECTING)
ConnectionState.CONNECTED = ConnectionState(ConnectionStatus.CONNECTED)


class SessionSettings(BaseModel):
    """Session parameters sent in ``session.update`` once the data channel opens."""

    model_config = ConfigDict(frozen=True)

    instructions: str = DEFAULT_INSTRUCTIONS
    sample_rate: int = Field(default=24000, gt=0)
    noise_reduction: str | None = "far_field"
    server_vad: bool = True
    vad_threshold: float | None = None
    silence_duration_ms: int | None = None
    prefix_padding_ms: int | None = None
    transcription_model: str | None = None
    speed: float = Field(default=1.0, gt=0.0)
    max_output_tokens: int | str = "inf"
    output_modalities: tuple[str, ...] = ("audio",)


class RealtimeConfig(BaseModel):
    """Configuration for one realtime session.

    The ``api_key`` is the long-lived credential. It is only ever sent to
    the token exchange endpoint and is never logged or repr'd in clear.
    """

    model_config = ConfigDict(frozen=True)

    api_key: SecretStr
    endpoint: str = DEFAULT_ENDPOINT
    model: str = DEFAULT_MODEL
    voice: str = DEFAULT_VOICE
    timeout: float = Field(default=30.0, gt=0.0)
    session: SessionSettings = Field(default_factory=SessionSettings)

    @field_validator("endpoint")
    @classmethod
    def _strip_endpoint(cls, v: str) -> str:
        v = v.rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError("endpoint must be an http(s) URL")
        return v


# -- Events --------------------------------------------------------------------


@dataclass(frozen=True)
class TranscriptEvent:
    """Speech transcript, either a streaming partial or a final segment."""

    text: str
    is_final: bool
    timestamp: datetime = field(default_factory=_utcnow, compare=False)


@dataclass(frozen=True)
class ToolCallEvent:
    """The model asked for a tool to be run."""

    name: str
    arguments_json: str
    call_id: str | None = None
    """Wire call id, used to send the function call output back."""
    item_id: str | None = None
    """Conversation item carrying the call; identifies it when no call id is sent."""

    timestamp: datetime = field(default_factory=_utcnow, compare=False)


@dataclass(frozen=True)
class ErrorEvent:
    """Non-fatal error surfaced on the event stream."""

    message: str
    timestamp: datetime = field(default_factory=_utcnow, compare=False)


@dataclass(frozen=True)
class ConnectedEvent:
    """The remote session was created."""

    timestamp: datetime = field(default_factory=_utcnow, compare=False)


@dataclass(frozen=True)
class DisconnectedEvent:
    """The session ended, locally or remotely."""

    timestamp: datetime = field(default_factory=_utcnow, compare=False)


RealtimeEvent = TranscriptEvent | ToolCallEvent | ErrorEvent | ConnectedEvent | DisconnectedEvent
