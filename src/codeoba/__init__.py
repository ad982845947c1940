"""Codeoba - voice-driven coding assistant over the OpenAI Realtime API and GitHub."""

from codeoba._version import __version__
from codeoba.app import CodeobaApp, EventLogEntry
from codeoba.audio import AudioCaptureService, MockAudioCaptureService
from codeoba.companion import (
    CompanionCommand,
    CompanionProxy,
    LoggingCompanionProxy,
    MockCompanionProxy,
    ShowError,
    ShowRepoEvent,
    ShowStatus,
)
from codeoba.core import EventStream, Subscription, generate_id
from codeoba.errors import CodeobaError, McpClientError, SignalingError, TransportError
from codeoba.mcp import (
    ApprovalManager,
    ApprovalPolicy,
    CompositeMcpClient,
    GitHubApiClient,
    GitHubConfig,
    HttpGitHubApiClient,
    LocalMcpClient,
    McpClient,
    McpFailure,
    McpResult,
    McpServerConfig,
    McpSuccess,
    McpToolRegistry,
    RemoteMcpClient,
    RetryPolicy,
    create_default_registry,
)
from codeoba.models.enums import (
    ApprovalStatus,
    ConnectionStatus,
    EventLogKind,
    MessageRole,
)
from codeoba.realtime import (
    ConnectedEvent,
    ConnectionState,
    DisconnectedEvent,
    ErrorEvent,
    RealtimeClient,
    RealtimeConfig,
    RealtimeEvent,
    RealtimeSignaling,
    SessionSettings,
    ToolCallEvent,
    TranscriptEvent,
    TransportRealtimeClient,
    WebSocketTransport,
)

__all__ = [
    "ApprovalManager",
    "ApprovalPolicy",
    "ApprovalStatus",
    "AudioCaptureService",
    "CodeobaApp",
    "CodeobaError",
    "CompanionCommand",
    "CompanionProxy",
    "CompositeMcpClient",
    "ConnectedEvent",
    "ConnectionState",
    "ConnectionStatus",
    "DisconnectedEvent",
    "ErrorEvent",
    "EventLogEntry",
    "EventLogKind",
    "EventStream",
    "GitHubApiClient",
    "GitHubConfig",
    "HttpGitHubApiClient",
    "LocalMcpClient",
    "LoggingCompanionProxy",
    "McpClient",
    "McpClientError",
    "McpFailure",
    "McpResult",
    "McpServerConfig",
    "McpSuccess",
    "McpToolRegistry",
    "MessageRole",
    "MockAudioCaptureService",
    "MockCompanionProxy",
    "RealtimeClient",
    "RealtimeConfig",
    "RealtimeEvent",
    "RealtimeSignaling",
    "RemoteMcpClient",
    "RetryPolicy",
    "SessionSettings",
    "ShowError",
    "ShowRepoEvent",
    "ShowStatus",
    "SignalingError",
    "Subscription",
    "ToolCallEvent",
    "TranscriptEvent",
    "TransportError",
    "TransportRealtimeClient",
    "WebSocketTransport",
    "__version__",
    "create_default_registry",
    "generate_id",
]
