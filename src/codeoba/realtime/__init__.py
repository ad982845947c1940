"""Realtime session engine, wire codec and transports."""

from codeoba.realtime.base import (
    ConnectedEvent,
    ConnectionState,
    DisconnectedEvent,
    ErrorEvent,
    RealtimeConfig,
    RealtimeEvent,
    SessionSettings,
    ToolCallEvent,
    TranscriptEvent,
)
from codeoba.realtime.client import RealtimeClient, TransportRealtimeClient
from codeoba.realtime.items import (
    FunctionCallItem,
    FunctionCallOutputItem,
    McpApprovalRequestItem,
    McpApprovalResponseItem,
    McpListToolsItem,
    McpToolCallItem,
    McpToolDescriptor,
    MessageItem,
    RealtimeItem,
)
from codeoba.realtime.signaling import RealtimeSignaling
from codeoba.realtime.transport import RealtimeTransport, SdpTransport
from codeoba.realtime.ws_transport import WebSocketTransport

__all__ = [
    "ConnectedEvent",
    "ConnectionState",
    "DisconnectedEvent",
    "ErrorEvent",
    "FunctionCallItem",
    "FunctionCallOutputItem",
    "McpApprovalRequestItem",
    "McpApprovalResponseItem",
    "McpListToolsItem",
    "McpToolCallItem",
    "McpToolDescriptor",
    "MessageItem",
    "RealtimeClient",
    "RealtimeConfig",
    "RealtimeEvent",
    "RealtimeItem",
    "RealtimeSignaling",
    "RealtimeTransport",
    "SdpTransport",
    "SessionSettings",
    "ToolCallEvent",
    "TranscriptEvent",
    "TransportRealtimeClient",
    "WebSocketTransport",
]
