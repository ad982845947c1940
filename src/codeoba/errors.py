"""Exception hierarchy for Codeoba."""

from __future__ import annotations


class CodeobaError(Exception):
    """Base exception for all Codeoba errors."""


class SignalingError(CodeobaError):
    """Token or SDP exchange with the realtime endpoint failed."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransportError(CodeobaError):
    """The realtime transport could not be negotiated or used."""


class McpClientError(CodeobaError):
    """An MCP client was used before it was connected or after it was closed."""
