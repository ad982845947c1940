"""Shared models for Codeoba."""

from codeoba.models.enums import ApprovalStatus, ConnectionStatus, EventLogKind, MessageRole

__all__ = ["ApprovalStatus", "ConnectionStatus", "EventLogKind", "MessageRole"]
