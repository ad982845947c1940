"""Conversation items sent with ``conversation.item.create``.

Each item serialises itself with ``to_dict()``. Optional fields that are
``None`` or blank are left out of the payload rather than sent as null.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from codeoba.models.enums import MessageRole

_OBJECT_TYPE = "realtime.item"


def _put(payload: dict[str, Any], key: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, str) and not value.strip():
        return
    payload[key] = value


def _common(
    payload: dict[str, Any],
    item_id: str | None,
    status: str | None,
    include_object: bool,
) -> dict[str, Any]:
    _put(payload, "id", item_id)
    if include_object:
        payload["object"] = _OBJECT_TYPE
    _put(payload, "status", status)
    return payload


# -- Message content -----------------------------------------------------------


@dataclass(frozen=True)
class InputText:
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "input_text", "text": self.text}


@dataclass(frozen=True)
class InputAudio:
    audio_base64: str
    transcript: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": "input_audio", "audio": self.audio_base64}
        _put(payload, "transcript", self.transcript)
        return payload


@dataclass(frozen=True)
class InputImage:
    image_data_uri: str
    """e.g. ``data:image/png;base64,...``"""

    detail: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": "input_image", "image_url": self.image_data_uri}
        _put(payload, "detail", self.detail)
        return payload


@dataclass(frozen=True)
class OutputText:
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "output_text", "text": self.text}


@dataclass(frozen=True)
class OutputAudio:
    audio_base64: str
    transcript: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": "output_audio", "audio": self.audio_base64}
        _put(payload, "transcript", self.transcript)
        return payload


MessageContent = InputText | InputAudio | InputImage | OutputText | OutputAudio


# -- Items ---------------------------------------------------------------------


@dataclass(frozen=True)
class MessageItem:
    """A chat message from the system, the user or the assistant."""

    role: MessageRole
    content: tuple[MessageContent, ...]
    id: str | None = None
    status: str | None = None
    include_object: bool = False

    @classmethod
    def system_text(cls, text: str, **kwargs: Any) -> MessageItem:
        return cls(MessageRole.SYSTEM, (InputText(text),), **kwargs)

    @classmethod
    def user_text(cls, text: str, **kwargs: Any) -> MessageItem:
        return cls(MessageRole.USER, (InputText(text),), **kwargs)

    @classmethod
    def user_audio(
        cls, audio_base64: str, transcript: str | None = None, **kwargs: Any
    ) -> MessageItem:
        return cls(MessageRole.USER, (InputAudio(audio_base64, transcript),), **kwargs)

    @classmethod
    def user_image(cls, data_uri: str, detail: str | None = None, **kwargs: Any) -> MessageItem:
        return cls(MessageRole.USER, (InputImage(data_uri, detail),), **kwargs)

    @classmethod
    def assistant_text(cls, text: str, **kwargs: Any) -> MessageItem:
        return cls(MessageRole.ASSISTANT, (OutputText(text),), **kwargs)

    @classmethod
    def assistant_audio(
        cls, audio_base64: str, transcript: str | None = None, **kwargs: Any
    ) -> MessageItem:
        return cls(MessageRole.ASSISTANT, (OutputAudio(audio_base64, transcript),), **kwargs)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": "message", "role": str(self.role)}
        _common(payload, self.id, self.status, self.include_object)
        payload["content"] = [c.to_dict() for c in self.content]
        return payload


@dataclass(frozen=True)
class FunctionCallItem:
    """A function call made by the model. ``arguments`` is a JSON string."""

    name: str
    call_id: str
    arguments: str
    id: str | None = None
    status: str | None = None
    include_object: bool = False

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": "function_call",
            "name": self.name,
            "call_id": self.call_id,
            "arguments": self.arguments,
        }
        return _common(payload, self.id, self.status, self.include_object)


@dataclass(frozen=True)
class FunctionCallOutputItem:
    """Result of a function call, matched to the call by ``call_id``."""

    call_id: str
    output: str
    id: str | None = None
    status: str | None = None
    include_object: bool = False

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": "function_call_output",
            "call_id": self.call_id,
            "output": self.output,
        }
        return _common(payload, self.id, self.status, self.include_object)


@dataclass(frozen=True)
class McpApprovalRequestItem:
    server_label: str
    name: str
    arguments: str
    previous_item_id: str | None = None
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": "mcp_approval_request",
            "server_label": self.server_label,
            "name": self.name,
            "arguments": self.arguments,
        }
        _put(payload, "previous_item_id", self.previous_item_id)
        _put(payload, "id", self.id)
        return payload


@dataclass(frozen=True)
class McpApprovalResponseItem:
    approval_request_id: str
    approve: bool
    reason: str | None = None
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": "mcp_approval_response",
            "approval_request_id": self.approval_request_id,
            "approve": self.approve,
        }
        _put(payload, "reason", self.reason)
        _put(payload, "id", self.id)
        return payload


@dataclass(frozen=True)
class McpToolDescriptor:
    name: str
    input_schema: dict[str, Any]
    description: str | None = None
    annotations: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"name": self.name}
        _put(payload, "description", self.description)
        _put(payload, "annotations", self.annotations)
        payload["input_schema"] = self.input_schema
        return payload


@dataclass(frozen=True)
class McpListToolsItem:
    server_label: str
    tools: tuple[McpToolDescriptor, ...] = field(default_factory=tuple)
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": "mcp_list_tools", "server_label": self.server_label}
        _put(payload, "id", self.id)
        payload["tools"] = [t.to_dict() for t in self.tools]
        return payload


@dataclass(frozen=True)
class McpToolCallItem:
    server_label: str
    name: str
    arguments: str
    output: str | None = None
    approval_request_id: str | None = None
    error: dict[str, Any] | None = None
    id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": "mcp_call",
            "server_label": self.server_label,
            "name": self.name,
            "arguments": self.arguments,
        }
        _put(payload, "approval_request_id", self.approval_request_id)
        _put(payload, "error", self.error)
        _put(payload, "output", self.output)
        _put(payload, "id", self.id)
        return payload


RealtimeItem = (
    MessageItem
    | FunctionCallItem
    | FunctionCallOutputItem
    | McpApprovalRequestItem
    | McpApprovalResponseItem
    | McpListToolsItem
    | McpToolCallItem
)
