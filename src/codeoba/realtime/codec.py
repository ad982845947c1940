"""Wire codec for the Realtime data channel.

Inbound messages are decoded into :data:`RealtimeEvent` values with
:func:`decode`; outbound client events are built as plain dicts ready for
``json.dumps``. Decoding never raises: unknown event types are logged and
dropped, and malformed messages become a :class:`DecodeError`.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from codeoba.models.enums import MessageRole
from codeoba.realtime.base import (
    ConnectedEvent,
    ErrorEvent,
    RealtimeEvent,
    SessionSettings,
    ToolCallEvent,
    TranscriptEvent,
)
from codeoba.realtime.items import RealtimeItem

logger = logging.getLogger("codeoba.realtime.codec")

USER_TRANSCRIPT_PREFIX = "User: "
AUDIO_FORMAT = "audio/pcm"


@dataclass(frozen=True)
class AudioDelta:
    """A chunk of model audio received over the data channel."""

    audio: bytes


@dataclass(frozen=True)
class DecodeError:
    """A message that could not be decoded."""

    message: str


Decoded = RealtimeEvent | AudioDelta | DecodeError | None

# Accepted and deliberately ignored.
INERT_EVENT_TYPES = frozenset(
    {
        "session.updated",
        "conversation.created",
        "conversation.item.done",
        "conversation.item.retrieved",
        "conversation.item.truncated",
        "conversation.item.deleted",
        "conversation.item.input_audio_transcription.delta",
        "conversation.item.input_audio_transcription.segment",
        "conversation.item.input_audio_transcription.failed",
        "input_audio_buffer.cleared",
        "input_audio_buffer.committed",
        "input_audio_buffer.speech_started",
        "input_audio_buffer.speech_stopped",
        "input_audio_buffer.timeout_triggered",
        "output_audio_buffer.started",
        "output_audio_buffer.stopped",
        "output_audio_buffer.cleared",
        "response.created",
        "response.done",
        "response.output_item.added",
        "response.output_item.done",
        "response.content_part.added",
        "response.content_part.done",
        "response.output_text.delta",
        "response.output_text.done",
        "response.text.delta",
        "response.text.done",
        "response.audio.done",
        "response.output_audio.done",
        "response.function_call_arguments.delta",
        "response.mcp_call_arguments.delta",
        "response.mcp_call_arguments.done",
        "response.mcp_call.in_progress",
        "response.mcp_call.completed",
        "response.mcp_call.failed",
        "mcp_list_tools.in_progress",
        "mcp_list_tools.completed",
        "mcp_list_tools.failed",
        "rate_limits.updated",
    }
)


def _str(payload: dict[str, Any], key: str) -> str:
    value = payload.get(key)
    return value if isinstance(value, str) else ""


def _on_session_created(payload: dict[str, Any]) -> Decoded:
    return ConnectedEvent()


def _on_item(payload: dict[str, Any]) -> Decoded:
    item = payload.get("item")
    if not isinstance(item, dict):
        return None
    item_type = _str(item, "type")

    if item_type == "message":
        texts = [
            _str(part, "text")
            for part in item.get("content") or []
            if isinstance(part, dict)
            and part.get("type") in ("text", "input_text", "output_text")
            and _str(part, "text")
        ]
        if not texts:
            return None
        text = "".join(texts)
        if item.get("role") == MessageRole.USER:
            text = USER_TRANSCRIPT_PREFIX + text
        return TranscriptEvent(text, True)

    if item_type == "function_call":
        name = _str(item, "name")
        arguments = _str(item, "arguments")
        # Still streaming; the call is reported by function_call_arguments.done
        if not name or not arguments or item.get("status") == "in_progress":
            return None
        return ToolCallEvent(name, arguments, item.get("call_id"), _str(item, "id") or None)

    return None


def _on_transcript_delta(payload: dict[str, Any]) -> Decoded:
    delta = _str(payload, "delta")
    return TranscriptEvent(delta, False) if delta else None


def _on_transcript_done(payload: dict[str, Any]) -> Decoded:
    transcript = _str(payload, "transcript")
    return TranscriptEvent(transcript, True) if transcript else None


def _on_input_transcription(payload: dict[str, Any]) -> Decoded:
    transcript = _str(payload, "transcript")
    if not transcript:
        return None
    return TranscriptEvent(USER_TRANSCRIPT_PREFIX + transcript, True)


def _on_function_call_done(payload: dict[str, Any]) -> Decoded:
    name = _str(payload, "name")
    if not name:
        logger.warning("function_call_arguments.done without a name, dropping")
        return None
    return ToolCallEvent(
        name,
        _str(payload, "arguments") or "{}",
        payload.get("call_id"),
        _str(payload, "item_id") or None,
    )


def _on_audio_delta(payload: dict[str, Any]) -> Decoded:
    delta = _str(payload, "delta")
    if not delta:
        return None
    try:
        return AudioDelta(base64.b64decode(delta))
    except (binascii.Error, ValueError) as exc:
        return DecodeError(f"Invalid audio delta: {exc}")


def _on_error(payload: dict[str, Any]) -> Decoded:
    error = payload.get("error")
    message = _str(error, "message") if isinstance(error, dict) else ""
    return ErrorEvent(message or "Unknown error")


_HANDLERS: dict[str, Callable[[dict[str, Any]], Decoded]] = {
    "session.created": _on_session_created,
    "conversation.item.created": _on_item,
    "conversation.item.added": _on_item,
    "response.audio_transcript.delta": _on_transcript_delta,
    "response.output_audio_transcript.delta": _on_transcript_delta,
    "response.audio_transcript.done": _on_transcript_done,
    "response.output_audio_transcript.done": _on_transcript_done,
    "conversation.item.input_audio_transcription.completed": _on_input_transcription,
    "response.function_call_arguments.done": _on_function_call_done,
    "response.audio.delta": _on_audio_delta,
    "response.output_audio.delta": _on_audio_delta,
    "error": _on_error,
}


def decode(raw: str | bytes) -> Decoded:
    """Decode one data-channel message.

    Returns:
        The decoded event, an :class:`AudioDelta`, a :class:`DecodeError`
        for malformed input, or ``None`` for inert and unknown types.
    """
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        return DecodeError(f"Failed to parse message: {exc}")

    if not isinstance(payload, dict):
        return DecodeError("Failed to parse message: expected a JSON object")

    event_type = _str(payload, "type")
    if not event_type:
        return DecodeError("Failed to parse message: missing event type")

    handler = _HANDLERS.get(event_type)
    if handler is not None:
        return handler(payload)
    if event_type not in INERT_EVENT_TYPES:
        logger.warning("Unhandled realtime event type: %s", event_type)
    return None


# -- Outbound ------------------------------------------------------------------


def encode(item: RealtimeItem) -> dict[str, Any]:
    """Serialise a conversation item to its wire shape."""
    return item.to_dict()


def _client_event(event_type: str, event_id: str | None, **fields: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"type": event_type}
    if event_id:
        payload["event_id"] = event_id
    for key, value in fields.items():
        if value is not None:
            payload[key] = value
    return payload


def _turn_detection(settings: SessionSettings) -> dict[str, Any] | None:
    if not settings.server_vad:
        return None
    td: dict[str, Any] = {"type": "server_vad"}
    if settings.vad_threshold is not None:
        td["threshold"] = settings.vad_threshold
    if settings.silence_duration_ms is not None:
        td["silence_duration_ms"] = settings.silence_duration_ms
    if settings.prefix_padding_ms is not None:
        td["prefix_padding_ms"] = settings.prefix_padding_ms
    return td


def session_update(
    settings: SessionSettings,
    *,
    voice: str | None = None,
    tools: Sequence[dict[str, Any]] = (),
    event_id: str | None = None,
) -> dict[str, Any]:
    """Build the ``session.update`` sent once the data channel opens.

    ``transcription`` and ``turn_detection`` are sent as explicit nulls when
    disabled, since null is how the server is told to turn them off.
    """
    audio_format = {"type": AUDIO_FORMAT, "rate": settings.sample_rate}
    audio_input: dict[str, Any] = {"format": audio_format}
    if settings.noise_reduction:
        audio_input["noise_reduction"] = {"type": settings.noise_reduction}
    audio_input["transcription"] = (
        {"model": settings.transcription_model} if settings.transcription_model else None
    )
    audio_input["turn_detection"] = _turn_detection(settings)

    audio_output: dict[str, Any] = {"format": dict(audio_format), "speed": settings.speed}
    if voice:
        audio_output["voice"] = voice

    session: dict[str, Any] = {
        "type": "realtime",
        "audio": {"input": audio_input, "output": audio_output},
        "instructions": settings.instructions,
        "max_output_tokens": settings.max_output_tokens,
        "output_modalities": list(settings.output_modalities),
        "tools": list(tools),
    }
    return _client_event("session.update", event_id, session=session)


def conversation_item_create(
    item: RealtimeItem,
    *,
    event_id: str | None = None,
    previous_item_id: str | None = None,
) -> dict[str, Any]:
    return _client_event(
        "conversation.item.create",
        event_id,
        previous_item_id=previous_item_id or None,
        item=encode(item),
    )


def input_audio_buffer_append(audio: bytes, *, event_id: str | None = None) -> dict[str, Any]:
    return _client_event(
        "input_audio_buffer.append",
        event_id,
        audio=base64.b64encode(audio).decode("ascii"),
    )


def input_audio_buffer_clear(*, event_id: str | None = None) -> dict[str, Any]:
    return _client_event("input_audio_buffer.clear", event_id)


def input_audio_buffer_commit(*, event_id: str | None = None) -> dict[str, Any]:
    return _client_event("input_audio_buffer.commit", event_id)


def response_create(*, event_id: str | None = None) -> dict[str, Any]:
    return _client_event("response.create", event_id)


def response_cancel(*, event_id: str | None = None) -> dict[str, Any]:
    return _client_event("response.cancel", event_id)
