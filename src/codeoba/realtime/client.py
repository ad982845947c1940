"""Realtime session engine.

:class:`RealtimeClient` is the capability set the rest of the app talks to.
:class:`TransportRealtimeClient` implements it on top of any
:class:`~codeoba.realtime.transport.RealtimeTransport`: the state machine,
wire codec, event stream and outbound commands live here once, and each
transport backend only moves bytes.
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from typing import Any

from codeoba.core.broadcast import EventStream
from codeoba.core.ids import IdGenerator, event_id
from codeoba.models.enums import ConnectionStatus
from codeoba.realtime import codec
from codeoba.realtime.base import (
    ConnectedEvent,
    ConnectionState,
    DisconnectedEvent,
    ErrorEvent,
    RealtimeConfig,
    RealtimeEvent,
    ToolCallEvent,
)
from codeoba.realtime.items import FunctionCallOutputItem, MessageItem, RealtimeItem
from codeoba.realtime.signaling import RealtimeSignaling
from codeoba.realtime.transport import RealtimeTransport

logger = logging.getLogger("codeoba.realtime.client")

_LOG_TEXT_LIMIT = 512


def _truncate(text: str, limit: int = _LOG_TEXT_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... ({len(text)} chars)"


class RealtimeClient(ABC):
    """A single realtime conversation session.

    Consumers read ``connection_state`` and subscribe to ``events`` (and
    ``audio_frames`` for model audio). Both streams are broadcast with no
    replay: a subscriber only sees what is published after it subscribed.

    Every ``data_send_*`` method returns whether the channel accepted the
    event. ``False`` means it was not sent; callers decide whether to retry
    or tell the user.
    """

    def __init__(self, *, id_generator: IdGenerator | None = None, max_queue_size: int = 256) -> None:
        self._next_event_id: IdGenerator = id_generator or event_id
        self.events: EventStream[RealtimeEvent] = EventStream("realtime.events", max_queue_size)
        self.audio_frames: EventStream[bytes] = EventStream("realtime.audio", max_queue_size)

    @property
    @abstractmethod
    def connection_state(self) -> ConnectionState: ...

    @abstractmethod
    async def connect(self, config: RealtimeConfig) -> None:
        """Bring a session up. Ignored while connecting or connected."""
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Tear the session down. Always ends disconnected; never raises."""
        ...

    @abstractmethod
    async def send_audio_frame(self, frame: bytes) -> None:
        """Send captured audio. Frames are dropped unless connected."""
        ...

    @abstractmethod
    async def data_send_json(self, payload: dict[str, Any]) -> bool:
        """Send one protocol event over the data channel."""
        ...

    async def data_send_input_audio_buffer_clear(self) -> bool:
        return await self.data_send_json(
            codec.input_audio_buffer_clear(event_id=self._next_event_id())
        )

    async def data_send_input_audio_buffer_commit(self) -> bool:
        return await self.data_send_json(
            codec.input_audio_buffer_commit(event_id=self._next_event_id())
        )

    async def data_send_response_create(self) -> bool:
        return await self.data_send_json(codec.response_create(event_id=self._next_event_id()))

    async def data_send_response_cancel(self) -> bool:
        return await self.data_send_json(codec.response_cancel(event_id=self._next_event_id()))

    async def data_send_conversation_item_create(
        self, item: RealtimeItem, previous_item_id: str | None = None
    ) -> bool:
        return await self.data_send_json(
            codec.conversation_item_create(
                item,
                event_id=self._next_event_id(),
                previous_item_id=previous_item_id,
            )
        )

    async def data_send_user_text(self, text: str) -> bool:
        """Add a typed user message to the conversation and ask for a response."""
        if not await self.data_send_conversation_item_create(MessageItem.user_text(text)):
            return False
        return await self.data_send_response_create()

    async def data_send_function_call_output(self, call_id: str, output: str) -> bool:
        """Return a tool result to the model and ask it to continue."""
        item = FunctionCallOutputItem(call_id=call_id, output=output)
        if not await self.data_send_conversation_item_create(item):
            return False
        return await self.data_send_response_create()

    async def close(self) -> None:
        """Disconnect if needed and end the event streams."""
        if self.connection_state.status != ConnectionStatus.DISCONNECTED:
            await self.disconnect()
        self.events.close()
        self.audio_frames.close()

    @asynccontextmanager
    async def session(self, config: RealtimeConfig) -> AsyncIterator[RealtimeClient]:
        """Connect for the duration of an ``async with`` block.

        The session is disconnected on every exit path, including errors
        and cancellation.
        """
        await self.connect(config)
        try:
            yield self
        finally:
            await self.disconnect()


class TransportRealtimeClient(RealtimeClient):
    """Session engine driving a :class:`RealtimeTransport` backend.

    Bring-up: exchange the API key for an ephemeral token, let the transport
    negotiate with it, and once the data channel opens send
    ``session.update`` with audio formats, voice, turn detection and the
    tool catalog. Any failure moves the state to ``ERROR`` and publishes an
    :class:`ErrorEvent`; nothing raises out of the engine.

    Example:
        client = TransportRealtimeClient(WebSocketTransport(), tools=registry.as_realtime_tools())
        events = client.events.subscribe()
        await client.connect(RealtimeConfig(api_key="sk-..."))
        async for event in events:
            ...
    """

    def __init__(
        self,
        transport: RealtimeTransport,
        *,
        signaling: RealtimeSignaling | None = None,
        tools: Sequence[dict[str, Any]] = (),
        id_generator: IdGenerator | None = None,
        max_queue_size: int = 256,
    ) -> None:
        super().__init__(id_generator=id_generator, max_queue_size=max_queue_size)
        self._transport = transport
        self._owns_signaling = signaling is None
        self._signaling = signaling or RealtimeSignaling()
        self._tools = list(tools)
        self._state = ConnectionState.DISCONNECTED
        self._config: RealtimeConfig | None = None
        # False once the current session is torn down; stale transport
        # callbacks check it and return.
        self._active = False
        # Bumped by every connect, disconnect and remote close. A connect
        # attempt whose generation is no longer current stops at its next
        # await point.
        self._generation = 0
        self._seen_tool_call_ids: set[str] = set()

        transport.on_open(self._handle_open)
        transport.on_message(self._handle_message)
        transport.on_close(self._handle_close)
        transport.on_audio(self._handle_audio)

    @property
    def connection_state(self) -> ConnectionState:
        return self._state

    @property
    def transport(self) -> RealtimeTransport:
        return self._transport

    def set_tools(self, tools: Sequence[dict[str, Any]]) -> None:
        """Replace the tool catalog declared on the next ``session.update``."""
        self._tools = list(tools)

    def _set_state(self, state: ConnectionState) -> None:
        if state != self._state:
            logger.info("Connection state: %s -> %s", self._state, state)
            self._state = state

    # -- Lifecycle --

    async def connect(self, config: RealtimeConfig) -> None:
        if self._state.is_busy:
            logger.debug("connect() ignored while %s", self._state)
            return

        self._generation += 1
        generation = self._generation
        self._config = config
        self._active = True
        self._seen_tool_call_ids.clear()
        self._set_state(ConnectionState.CONNECTING)
        logger.info(
            "Connecting realtime session: model=%s voice=%s transport=%s",
            config.model,
            config.voice,
            self._transport.name,
        )

        try:
            token = await self._signaling.exchange_token(config)
            if generation != self._generation:
                logger.debug("Connect attempt %d superseded before negotiation", generation)
                return
            await self._transport.negotiate(self._signaling, token, config)
            if generation != self._generation:
                logger.info("Connect attempt %d superseded during negotiation", generation)
                await self._abandon_attempt()
        except asyncio.CancelledError:
            if generation == self._generation:
                self._generation += 1
                self._active = False
                await self._release_transport()
                self._set_state(ConnectionState.DISCONNECTED)
            raise
        except Exception as exc:
            if generation != self._generation:
                await self._abandon_attempt()
                return
            message = str(exc) or type(exc).__name__
            logger.error("Realtime connect failed: %s", message)
            self._active = False
            await self._release_transport()
            self._set_state(ConnectionState.error(message))
            self.events.publish(ErrorEvent(message))

    async def disconnect(self) -> None:
        self._generation += 1
        self._active = False
        await self._release_transport()
        self._set_state(ConnectionState.DISCONNECTED)
        self.events.publish(DisconnectedEvent())
        logger.info("Realtime session disconnected")

    async def close(self) -> None:
        await super().close()
        if self._owns_signaling:
            await self._signaling.close()

    async def _release_transport(self) -> None:
        try:
            await self._transport.close()
        except Exception:
            logger.exception("Error closing %s transport", self._transport.name)

    async def _abandon_attempt(self) -> None:
        # A newer attempt that is still live owns the transport now.
        if not self._active:
            await self._release_transport()

    # -- Outbound --

    async def send_audio_frame(self, frame: bytes) -> None:
        if not self._state.is_connected:
            return
        try:
            await self._transport.send_audio(frame)
        except Exception as exc:
            logger.warning("Audio send failed: %s", exc)
            self.events.publish(ErrorEvent(f"Failed to send audio: {exc}"))

    async def data_send_json(self, payload: dict[str, Any]) -> bool:
        event_type = payload.get("type", "?")
        if not self._active or not self._transport.is_open:
            logger.debug("Data channel not open, not sending %s", event_type)
            return False
        try:
            text = json.dumps(payload)
            sent = await self._transport.send_text(text)
        except Exception as exc:
            logger.error("Failed to send %s: %s", event_type, exc)
            self.events.publish(ErrorEvent(f"Failed to send {event_type}: {exc}"))
            return False
        if sent:
            logger.debug("Sent: %s", _truncate(text))
        else:
            logger.warning("Data channel refused %s", event_type)
        return sent

    # -- Transport callbacks --

    async def _handle_open(self) -> None:
        if not self._active:
            return
        self._set_state(ConnectionState.CONNECTED)
        config = self._config
        if config is None:
            return
        update = codec.session_update(
            config.session,
            voice=config.voice,
            tools=self._tools,
            event_id=self._next_event_id(),
        )
        if not await self.data_send_json(update):
            logger.warning("session.update was not sent")

    async def _handle_message(self, text: str) -> None:
        if not self._active:
            return
        logger.debug("Received: %s", _truncate(text))
        try:
            decoded = codec.decode(text)
            self._dispatch(decoded)
        except Exception as exc:
            logger.exception("Error handling realtime message")
            self.events.publish(ErrorEvent(f"Failed to handle message: {exc}"))

    def _dispatch(self, decoded: codec.Decoded) -> None:
        match decoded:
            case None:
                return
            case codec.DecodeError(message=message):
                logger.warning("%s", message)
                self.events.publish(ErrorEvent(message))
            case codec.AudioDelta(audio=audio):
                self.audio_frames.publish(audio)
            case ConnectedEvent():
                if self._state.status == ConnectionStatus.CONNECTING:
                    self._set_state(ConnectionState.CONNECTED)
                self.events.publish(decoded)
            case ToolCallEvent(call_id=call_id, item_id=item_id):
                # The same call can arrive as a completed item and as
                # function_call_arguments.done.
                keys = {k for k in (call_id, item_id) if k}
                if keys & self._seen_tool_call_ids:
                    logger.debug("Duplicate tool call %s ignored", call_id or item_id)
                    return
                self._seen_tool_call_ids |= keys
                logger.info("Tool call: %s", decoded.name)
                self.events.publish(decoded)
            case ErrorEvent(message=message):
                logger.error("Error from realtime API: %s", message)
                self.events.publish(decoded)
            case _:
                self.events.publish(decoded)

    async def _handle_close(self) -> None:
        if not self._active:
            return
        self._generation += 1
        self._active = False
        logger.info("Data channel closed by remote")
        await self._release_transport()
        self._set_state(ConnectionState.DISCONNECTED)
        self.events.publish(DisconnectedEvent())

    async def _handle_audio(self, audio: bytes) -> None:
        if self._active:
            self.audio_frames.publish(audio)
