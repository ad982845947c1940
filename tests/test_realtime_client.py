"""Tests for the realtime session engine (TransportRealtimeClient)."""

from __future__ import annotations

import asyncio
import base64
import json
from collections.abc import Callable, Coroutine
from typing import Any

import pytest

from codeoba.errors import SignalingError, TransportError
from codeoba.models.enums import ConnectionStatus
from codeoba.realtime.base import (
    ConnectedEvent,
    ConnectionState,
    DisconnectedEvent,
    ErrorEvent,
    RealtimeConfig,
    ToolCallEvent,
    TranscriptEvent,
)
from codeoba.realtime.client import TransportRealtimeClient
from codeoba.realtime.mock import MockRealtimeTransport, MockSignaling

Advance = Callable[..., Coroutine[Any, Any, None]]


def _tool_call(name: str, arguments: str, call_id: str | None = "call_1") -> dict[str, Any]:
    message: dict[str, Any] = {
        "type": "response.function_call_arguments.done",
        "name": name,
        "arguments": arguments,
    }
    if call_id is not None:
        message["call_id"] = call_id
    return message


class TestConnect:
    async def test_connect_reaches_connected_and_sends_session_update(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        signaling: MockSignaling,
        config: RealtimeConfig,
    ) -> None:
        tool = {"type": "function", "name": "open_repo", "description": "", "parameters": {}}
        client.set_tools([tool])

        await client.connect(config)

        assert client.connection_state == ConnectionState.CONNECTED
        assert [c.method for c in signaling.calls] == ["exchange_token"]
        assert transport.calls[0].method == "negotiate"
        assert transport.calls[0].args == {"token": "ek_test_token"}

        update = transport.sent_events[0]
        assert update["type"] == "session.update"
        assert update["event_id"] == "evt_1"
        assert update["session"]["audio"]["output"]["voice"] == "alloy"
        assert update["session"]["tools"] == [tool]

    async def test_connect_while_connected_is_ignored(
        self,
        client: TransportRealtimeClient,
        signaling: MockSignaling,
        config: RealtimeConfig,
    ) -> None:
        await client.connect(config)
        await client.connect(config)
        assert len(signaling.calls) == 1

    async def test_connect_while_connecting_is_ignored(
        self,
        signaling: MockSignaling,
        config: RealtimeConfig,
    ) -> None:
        transport = MockRealtimeTransport(open_on_negotiate=False)
        client = TransportRealtimeClient(transport, signaling=signaling)  # type: ignore[arg-type]

        await client.connect(config)
        assert client.connection_state == ConnectionState.CONNECTING

        await client.connect(config)
        assert len(signaling.calls) == 1

    async def test_session_created_publishes_connected(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        events = client.events.subscribe()
        await client.connect(config)
        await transport.simulate_message({"type": "session.created", "session": {}})

        received = events.drain()
        assert len(received) == 1
        assert isinstance(received[0], ConnectedEvent)

    async def test_session_created_completes_connecting(
        self,
        signaling: MockSignaling,
        config: RealtimeConfig,
    ) -> None:
        transport = MockRealtimeTransport(open_on_negotiate=False)
        client = TransportRealtimeClient(transport, signaling=signaling)  # type: ignore[arg-type]
        await client.connect(config)

        await transport.simulate_message({"type": "session.created"})
        assert client.connection_state.is_connected

    async def test_token_failure_sets_error_state(
        self,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        signaling = MockSignaling(
            fail_token=SignalingError("Failed to get ephemeral token: HTTP 401", status_code=401)
        )
        client = TransportRealtimeClient(transport, signaling=signaling)  # type: ignore[arg-type]
        events = client.events.subscribe()

        await client.connect(config)

        state = client.connection_state
        assert state.status == ConnectionStatus.ERROR
        assert state.message == "Failed to get ephemeral token: HTTP 401"
        assert events.drain() == [ErrorEvent("Failed to get ephemeral token: HTTP 401")]
        assert [c.method for c in transport.calls] == ["close"]

    async def test_negotiate_failure_sets_error_state(
        self,
        signaling: MockSignaling,
        config: RealtimeConfig,
    ) -> None:
        transport = MockRealtimeTransport(fail_negotiate=TransportError("handshake refused"))
        client = TransportRealtimeClient(transport, signaling=signaling)  # type: ignore[arg-type]
        events = client.events.subscribe()

        await client.connect(config)

        assert client.connection_state == ConnectionState.error("handshake refused")
        assert events.drain() == [ErrorEvent("handshake refused")]

    async def test_reconnect_after_error(
        self,
        signaling: MockSignaling,
        config: RealtimeConfig,
    ) -> None:
        transport = MockRealtimeTransport(fail_negotiate=TransportError("down"))
        client = TransportRealtimeClient(transport, signaling=signaling)  # type: ignore[arg-type]
        await client.connect(config)
        assert client.connection_state.status == ConnectionStatus.ERROR

        transport.fail_negotiate = None
        await client.connect(config)
        assert client.connection_state.is_connected

    async def test_cancelled_connect_returns_to_disconnected(
        self,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
        advance: Advance,
    ) -> None:
        gate = asyncio.Event()

        class SlowSignaling(MockSignaling):
            async def exchange_token(self, config: RealtimeConfig) -> str:
                await gate.wait()
                return self.token

        client = TransportRealtimeClient(transport, signaling=SlowSignaling())  # type: ignore[arg-type]
        task = asyncio.create_task(client.connect(config))
        await advance()
        assert client.connection_state == ConnectionState.CONNECTING

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert client.connection_state == ConnectionState.DISCONNECTED


class _GatedTransport(MockRealtimeTransport):
    """Negotiation waits on ``gate`` before it opens the channel."""

    def __init__(self, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.gate = asyncio.Event()

    async def negotiate(self, signaling: Any, token: str, config: RealtimeConfig) -> None:
        await self.gate.wait()
        await super().negotiate(signaling, token, config)


class _FirstTokenGatedSignaling(MockSignaling):
    """Only the first token exchange waits on ``gate``; it then returns a stale token."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = asyncio.Event()

    async def exchange_token(self, config: RealtimeConfig) -> str:
        first = not self.calls
        token = await super().exchange_token(config)
        if first:
            await self.gate.wait()
            return "ek_stale"
        return token


class TestSupersededConnect:
    async def test_disconnect_during_negotiation_releases_transport(
        self,
        signaling: MockSignaling,
        config: RealtimeConfig,
        advance: Advance,
    ) -> None:
        transport = _GatedTransport()
        client = TransportRealtimeClient(transport, signaling=signaling)  # type: ignore[arg-type]
        events = client.events.subscribe()
        task = asyncio.create_task(client.connect(config))
        await advance()
        assert client.connection_state == ConnectionState.CONNECTING

        await client.disconnect()
        transport.gate.set()
        await task

        assert client.connection_state == ConnectionState.DISCONNECTED
        assert not transport.is_open
        assert [c.method for c in transport.calls] == ["close", "negotiate", "close"]
        assert transport.sent_texts == []
        received = events.drain()
        assert len(received) == 1
        assert isinstance(received[0], DisconnectedEvent)

    async def test_negotiation_failure_after_disconnect_is_not_reported(
        self,
        signaling: MockSignaling,
        config: RealtimeConfig,
        advance: Advance,
    ) -> None:
        transport = _GatedTransport(fail_negotiate=TransportError("late failure"))
        client = TransportRealtimeClient(transport, signaling=signaling)  # type: ignore[arg-type]
        events = client.events.subscribe()
        task = asyncio.create_task(client.connect(config))
        await advance()

        await client.disconnect()
        transport.gate.set()
        await task

        assert client.connection_state == ConnectionState.DISCONNECTED
        assert not any(isinstance(e, ErrorEvent) for e in events.drain())
        assert transport.calls[-1].method == "close"

    async def test_stale_token_is_not_used_after_reconnect(
        self,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
        advance: Advance,
    ) -> None:
        signaling = _FirstTokenGatedSignaling()
        client = TransportRealtimeClient(transport, signaling=signaling)  # type: ignore[arg-type]
        first = asyncio.create_task(client.connect(config))
        await advance()

        await client.disconnect()
        await client.connect(config)
        assert client.connection_state.is_connected

        signaling.gate.set()
        await first

        negotiations = [c for c in transport.calls if c.method == "negotiate"]
        assert [c.args["token"] for c in negotiations] == ["ek_test_token"]
        assert client.connection_state.is_connected
        assert transport.is_open
        assert transport.calls[-1].method != "close"


class TestDisconnect:
    async def test_disconnect_emits_exactly_one_event(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        await client.connect(config)
        events = client.events.subscribe()

        await client.disconnect()
        # The transport's own close notification must not add a second one
        await transport.simulate_remote_close()

        received = events.drain()
        assert len(received) == 1
        assert isinstance(received[0], DisconnectedEvent)
        assert client.connection_state == ConnectionState.DISCONNECTED
        assert transport.calls[-1].method == "close"

    async def test_disconnect_survives_transport_close_error(
        self,
        signaling: MockSignaling,
        config: RealtimeConfig,
    ) -> None:
        transport = MockRealtimeTransport(fail_close=RuntimeError("already gone"))
        client = TransportRealtimeClient(transport, signaling=signaling)  # type: ignore[arg-type]
        await client.connect(config)

        await client.disconnect()
        assert client.connection_state == ConnectionState.DISCONNECTED

    async def test_remote_close(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        await client.connect(config)
        events = client.events.subscribe()

        await transport.simulate_remote_close()

        assert client.connection_state == ConnectionState.DISCONNECTED
        received = events.drain()
        assert len(received) == 1
        assert isinstance(received[0], DisconnectedEvent)

    async def test_messages_after_disconnect_are_ignored(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        await client.connect(config)
        await client.disconnect()
        events = client.events.subscribe()

        await transport.simulate_message(
            {"type": "response.output_audio_transcript.done", "transcript": "late"}
        )
        assert events.drain() == []

    async def test_session_context_manager_disconnects(
        self,
        client: TransportRealtimeClient,
        config: RealtimeConfig,
    ) -> None:
        async with client.session(config) as session:
            assert session.connection_state.is_connected
        assert client.connection_state == ConnectionState.DISCONNECTED

    async def test_close_ends_streams(
        self,
        client: TransportRealtimeClient,
        config: RealtimeConfig,
    ) -> None:
        await client.connect(config)
        events = client.events.subscribe()

        await client.close()

        received = [event async for event in events]
        assert len(received) == 1
        assert isinstance(received[0], DisconnectedEvent)


class TestInbound:
    async def test_transcripts_in_order(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        await client.connect(config)
        events = client.events.subscribe()

        await transport.simulate_message(
            {"type": "response.output_audio_transcript.delta", "delta": "Hel"}
        )
        await transport.simulate_message(
            {"type": "response.output_audio_transcript.delta", "delta": "lo"}
        )
        await transport.simulate_message(
            {"type": "response.output_audio_transcript.done", "transcript": "Hello"}
        )

        assert events.drain() == [
            TranscriptEvent("Hel", False),
            TranscriptEvent("lo", False),
            TranscriptEvent("Hello", True),
        ]

    async def test_duplicate_tool_calls_are_dropped(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        await client.connect(config)
        events = client.events.subscribe()

        await transport.simulate_message(_tool_call("open_repo", "{}", "call_7"))
        await transport.simulate_message(
            {
                "type": "conversation.item.created",
                "item": {
                    "type": "function_call",
                    "name": "open_repo",
                    "arguments": "{}",
                    "call_id": "call_7",
                    "status": "completed",
                },
            }
        )

        assert events.drain() == [ToolCallEvent("open_repo", "{}", "call_7")]

    async def test_duplicate_tool_calls_without_call_id_are_dropped_by_item(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        await client.connect(config)
        events = client.events.subscribe()

        await transport.simulate_message(
            {
                "type": "conversation.item.created",
                "item": {
                    "id": "item_1",
                    "type": "function_call",
                    "name": "create_file",
                    "arguments": '{"path": "a.txt", "content": "hi"}',
                    "status": "completed",
                },
            }
        )
        done = _tool_call("create_file", '{"path": "a.txt", "content": "hi"}', None)
        done["item_id"] = "item_1"
        await transport.simulate_message(done)

        received = events.drain()
        assert received == [
            ToolCallEvent("create_file", '{"path": "a.txt", "content": "hi"}', None, "item_1")
        ]

    async def test_tool_calls_without_any_id_are_not_deduplicated(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        await client.connect(config)
        events = client.events.subscribe()

        await transport.simulate_message(_tool_call("open_repo", "{}", None))
        await transport.simulate_message(_tool_call("open_repo", "{}", None))

        assert len(events.drain()) == 2

    async def test_malformed_message_becomes_error_event(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        await client.connect(config)
        events = client.events.subscribe()

        await transport.simulate_message("{oops")

        received = events.drain()
        assert len(received) == 1
        assert isinstance(received[0], ErrorEvent)
        assert received[0].message.startswith("Failed to parse message")
        assert client.connection_state.is_connected

    async def test_server_error_keeps_session(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        await client.connect(config)
        events = client.events.subscribe()

        await transport.simulate_message({"type": "error", "error": {"message": "bad item"}})

        assert events.drain() == [ErrorEvent("bad item")]
        assert client.connection_state.is_connected

    async def test_audio_deltas_go_to_audio_stream(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        await client.connect(config)
        events = client.events.subscribe()
        audio = client.audio_frames.subscribe()

        payload = base64.b64encode(b"\x10\x20").decode()
        await transport.simulate_message({"type": "response.output_audio.delta", "delta": payload})
        await transport.simulate_audio(b"\x30\x40")

        assert audio.drain() == [b"\x10\x20", b"\x30\x40"]
        assert events.drain() == []


class TestOutbound:
    async def test_audio_dropped_unless_connected(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        await client.send_audio_frame(b"\x00\x00")
        assert transport.sent_audio == []

        await client.connect(config)
        await client.send_audio_frame(b"\x01\x00")
        assert transport.sent_audio == [b"\x01\x00"]

        await client.disconnect()
        await client.send_audio_frame(b"\x02\x00")
        assert transport.sent_audio == [b"\x01\x00"]

    async def test_data_send_refused_when_not_connected(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
    ) -> None:
        assert await client.data_send_response_create() is False
        assert transport.sent_texts == []

    async def test_user_text_sends_item_then_response(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        await client.connect(config)

        assert await client.data_send_user_text("open my repo") is True

        sent = transport.sent_events[1:]
        assert [e["type"] for e in sent] == ["conversation.item.create", "response.create"]
        assert sent[0]["item"]["content"] == [{"type": "input_text", "text": "open my repo"}]

    async def test_function_call_output(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        await client.connect(config)

        await client.data_send_function_call_output("call_3", json.dumps({"success": True}))

        item = transport.sent_events[1]["item"]
        assert item == {
            "type": "function_call_output",
            "call_id": "call_3",
            "output": '{"success": true}',
        }
        assert transport.sent_events[2]["type"] == "response.create"

    async def test_send_exception_becomes_error_event(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        await client.connect(config)
        events = client.events.subscribe()
        transport.fail_send = ConnectionError("channel reset")

        assert await client.data_send_input_audio_buffer_commit() is False
        assert events.drain() == [
            ErrorEvent("Failed to send input_audio_buffer.commit: channel reset")
        ]

    async def test_refused_send_returns_false(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        await client.connect(config)
        transport.accept_sends = False
        assert await client.data_send_input_audio_buffer_clear() is False

    async def test_event_ids_come_from_generator(
        self,
        client: TransportRealtimeClient,
        transport: MockRealtimeTransport,
        config: RealtimeConfig,
    ) -> None:
        await client.connect(config)
        await client.data_send_response_cancel()
        assert [e["event_id"] for e in transport.sent_events] == ["evt_1", "evt_2"]
