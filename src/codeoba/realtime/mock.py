"""Mock realtime transport and signaling for testing."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from codeoba.realtime.transport import RealtimeTransport

if TYPE_CHECKING:
    from codeoba.realtime.base import RealtimeConfig
    from codeoba.realtime.signaling import RealtimeSignaling


@dataclass
class MockCall:
    """Record of a method call for test assertions."""

    method: str
    args: dict[str, Any] = field(default_factory=dict)


class MockRealtimeTransport(RealtimeTransport):
    """Mock transport for testing the session engine.

    Tracks all calls and provides helpers to simulate the remote side.
    By default the data channel opens during ``negotiate``; pass
    ``open_on_negotiate=False`` to open it later with
    :meth:`simulate_open`.

    Example:
        transport = MockRealtimeTransport()
        client = TransportRealtimeClient(transport, signaling=MockSignaling())
        await client.connect(config)

        await transport.simulate_message({"type": "session.created"})
        assert transport.sent_events[0]["type"] == "session.update"
    """

    def __init__(
        self,
        *,
        open_on_negotiate: bool = True,
        fail_negotiate: Exception | None = None,
        fail_send: Exception | None = None,
        fail_close: Exception | None = None,
    ) -> None:
        super().__init__()
        self.calls: list[MockCall] = []
        self.sent_texts: list[str] = []
        self.sent_audio: list[bytes] = []
        self.open_on_negotiate = open_on_negotiate
        self.fail_negotiate = fail_negotiate
        self.fail_send = fail_send
        self.fail_close = fail_close
        self.accept_sends = True
        self._open = False

    @property
    def name(self) -> str:
        return "mock"

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def sent_events(self) -> list[dict[str, Any]]:
        return [json.loads(t) for t in self.sent_texts]

    async def negotiate(
        self,
        signaling: RealtimeSignaling,
        token: str,
        config: RealtimeConfig,
    ) -> None:
        self.calls.append(MockCall(method="negotiate", args={"token": token}))
        if self.fail_negotiate is not None:
            raise self.fail_negotiate
        if self.open_on_negotiate:
            await self.simulate_open()

    async def send_text(self, text: str) -> bool:
        self.calls.append(MockCall(method="send_text", args={"text": text}))
        if self.fail_send is not None:
            raise self.fail_send
        if not self._open or not self.accept_sends:
            return False
        self.sent_texts.append(text)
        return True

    async def send_audio(self, frame: bytes) -> None:
        self.calls.append(MockCall(method="send_audio", args={"size": len(frame)}))
        self.sent_audio.append(frame)

    async def close(self) -> None:
        self.calls.append(MockCall(method="close"))
        self._open = False
        if self.fail_close is not None:
            raise self.fail_close

    # -- Simulation helpers --

    async def simulate_open(self) -> None:
        self._open = True
        await self._fire_open()

    async def simulate_message(self, message: dict[str, Any] | str) -> None:
        text = message if isinstance(message, str) else json.dumps(message)
        await self._fire_message(text)

    async def simulate_remote_close(self) -> None:
        self._open = False
        await self._fire_close()

    async def simulate_audio(self, audio: bytes) -> None:
        await self._fire_audio(audio)


class MockSignaling:
    """Stand-in for :class:`RealtimeSignaling` that never touches the network."""

    def __init__(
        self,
        token: str = "ek_test_token",
        answer: str = "v=0\r\n",
        fail_token: Exception | None = None,
    ) -> None:
        self.token = token
        self.answer = answer
        self.fail_token = fail_token
        self.calls: list[MockCall] = []

    async def exchange_token(self, config: RealtimeConfig) -> str:
        self.calls.append(MockCall(method="exchange_token", args={"model": config.model}))
        if self.fail_token is not None:
            raise self.fail_token
        return self.token

    async def exchange_sdp(self, config: RealtimeConfig, token: str, offer_sdp: str) -> str:
        self.calls.append(MockCall(method="exchange_sdp", args={"offer": offer_sdp}))
        return self.answer

    async def close(self) -> None:
        self.calls.append(MockCall(method="close"))
