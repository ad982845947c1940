"""RealtimeTransport abstract base classes."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from codeoba.realtime.base import RealtimeConfig
    from codeoba.realtime.signaling import RealtimeSignaling

logger = logging.getLogger("codeoba.realtime.transport")

# Callback type aliases
TransportOpenCallback = Callable[[], Any]
TransportMessageCallback = Callable[[str], Any]
TransportCloseCallback = Callable[[], Any]
TransportAudioCallback = Callable[[bytes], Any]


class RealtimeTransport(ABC):
    """Abstract base for the channel carrying a realtime session.

    A transport moves two things: JSON protocol events over a data channel,
    and raw audio. The session engine owns the protocol; the transport only
    has to bring the channel up with an ephemeral token and report when it
    opens, receives text, or closes.

    Callbacks may be plain functions or coroutines.

    Example:
        transport = WebSocketTransport()
        transport.on_open(handle_open)
        transport.on_message(handle_text)

        await transport.negotiate(signaling, token, config)
        await transport.send_text('{"type": "response.create"}')
    """

    def __init__(self) -> None:
        self._open_callbacks: list[TransportOpenCallback] = []
        self._message_callbacks: list[TransportMessageCallback] = []
        self._close_callbacks: list[TransportCloseCallback] = []
        self._audio_callbacks: list[TransportAudioCallback] = []

    @property
    @abstractmethod
    def name(self) -> str:
        """Transport name (e.g. 'websocket', 'webrtc')."""
        ...

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """True while the data channel can carry protocol events."""
        ...

    @abstractmethod
    async def negotiate(
        self,
        signaling: RealtimeSignaling,
        token: str,
        config: RealtimeConfig,
    ) -> None:
        """Bring the transport up using an ephemeral token.

        The data channel may open during this call or later; either way
        the transport fires its open callbacks once it is usable.

        Raises:
            Exception: Any failure; the engine turns it into an error state.
        """
        ...

    @abstractmethod
    async def send_text(self, text: str) -> bool:
        """Send one protocol event over the data channel.

        Returns:
            False when no channel is open or the channel refused the send.
        """
        ...

    @abstractmethod
    async def send_audio(self, frame: bytes) -> None:
        """Send one frame of captured PCM audio."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release every resource held by the transport. Safe to call twice."""
        ...

    # -- Callback registration --

    def on_open(self, callback: TransportOpenCallback) -> None:
        self._open_callbacks.append(callback)

    def on_message(self, callback: TransportMessageCallback) -> None:
        self._message_callbacks.append(callback)

    def on_close(self, callback: TransportCloseCallback) -> None:
        self._close_callbacks.append(callback)

    def on_audio(self, callback: TransportAudioCallback) -> None:
        self._audio_callbacks.append(callback)

    # -- Callback dispatch --

    async def _fire(self, callbacks: list[Any], *args: Any) -> None:
        for cb in callbacks:
            try:
                result = cb(*args)
                if hasattr(result, "__await__"):
                    await result
            except Exception:
                logger.exception("Error in %s transport callback", self.name)

    async def _fire_open(self) -> None:
        await self._fire(self._open_callbacks)

    async def _fire_message(self, text: str) -> None:
        await self._fire(self._message_callbacks, text)

    async def _fire_close(self) -> None:
        await self._fire(self._close_callbacks)

    async def _fire_audio(self, audio: bytes) -> None:
        await self._fire(self._audio_callbacks, audio)


class SdpTransport(RealtimeTransport):
    """Base for offer/answer transports such as WebRTC.

    Subclasses supply the peer-connection mechanics; negotiation posts the
    local offer to ``{endpoint}/calls`` and applies the returned answer.
    """

    @abstractmethod
    async def create_offer(self, config: RealtimeConfig) -> str:
        """Create the local peer connection and data channel; return the SDP offer."""
        ...

    @abstractmethod
    async def set_remote_answer(self, answer_sdp: str) -> None:
        """Apply the remote SDP answer."""
        ...

    async def negotiate(
        self,
        signaling: RealtimeSignaling,
        token: str,
        config: RealtimeConfig,
    ) -> None:
        offer = await self.create_offer(config)
        answer = await signaling.exchange_sdp(config, token, offer)
        await self.set_remote_answer(answer)
