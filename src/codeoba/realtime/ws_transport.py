"""WebSocket transport for the Realtime API."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from typing import TYPE_CHECKING, Any

from codeoba.errors import TransportError
from codeoba.realtime import codec
from codeoba.realtime.transport import RealtimeTransport

if TYPE_CHECKING:
    from codeoba.realtime.base import RealtimeConfig
    from codeoba.realtime.signaling import RealtimeSignaling

logger = logging.getLogger("codeoba.realtime.ws_transport")


def websocket_url(config: RealtimeConfig) -> str:
    """Map the HTTP endpoint to its WebSocket form with the model selected."""
    base = config.endpoint
    if base.startswith("https://"):
        base = "wss://" + base.removeprefix("https://")
    elif base.startswith("http://"):
        base = "ws://" + base.removeprefix("http://")
    return f"{base}?model={config.model}"


class WebSocketTransport(RealtimeTransport):
    """Carry the realtime session over a single WebSocket.

    Protocol events and audio share the socket: captured audio is sent as
    ``input_audio_buffer.append`` events and model audio arrives as
    ``response.output_audio.delta`` events, so no separate media path
    exists.

    Requires the ``websockets`` package.
    """

    def __init__(self, *, open_timeout: float = 10.0) -> None:
        super().__init__()
        self._open_timeout = open_timeout
        self._ws: Any = None
        self._receive_task: asyncio.Task[None] | None = None
        self._closing = False

    @property
    def name(self) -> str:
        return "websocket"

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._closing

    async def negotiate(
        self,
        signaling: RealtimeSignaling,
        token: str,
        config: RealtimeConfig,
    ) -> None:
        try:
            import websockets
            from websockets.exceptions import WebSocketException
        except ImportError as exc:
            raise ImportError(
                "websockets is required for WebSocketTransport. "
                "Install with: pip install 'codeoba[websocket]'"
            ) from exc

        url = websocket_url(config)
        self._closing = False
        try:
            self._ws = await websockets.connect(
                url,
                additional_headers={"Authorization": f"Bearer {token}"},
                open_timeout=self._open_timeout,
                max_size=None,
            )
        except (OSError, TimeoutError, WebSocketException) as exc:
            raise TransportError(f"WebSocket connection failed: {exc}") from exc

        logger.info("WebSocket open: %s", url)
        self._receive_task = asyncio.create_task(self._receive_loop(), name="codeoba_ws_recv")
        await self._fire_open()

    async def send_text(self, text: str) -> bool:
        ws = self._ws
        if ws is None or self._closing:
            return False
        try:
            await ws.send(text)
        except Exception as exc:
            logger.warning("WebSocket send failed: %s", exc)
            return False
        return True

    async def send_audio(self, frame: bytes) -> None:
        if not frame:
            return
        await self.send_text(json.dumps(codec.input_audio_buffer_append(frame)))

    async def close(self) -> None:
        self._closing = True
        task = self._receive_task
        self._receive_task = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task

        ws = self._ws
        self._ws = None
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()

    async def _receive_loop(self) -> None:
        ws = self._ws
        if ws is None:
            return
        try:
            async for message in ws:
                if isinstance(message, bytes):
                    await self._fire_audio(message)
                else:
                    await self._fire_message(message)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if not self._closing:
                logger.warning("WebSocket closed unexpectedly: %s", exc)

        if not self._closing:
            self._closing = True
            self._ws = None
            logger.info("WebSocket closed by remote")
            await self._fire_close()
