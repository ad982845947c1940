"""HTTP exchanges that bring a realtime session up.

Two requests happen before any protocol traffic: the long-lived API key is
traded for an ephemeral token scoped to one session, and (for SDP-based
transports) the local offer is posted with that token to get the answer.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from codeoba.errors import SignalingError
from codeoba.realtime.base import RealtimeConfig

logger = logging.getLogger("codeoba.realtime.signaling")


class RealtimeSignaling:
    """Token and SDP exchange against a Realtime endpoint.

    Pass an ``httpx.AsyncClient`` to share a connection pool (or to inject
    a mock); otherwise one is created per instance and closed by
    :meth:`close`.
    """

    def __init__(self, client: httpx.AsyncClient | None = None, timeout: float = 30.0) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def exchange_token(self, config: RealtimeConfig) -> str:
        """Exchange the configured API key for an ephemeral session token.

        Raises:
            SignalingError: On transport failure, a non-2xx status, or a
                response without a ``value``.
        """
        body: dict[str, Any] = {
            "session": {
                "type": "realtime",
                "model": config.model,
                "audio": {"output": {"voice": config.voice}},
            }
        }
        logger.debug("Requesting ephemeral token for model=%s voice=%s", config.model, config.voice)
        try:
            resp = await self._client.post(
                f"{config.endpoint}/client_secrets",
                json=body,
                headers={"Authorization": f"Bearer {config.api_key.get_secret_value()}"},
                timeout=config.timeout,
            )
        except httpx.HTTPError as exc:
            raise SignalingError(f"Failed to get ephemeral token: {exc}") from exc

        if not resp.is_success:
            raise SignalingError(
                f"Failed to get ephemeral token: HTTP {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except json.JSONDecodeError as exc:
            raise SignalingError(f"Failed to get ephemeral token: {exc}") from exc

        token = data.get("value") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise SignalingError("Failed to get ephemeral token: no token in response")

        logger.debug("Ephemeral token received (%d chars)", len(token))
        return token

    async def exchange_sdp(self, config: RealtimeConfig, token: str, offer_sdp: str) -> str:
        """Post the local SDP offer and return the raw SDP answer.

        Raises:
            SignalingError: On transport failure, a non-2xx status, or an
                empty answer.
        """
        try:
            resp = await self._client.post(
                f"{config.endpoint}/calls",
                content=offer_sdp.encode(),
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/sdp",
                    "Accept": "text/plain",
                },
                timeout=config.timeout,
            )
        except httpx.HTTPError as exc:
            raise SignalingError(f"Failed to exchange SDP: {exc}") from exc

        if not resp.is_success:
            raise SignalingError(
                f"Failed to exchange SDP: HTTP {resp.status_code}: {resp.text}",
                status_code=resp.status_code,
            )

        answer = resp.text
        if not answer.strip():
            raise SignalingError("Failed to exchange SDP: received empty SDP answer")

        logger.debug("SDP answer received (%d chars)", len(answer))
        return answer

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
