"""Shared test fixtures and helpers."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

import pytest

from codeoba.mcp.mock import MockGitHubApiClient
from codeoba.mcp.retry import RetryPolicy
from codeoba.realtime.base import RealtimeConfig
from codeoba.realtime.client import TransportRealtimeClient
from codeoba.realtime.mock import MockRealtimeTransport, MockSignaling


@pytest.fixture
def advance() -> Callable[[int], Coroutine[Any, Any, None]]:
    """Yield control to let pending tasks run without real delay.

    Replaces ``await asyncio.sleep(0.05)`` patterns with zero-delay
    event loop yields::

        await advance()       # 5 yields (default)
        await advance(10)     # 10 yields for heavier workloads
    """

    async def _advance(n: int = 5) -> None:
        for _ in range(n):
            await asyncio.sleep(0)

    return _advance


@pytest.fixture
def config() -> RealtimeConfig:
    return RealtimeConfig(api_key="sk-test-key")


@pytest.fixture
def transport() -> MockRealtimeTransport:
    return MockRealtimeTransport()


@pytest.fixture
def signaling() -> MockSignaling:
    return MockSignaling()


@pytest.fixture
def client(transport: MockRealtimeTransport, signaling: MockSignaling) -> TransportRealtimeClient:
    counter = iter(range(1, 10_000))
    return TransportRealtimeClient(
        transport,
        signaling=signaling,  # type: ignore[arg-type]
        id_generator=lambda: f"evt_{next(counter)}",
    )


@pytest.fixture
def github() -> MockGitHubApiClient:
    return MockGitHubApiClient()


@pytest.fixture
def fast_retry() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, initial_delay_seconds=0.0, max_delay_seconds=0.0)
