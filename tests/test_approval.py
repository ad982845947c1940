"""Tests for the approval manager and policy."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

from codeoba.mcp.approval import (
    AUTO_APPROVED,
    ApprovalManager,
    ApprovalPolicy,
    Approved,
    Denied,
    TimedOut,
    requires_approval,
)

Advance = Callable[..., Coroutine[Any, Any, None]]


def _manager() -> ApprovalManager:
    counter = iter(range(1, 1000))
    return ApprovalManager(id_factory=lambda: f"apr-{next(counter)}", poll_interval=0.001)


class TestPolicy:
    def test_only_open_repo_is_free(self) -> None:
        assert not requires_approval("open_repo")
        for tool in ("create_file", "edit_file", "create_branch", "create_pr", "unknown"):
            assert requires_approval(tool)

    def test_custom_read_only_set(self) -> None:
        policy = ApprovalPolicy(read_only_tools=frozenset({"open_repo", "create_file"}))
        assert not policy.requires_approval("create_file")
        assert policy.requires_approval("edit_file")


class TestApprovalManager:
    async def test_auto_approved_without_state(self) -> None:
        manager = _manager()
        sub = manager.requests.subscribe()

        request_id = await manager.request_approval("open_repo", "{}", requires_approval=False)

        assert request_id == AUTO_APPROVED
        assert manager.pending_count == 0
        assert sub.drain() == []
        assert await manager.wait_for_approval(request_id) == Approved()

    async def test_request_is_published(self) -> None:
        manager = _manager()
        sub = manager.requests.subscribe()

        request_id = await manager.request_approval("create_file", '{"path": "a"}')

        assert request_id == "apr-1"
        assert manager.is_pending(request_id)
        request = sub.get_nowait()
        assert request is not None
        assert request.tool_name == "create_file"
        assert request.arguments == '{"path": "a"}'

    async def test_approve(self, advance: Advance) -> None:
        manager = _manager()
        request_id = await manager.request_approval("create_file", "{}")
        waiter = asyncio.create_task(manager.wait_for_approval(request_id, timeout=5.0))
        await advance()

        await manager.respond_to_approval(request_id, True)

        assert await waiter == Approved()
        assert manager.pending_count == 0

    async def test_deny_with_reason(self) -> None:
        manager = _manager()
        request_id = await manager.request_approval("edit_file", "{}")
        await manager.respond_to_approval(request_id, False, "wrong branch")

        assert await manager.wait_for_approval(request_id, timeout=1.0) == Denied("wrong branch")

    async def test_deny_default_reason(self) -> None:
        manager = _manager()
        request_id = await manager.request_approval("edit_file", "{}")
        await manager.respond_to_approval(request_id, False)

        assert await manager.wait_for_approval(request_id, timeout=1.0) == Denied("Denied by user")

    async def test_timeout_removes_request(self) -> None:
        manager = _manager()
        request_id = await manager.request_approval("create_pr", "{}")

        assert await manager.wait_for_approval(request_id, timeout=0.01) == TimedOut()
        assert manager.pending_count == 0

        # A late answer is a no-op
        await manager.respond_to_approval(request_id, True)
        assert manager.pending_count == 0

    async def test_first_response_wins(self) -> None:
        manager = _manager()
        request_id = await manager.request_approval("create_file", "{}")

        await manager.respond_to_approval(request_id, True)
        await manager.respond_to_approval(request_id, False, "changed my mind")

        assert await manager.wait_for_approval(request_id, timeout=1.0) == Approved()

    async def test_unknown_request_ignored(self) -> None:
        manager = _manager()
        await manager.respond_to_approval("apr-999", True)
        assert manager.pending_count == 0

    async def test_unknown_request_times_out(self) -> None:
        manager = _manager()
        assert await manager.wait_for_approval("apr-404", timeout=0.01) == TimedOut()

    async def test_response_racing_timeout_resolves_once(self) -> None:
        manager = _manager()
        results = []
        for _ in range(20):
            request_id = await manager.request_approval("create_file", "{}")
            waiter = asyncio.create_task(manager.wait_for_approval(request_id, timeout=0.002))
            await asyncio.sleep(0.002)
            await manager.respond_to_approval(request_id, True)
            results.append(await waiter)

        assert all(isinstance(r, (Approved, TimedOut)) for r in results)
        assert manager.pending_count == 0

    async def test_concurrent_requests_are_independent(self) -> None:
        manager = _manager()
        first = await manager.request_approval("create_file", "{}")
        second = await manager.request_approval("edit_file", "{}")
        assert first != second

        await manager.respond_to_approval(second, False)
        await manager.respond_to_approval(first, True)

        results = await asyncio.gather(
            manager.wait_for_approval(first, timeout=1.0),
            manager.wait_for_approval(second, timeout=1.0),
        )
        assert results == [Approved(), Denied("Denied by user")]

    def test_default_request_ids(self) -> None:
        manager = ApprovalManager()
        ids = {manager._id_factory() for _ in range(50)}
        assert all(i.startswith("approval-") for i in ids)
        assert len(ids) > 1
