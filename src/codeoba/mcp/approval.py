"""User approval for tool calls that change a repository."""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime

from codeoba.core.broadcast import EventStream
from codeoba.core.ids import IdGenerator
from codeoba.models.enums import ApprovalStatus

logger = logging.getLogger("codeoba.mcp.approval")

AUTO_APPROVED = "auto-approved"
DEFAULT_DENY_REASON = "Denied by user"

READ_ONLY_TOOLS = frozenset({"open_repo"})


class ApprovalPolicy:
    """Decides which tools run only after the user approves them.

    Tools listed as read-only run freely. Every other tool, including
    names the policy has never seen, needs approval.
    """

    def __init__(self, read_only_tools: frozenset[str] = READ_ONLY_TOOLS) -> None:
        self._read_only = read_only_tools

    def requires_approval(self, tool_name: str) -> bool:
        return tool_name not in self._read_only


def requires_approval(tool_name: str) -> bool:
    """Default policy: only ``open_repo`` runs without approval."""
    return tool_name not in READ_ONLY_TOOLS


def _default_request_id() -> str:
    return f"approval-{int(time.time() * 1000)}-{secrets.randbelow(900000) + 100000}"


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class ApprovalRequest:
    """Published to observers (such as the UI) when a tool call needs approval."""

    request_id: str
    tool_name: str
    arguments: str
    created_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class ApprovalState:
    status: ApprovalStatus
    reason: str | None = None


@dataclass(frozen=True)
class Approved:
    pass


@dataclass(frozen=True)
class Denied:
    reason: str


@dataclass(frozen=True)
class TimedOut:
    pass


ApprovalResult = Approved | Denied | TimedOut

_PENDING = ApprovalState(ApprovalStatus.PENDING)


class ApprovalManager:
    """Tracks pending approvals and waits for the user's answer.

    Every read-modify-write of the pending map happens under one lock, so
    a response racing a timeout resolves the request exactly once. Entries
    are removed when they resolve or time out, which turns late or
    duplicate responses into no-ops.

    Example:
        manager = ApprovalManager()
        request_id = await manager.request_approval("create_file", args_json)
        # UI subscribes to manager.requests and eventually calls:
        await manager.respond_to_approval(request_id, approve=True)
        result = await manager.wait_for_approval(request_id)
    """

    def __init__(
        self,
        *,
        id_factory: IdGenerator | None = None,
        poll_interval: float = 0.1,
        default_timeout: float = 30.0,
    ) -> None:
        self._id_factory = id_factory or _default_request_id
        self._poll_interval = poll_interval
        self._default_timeout = default_timeout
        self._pending: dict[str, ApprovalState] = {}
        self._lock = asyncio.Lock()
        self.requests: EventStream[ApprovalRequest] = EventStream("approval.requests")

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, request_id: str) -> bool:
        state = self._pending.get(request_id)
        return state is not None and state.status == ApprovalStatus.PENDING

    async def request_approval(
        self,
        tool_name: str,
        arguments: str,
        requires_approval: bool = True,
    ) -> str:
        """Open an approval request and notify observers.

        Returns:
            The request id, or ``"auto-approved"`` when no approval is
            needed (nothing is stored in that case).
        """
        if not requires_approval:
            return AUTO_APPROVED

        async with self._lock:
            request_id = self._id_factory()
            while request_id in self._pending or request_id == AUTO_APPROVED:
                request_id = self._id_factory()
            self._pending[request_id] = _PENDING

        logger.info("Approval requested for %s (%s)", tool_name, request_id)
        self.requests.publish(ApprovalRequest(request_id, tool_name, arguments))
        return request_id

    async def wait_for_approval(
        self,
        request_id: str,
        timeout: float | None = None,
    ) -> ApprovalResult:
        """Poll until the request is answered or *timeout* seconds pass.

        The entry is removed on every outcome.
        """
        if request_id == AUTO_APPROVED:
            return Approved()

        timeout = self._default_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while loop.time() < deadline:
            async with self._lock:
                state = self._pending.get(request_id)
                if state is not None and state.status != ApprovalStatus.PENDING:
                    del self._pending[request_id]
                    if state.status == ApprovalStatus.APPROVED:
                        return Approved()
                    return Denied(state.reason or DEFAULT_DENY_REASON)
            await asyncio.sleep(min(self._poll_interval, max(deadline - loop.time(), 0.0)))

        async with self._lock:
            state = self._pending.pop(request_id, None)

        # Answered between the last poll and the deadline
        if state is not None and state.status == ApprovalStatus.APPROVED:
            return Approved()
        if state is not None and state.status == ApprovalStatus.DENIED:
            return Denied(state.reason or DEFAULT_DENY_REASON)

        logger.warning("Approval %s timed out after %.1fs", request_id, timeout)
        return TimedOut()

    async def respond_to_approval(
        self,
        request_id: str,
        approve: bool,
        reason: str | None = None,
    ) -> None:
        """Record the user's answer. Unknown or already resolved ids are ignored."""
        async with self._lock:
            if not self.is_pending(request_id):
                logger.debug("Ignoring response for unknown approval %s", request_id)
                return
            if approve:
                self._pending[request_id] = ApprovalState(ApprovalStatus.APPROVED)
            else:
                self._pending[request_id] = ApprovalState(
                    ApprovalStatus.DENIED, reason or DEFAULT_DENY_REASON
                )
        logger.info("Approval %s %s", request_id, "approved" if approve else "denied")
