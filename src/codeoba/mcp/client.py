"""MCP client contract and the in-process, approval-gated implementation."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from codeoba.mcp.approval import ApprovalManager, ApprovalPolicy, Denied, TimedOut
from codeoba.mcp.github import GitHubApiClient
from codeoba.mcp.handlers import create_default_registry
from codeoba.mcp.registry import McpToolContext, McpToolRegistry
from codeoba.mcp.results import McpFailure, McpResult
from codeoba.mcp.retry import RetryPolicy
from codeoba.mcp.schemas import ToolDefinition

logger = logging.getLogger("codeoba.mcp.client")


def parse_arguments(name: str, arguments_json: str) -> dict[str, Any] | McpFailure:
    """Decode a tool call's JSON arguments; an empty string means no arguments."""
    if not arguments_json.strip():
        return {}
    try:
        arguments = json.loads(arguments_json)
    except json.JSONDecodeError as exc:
        return McpFailure(f"Failed to parse {name} parameters: {exc}")
    if not isinstance(arguments, dict):
        preview = arguments_json[:100] + ("..." if len(arguments_json) > 100 else "")
        return McpFailure(f"Expected JSON object for tool arguments, got: {preview}")
    return arguments


class McpClient(ABC):
    """Executes tool calls requested by the model."""

    @abstractmethod
    async def connect(self) -> None:
        """Prepare the client (connect to a server, discover tools)."""
        ...

    @abstractmethod
    async def handle_tool_call(self, name: str, arguments_json: str) -> McpResult:
        """Run one tool call. Never raises; failures come back as :class:`McpFailure`."""
        ...

    @abstractmethod
    def tool_definitions(self) -> list[ToolDefinition]: ...

    def handles(self, name: str) -> bool:
        return any(d.name == name for d in self.tool_definitions())

    def is_notify_only(self, name: str) -> bool:
        """Whether a call to *name* expects no function output back."""
        return False

    def realtime_tools(self) -> list[dict[str, Any]]:
        """Tool catalog for ``session.update``."""
        return [d.to_realtime() for d in self.tool_definitions()]

    async def close(self) -> None:  # noqa: B027
        """Release resources. Override if the client holds connections."""


class LocalMcpClient(McpClient):
    """Runs the GitHub tools in-process through a :class:`McpToolRegistry`.

    Owns the session's repository context (owner, repo, branch), which
    ``open_repo`` updates. Arguments and the repository context are checked
    first, so a call that cannot succeed fails without an approval prompt.
    Tools that require approval then wait on the :class:`ApprovalManager`;
    a denial or timeout returns a failure and the tool is never executed.

    Example:
        client = LocalMcpClient(HttpGitHubApiClient(GitHubConfig(token=token)))
        result = await client.handle_tool_call("open_repo", '{"repoUrl": "..."}')
    """

    def __init__(
        self,
        github_client: GitHubApiClient,
        *,
        registry: McpToolRegistry | None = None,
        approvals: ApprovalManager | None = None,
        policy: ApprovalPolicy | None = None,
        approval_timeout: float | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self._github = github_client
        self._registry = registry or create_default_registry()
        self.approvals = approvals or ApprovalManager()
        self._policy = policy
        self._approval_timeout = approval_timeout
        self._retry_policy = retry_policy
        self._owner: str | None = None
        self._repo: str | None = None
        self._branch = "main"

    @property
    def registry(self) -> McpToolRegistry:
        return self._registry

    @property
    def current_owner(self) -> str | None:
        return self._owner

    @property
    def current_repo(self) -> str | None:
        return self._repo

    @property
    def current_branch(self) -> str:
        return self._branch

    def _update_context(self, owner: str, repo: str, branch: str) -> None:
        logger.info("Repository context: %s/%s@%s", owner, repo, branch)
        self._owner = owner
        self._repo = repo
        self._branch = branch

    def _context(self) -> McpToolContext:
        return McpToolContext(
            github_client=self._github,
            current_owner=self._owner,
            current_repo=self._repo,
            current_branch=self._branch,
            update_context=self._update_context,
            retry_policy=self._retry_policy,
        )

    def _requires_approval(self, name: str) -> bool:
        if self._policy is not None:
            return self._policy.requires_approval(name)
        return self._registry.requires_approval(name)

    async def connect(self) -> None:
        logger.info("Local MCP client ready with tools: %s", ", ".join(self._registry.tool_names))

    def tool_definitions(self) -> list[ToolDefinition]:
        return self._registry.get_all_tool_definitions()

    def handles(self, name: str) -> bool:
        return name in self._registry

    def is_notify_only(self, name: str) -> bool:
        return self._registry.is_notify_only(name)

    async def handle_tool_call(self, name: str, arguments_json: str) -> McpResult:
        if name not in self._registry:
            logger.warning("Unknown tool: %s", name)
            return McpFailure(f"Unknown tool: {name}")

        arguments = parse_arguments(name, arguments_json)
        if isinstance(arguments, McpFailure):
            return arguments
        if (failure := self._registry.validate_tool(name, arguments, self._context())) is not None:
            return failure

        request_id = await self.approvals.request_approval(
            name, arguments_json, self._requires_approval(name)
        )
        decision = await self.approvals.wait_for_approval(request_id, self._approval_timeout)
        match decision:
            case Denied(reason=reason):
                logger.info("Tool %s denied: %s", name, reason)
                return McpFailure(f"Approval denied for {name}: {reason}")
            case TimedOut():
                return McpFailure(f"Approval timed out for {name}")

        return await self._registry.execute_tool(name, arguments, self._context())

    async def close(self) -> None:
        await self._github.close()
