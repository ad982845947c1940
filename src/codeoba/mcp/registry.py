"""Tool handler contract and the registry that dispatches to handlers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from codeoba.mcp.github import GitHubApiClient
from codeoba.mcp.results import McpFailure, McpResult
from codeoba.mcp.retry import RetryPolicy
from codeoba.mcp.schemas import ToolDefinition

logger = logging.getLogger("codeoba.mcp.registry")

NO_REPOSITORY = "No repository opened. Use open_repo first."

ContextUpdater = Callable[[str, str, str], None]


def _ignore_update(owner: str, repo: str, branch: str) -> None:
    logger.debug("Context update for %s/%s@%s dropped (no updater)", owner, repo, branch)


@dataclass(frozen=True)
class McpToolContext:
    """Session state a handler runs against.

    A snapshot taken per call. Handlers change the session's repository
    only through :attr:`update_context`.
    """

    github_client: GitHubApiClient
    current_owner: str | None = None
    current_repo: str | None = None
    current_branch: str = "main"
    update_context: ContextUpdater = _ignore_update
    retry_policy: RetryPolicy | None = None

    @property
    def has_repository(self) -> bool:
        return bool(self.current_owner and self.current_repo)


class McpToolHandler(ABC):
    """One tool the model can call.

    ``execute`` receives the parsed JSON arguments and returns an
    :data:`McpResult`. Exceptions are caught by the registry, but handlers
    are expected to turn known failures into :class:`McpFailure` themselves.
    """

    requires_approval: bool = True
    notify_only: bool = False
    """The call expects no function output back (fire-and-forget)."""

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    @abstractmethod
    def description(self) -> str: ...

    @property
    @abstractmethod
    def input_schema(self) -> dict[str, Any]: ...

    @abstractmethod
    async def execute(self, args: dict[str, Any], context: McpToolContext) -> McpResult: ...

    def validate(self, args: dict[str, Any], context: McpToolContext) -> McpFailure | None:
        """Check arguments and session state without side effects.

        Runs before the user is asked to approve the call. The default
        accepts everything.
        """
        return None

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.input_schema,
        )


class McpToolRegistry:
    """Name-to-handler map with a no-raise ``execute_tool``.

    Example:
        registry = create_default_registry()
        result = await registry.execute_tool("open_repo", {"repoUrl": url}, context)
    """

    def __init__(self) -> None:
        self._handlers: dict[str, McpToolHandler] = {}

    def register(self, handler: McpToolHandler) -> None:
        if handler.name in self._handlers:
            logger.warning("Replacing handler for tool %s", handler.name)
        self._handlers[handler.name] = handler

    def get_handler(self, name: str) -> McpToolHandler | None:
        return self._handlers.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    @property
    def tool_names(self) -> list[str]:
        return list(self._handlers)

    def get_all_tool_definitions(self) -> list[ToolDefinition]:
        return [h.definition() for h in self._handlers.values()]

    def as_realtime_tools(self) -> list[dict[str, Any]]:
        """Tool catalog for ``session.update``."""
        return [d.to_realtime() for d in self.get_all_tool_definitions()]

    def requires_approval(self, name: str) -> bool:
        """Unknown tools require approval."""
        handler = self._handlers.get(name)
        return True if handler is None else handler.requires_approval

    def is_notify_only(self, name: str) -> bool:
        handler = self._handlers.get(name)
        return handler is not None and handler.notify_only

    async def execute_tool(
        self,
        name: str,
        args: dict[str, Any],
        context: McpToolContext,
    ) -> McpResult:
        """Run the named tool. Never raises."""
        handler = self._handlers.get(name)
        if handler is None:
            logger.warning("Unknown tool: %s", name)
            return McpFailure(f"Unknown tool: {name}")
        try:
            result = await handler.execute(args, context)
        except Exception as exc:
            logger.exception("Tool %s raised", name)
            return McpFailure(f"Tool execution error: {exc}")
        logger.info("Tool %s finished: %s", name, "ok" if result.ok else "failed")
        return result

    def validate_tool(
        self,
        name: str,
        args: dict[str, Any],
        context: McpToolContext,
    ) -> McpFailure | None:
        """Failure the call would end in before touching GitHub, or None."""
        handler = self._handlers.get(name)
        if handler is None:
            return McpFailure(f"Unknown tool: {name}")
        try:
            failure = handler.validate(args, context)
        except Exception as exc:
            logger.exception("Tool %s validation raised", name)
            return McpFailure(f"Tool execution error: {exc}")
        if failure is not None:
            logger.info("Tool %s rejected: %s", name, failure.message)
        return failure
