"""Compose several MCP clients into one first-match-wins client."""

from __future__ import annotations

import logging

from codeoba.mcp.client import McpClient
from codeoba.mcp.results import McpFailure, McpResult
from codeoba.mcp.schemas import ToolDefinition

logger = logging.getLogger("codeoba.mcp.compose")


class CompositeMcpClient(McpClient):
    """Route each tool call to the first client that knows the tool.

    Tool definitions are merged in client order; when two clients expose the
    same name the earlier one wins.

    Raises:
        ValueError: If fewer than two clients are given.
    """

    def __init__(self, *clients: McpClient) -> None:
        if len(clients) < 2:
            raise ValueError("CompositeMcpClient requires at least 2 clients")
        self._clients = clients

    async def connect(self) -> None:
        for client in self._clients:
            await client.connect()

    def tool_definitions(self) -> list[ToolDefinition]:
        seen: set[str] = set()
        merged: list[ToolDefinition] = []
        for client in self._clients:
            for definition in client.tool_definitions():
                if definition.name not in seen:
                    seen.add(definition.name)
                    merged.append(definition)
        return merged

    def _client_for(self, name: str) -> McpClient | None:
        for client in self._clients:
            if client.handles(name):
                return client
        return None

    def handles(self, name: str) -> bool:
        return self._client_for(name) is not None

    def is_notify_only(self, name: str) -> bool:
        client = self._client_for(name)
        return client is not None and client.is_notify_only(name)

    async def handle_tool_call(self, name: str, arguments_json: str) -> McpResult:
        client = self._client_for(name)
        if client is None:
            logger.warning("No client handles tool %s", name)
            return McpFailure(f"Unknown tool: {name}")
        logger.debug("Routing tool %s to %r", name, client)
        return await client.handle_tool_call(name, arguments_json)

    async def close(self) -> None:
        for client in self._clients:
            try:
                await client.close()
            except Exception:
                logger.exception("Error closing MCP client %r", client)
