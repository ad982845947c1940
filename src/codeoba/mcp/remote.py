"""RemoteMcpClient: run tool calls on an MCP server."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from types import TracebackType
from typing import Any, Literal

import httpx
from pydantic import BaseModel, Field

from codeoba.errors import McpClientError
from codeoba.mcp.client import McpClient, parse_arguments
from codeoba.mcp.results import McpFailure, McpResult, McpSuccess
from codeoba.mcp.schemas import ToolDefinition

logger = logging.getLogger("codeoba.mcp.remote")

DEFAULT_SERVER_URL = "https://api.githubcopilot.com/mcp/"


class McpServerConfig(BaseModel):
    """Where and how to reach an MCP server."""

    url: str = DEFAULT_SERVER_URL
    transport: Literal["streamable_http", "sse"] = "streamable_http"
    headers: dict[str, str] = Field(default_factory=dict)
    call_timeout: float = Field(default=30.0, gt=0.0)

    @classmethod
    def with_bearer(cls, token: str, **kwargs: Any) -> McpServerConfig:
        headers = {"Authorization": f"Bearer {token}", **kwargs.pop("headers", {})}
        return cls(headers=headers, **kwargs)


class RemoteMcpClient(McpClient):
    """Discover and invoke tools on an MCP server.

    Supports both ``streamable_http`` (default) and ``sse`` transports.
    Tool calls made before :meth:`connect` connect lazily.

    Usage::

        async with RemoteMcpClient(McpServerConfig.with_bearer(token)) as mcp:
            result = await mcp.handle_tool_call("search_code", '{"q": "TODO"}')

    Requires the ``mcp`` package.
    """

    def __init__(
        self,
        config: McpServerConfig | None = None,
        *,
        tool_filter: Callable[[str], bool] | None = None,
    ) -> None:
        self._config = config or McpServerConfig()
        self._tool_filter = tool_filter
        self._session: Any = None
        self._context: Any = None  # async context manager from the transport client
        self._tools: dict[str, ToolDefinition] = {}
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        if self._connected:
            logger.debug("Already connected to %s", self._config.url)
            return
        try:
            from mcp import ClientSession
            from mcp.client.streamable_http import streamablehttp_client
        except ImportError:
            raise ImportError(
                "RemoteMcpClient requires the 'mcp' package. "
                "Install it with: pip install codeoba[mcp]"
            ) from None

        if self._config.transport == "sse":
            from mcp.client.sse import sse_client

            client_cm = sse_client(self._config.url, headers=self._config.headers)
        else:
            client_cm = streamablehttp_client(self._config.url, headers=self._config.headers)

        try:
            self._context = client_cm
            streams = await self._context.__aenter__()

            # streamable_http yields (read, write, session_id); sse yields (read, write)
            read_stream, write_stream = streams[0], streams[1]

            self._session = ClientSession(read_stream, write_stream)
            await self._session.__aenter__()
            await self._session.initialize()

            result = await self._session.list_tools()
        except Exception as exc:
            await self._teardown()
            raise McpClientError(f"Failed to connect to MCP server: {exc}") from exc

        self._tools.clear()
        for tool in result.tools:
            if self._tool_filter and not self._tool_filter(tool.name):
                continue
            self._tools[tool.name] = ToolDefinition(
                name=tool.name,
                description=tool.description or "",
                parameters=tool.inputSchema if tool.inputSchema else {},
            )

        self._connected = True
        logger.info(
            "Connected to MCP server at %s, discovered %d tools",
            self._config.url,
            len(self._tools),
        )

    def tool_definitions(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def handles(self, name: str) -> bool:
        return name in self._tools

    async def handle_tool_call(self, name: str, arguments_json: str) -> McpResult:
        if not self._connected:
            try:
                await self.connect()
            except McpClientError as exc:
                return McpFailure(f"MCP client not initialized: {exc}")

        if name not in self._tools:
            logger.warning("Unknown tool: %s", name)
            available = ", ".join(self._tools)
            return McpFailure(f"Unknown tool: {name}. Available tools: {available}")

        arguments = parse_arguments(name, arguments_json)
        if isinstance(arguments, McpFailure):
            return arguments

        try:
            result = await asyncio.wait_for(
                self._session.call_tool(name, arguments),
                timeout=self._config.call_timeout,
            )
        except TimeoutError:
            return McpFailure(f"Tool {name} timed out after {self._config.call_timeout:.0f}s")
        except (httpx.HTTPError, OSError) as exc:
            logger.warning("Transport error calling %s: %s", name, exc)
            return McpFailure(f"Network error: {exc}")
        except Exception as exc:
            logger.exception("Unexpected error calling %s", name)
            return McpFailure(f"Failed to execute tool: {exc}")

        texts = [c.text if hasattr(c, "text") else str(c) for c in result.content]
        if result.isError:
            message = texts[0] if texts else "Tool reported an error"
            logger.warning("Tool %s returned error: %s", name, message)
            return McpFailure(message)

        summary = "\n".join(t for t in texts if t)
        return McpSuccess(summary or "Tool executed successfully")

    async def _teardown(
        self,
        exc_type: type[BaseException] | None = None,
        exc_val: BaseException | None = None,
        exc_tb: TracebackType | None = None,
    ) -> None:
        self._connected = False
        session, self._session = self._session, None
        context, self._context = self._context, None
        if session is not None:
            try:
                await session.__aexit__(exc_type, exc_val, exc_tb)
            except Exception:
                logger.exception("Error closing MCP session")
        if context is not None:
            try:
                await context.__aexit__(exc_type, exc_val, exc_tb)
            except Exception:
                logger.exception("Error closing MCP transport")

    async def close(self) -> None:
        await self._teardown()

    async def __aenter__(self) -> RemoteMcpClient:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self._teardown(exc_type, exc_val, exc_tb)
