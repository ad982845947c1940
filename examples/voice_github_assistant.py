"""Voice GitHub assistant over the OpenAI Realtime API.

Connects a realtime session over WebSocket, exposes the five GitHub tools
(open_repo, create_file, edit_file, create_branch, create_pr) and
approves write operations from the terminal.

Requires:
    pip install codeoba[websocket]

Environment variables:
    OPENAI_API_KEY  OpenAI API key
    GITHUB_TOKEN    GitHub token with repo scope

Run with:
    uv run python examples/voice_github_assistant.py
"""

from __future__ import annotations

import asyncio
import logging
import os

from codeoba import (
    CodeobaApp,
    GitHubConfig,
    HttpGitHubApiClient,
    LocalMcpClient,
    RealtimeConfig,
    TransportRealtimeClient,
    WebSocketTransport,
)
from codeoba.core.broadcast import Subscription
from codeoba.mcp.approval import ApprovalRequest

logging.basicConfig(level=logging.INFO, format="%(name)s  %(message)s")
logger = logging.getLogger("codeoba.example")


async def approve_from_terminal(
    mcp: LocalMcpClient, requests: Subscription[ApprovalRequest]
) -> None:
    """Ask on stdin before each write operation runs."""
    async for request in requests:
        prompt = f"Allow {request.tool_name} {request.arguments}? [y/N] "
        answer = await asyncio.to_thread(input, prompt)
        approved = answer.strip().lower() in ("y", "yes")
        await mcp.approvals.respond_to_approval(request.request_id, approved)


async def main() -> None:
    api_key = os.environ.get("OPENAI_API_KEY", "")
    github_token = os.environ.get("GITHUB_TOKEN", "")
    if not api_key or not github_token:
        print("Set OPENAI_API_KEY and GITHUB_TOKEN to run this example.")
        return

    github = HttpGitHubApiClient(GitHubConfig(token=github_token))
    mcp = LocalMcpClient(github, approval_timeout=60.0)
    realtime = TransportRealtimeClient(WebSocketTransport())
    app = CodeobaApp(realtime, mcp)

    log = app.log_updates.subscribe()
    requests = mcp.approvals.requests.subscribe()
    approver = asyncio.create_task(approve_from_terminal(mcp, requests))

    async with app:
        await app.connect(RealtimeConfig(api_key=api_key))
        if not app.connection_state.is_connected:
            logger.error("Could not connect: %s", app.connection_state)
            approver.cancel()
            return

        await app.send_text_message(
            "Open https://github.com/octocat/Hello-World and tell me its default branch."
        )
        try:
            async with asyncio.timeout(60):
                async for entry in log:
                    print(f"[{entry.kind}] {entry.tool_name or ''} {entry.message}")
        except TimeoutError:
            logger.info("Demo time limit reached")
        finally:
            approver.cancel()


if __name__ == "__main__":
    asyncio.run(main())
