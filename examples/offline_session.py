"""Offline walkthrough of a voice coding session.

Drives CodeobaApp with the in-package mocks: a scripted realtime transport
and an in-memory GitHub. The model "asks" to open a repository and create a
file; the example approves the write and prints the event log.

Run with:
    uv run python examples/offline_session.py
"""

from __future__ import annotations

import asyncio
import logging

from codeoba import CodeobaApp, LocalMcpClient, MockCompanionProxy, RealtimeConfig
from codeoba.core.broadcast import Subscription
from codeoba.mcp.approval import ApprovalRequest
from codeoba.mcp.mock import MockGitHubApiClient
from codeoba.realtime.client import TransportRealtimeClient
from codeoba.realtime.mock import MockRealtimeTransport, MockSignaling

logging.basicConfig(level=logging.INFO, format="%(name)s  %(message)s")


async def auto_approve(mcp: LocalMcpClient, requests: Subscription[ApprovalRequest]) -> None:
    async for request in requests:
        print(f"approving {request.tool_name}")
        await mcp.approvals.respond_to_approval(request.request_id, True)


async def main() -> None:
    transport = MockRealtimeTransport()
    realtime = TransportRealtimeClient(transport, signaling=MockSignaling())
    github = MockGitHubApiClient()
    mcp = LocalMcpClient(github)
    companion = MockCompanionProxy()
    app = CodeobaApp(realtime, mcp, companion)

    approver = asyncio.create_task(auto_approve(mcp, mcp.approvals.requests.subscribe()))
    async with app:
        await app.connect(RealtimeConfig(api_key="sk-offline"))

        await transport.simulate_message({"type": "session.created", "session": {}})
        await transport.simulate_message(
            {
                "type": "response.function_call_arguments.done",
                "name": "open_repo",
                "call_id": "call_1",
                "arguments": '{"repoUrl": "https://github.com/octocat/hello-world"}',
            }
        )
        await asyncio.sleep(0.1)
        await transport.simulate_message(
            {
                "type": "response.function_call_arguments.done",
                "name": "create_file",
                "call_id": "call_2",
                "arguments": (
                    '{"path": "NOTES.md", "content": "# Notes", "message": "Add notes"}'
                ),
            }
        )
        await asyncio.sleep(0.5)

        for entry in app.event_log:
            print(f"[{entry.kind}] {entry.tool_name or ''} {entry.message}")
        print("companion:", companion.commands)
        print("sent to model:", [e["type"] for e in transport.sent_events])

    approver.cancel()


if __name__ == "__main__":
    asyncio.run(main())
