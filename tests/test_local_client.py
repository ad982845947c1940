"""Tests for the in-process, approval-gated MCP client."""

from __future__ import annotations

import asyncio
import json

from codeoba.mcp.approval import ApprovalManager, ApprovalPolicy
from codeoba.mcp.client import LocalMcpClient, parse_arguments
from codeoba.mcp.mock import MockGitHubApiClient
from codeoba.mcp.registry import NO_REPOSITORY
from codeoba.mcp.results import McpFailure, McpSuccess
from codeoba.mcp.retry import RetryPolicy


def _local(
    github: MockGitHubApiClient,
    retry: RetryPolicy,
    **kwargs: object,
) -> LocalMcpClient:
    counter = iter(range(1, 1000))
    approvals = ApprovalManager(id_factory=lambda: f"apr-{next(counter)}", poll_interval=0.001)
    return LocalMcpClient(
        github,
        approvals=approvals,
        retry_policy=retry,
        **kwargs,  # type: ignore[arg-type]
    )


def _args(**kwargs: str) -> str:
    return json.dumps(kwargs)


async def _respond_to_next(client: LocalMcpClient, approve: bool, reason: str | None = None) -> None:
    with client.approvals.requests.subscribe() as requests:
        request = await requests.get(timeout=1.0)
        await client.approvals.respond_to_approval(request.request_id, approve, reason)


class TestParseArguments:
    def test_object(self) -> None:
        assert parse_arguments("t", '{"a": 1}') == {"a": 1}

    def test_blank_is_empty(self) -> None:
        assert parse_arguments("t", "  ") == {}

    def test_invalid_json(self) -> None:
        result = parse_arguments("create_file", "{oops")
        assert isinstance(result, McpFailure)
        assert result.message.startswith("Failed to parse create_file parameters")

    def test_non_object(self) -> None:
        assert parse_arguments("t", "[1, 2]") == McpFailure(
            "Expected JSON object for tool arguments, got: [1, 2]"
        )

    def test_long_preview_is_truncated(self) -> None:
        raw = json.dumps(["x" * 200])
        result = parse_arguments("t", raw)
        assert isinstance(result, McpFailure)
        assert result.message.endswith("...")


class TestContext:
    async def test_open_repo_runs_without_approval(
        self, github: MockGitHubApiClient, fast_retry: RetryPolicy
    ) -> None:
        client = _local(github, fast_retry)
        with client.approvals.requests.subscribe() as requests:
            result = await client.handle_tool_call(
                "open_repo", _args(repoUrl="https://github.com/octo/hello")
            )
            assert len(requests) == 0

        assert result == McpSuccess("Repository opened: octo/hello (branch: main)")
        assert client.current_owner == "octo"
        assert client.current_repo == "hello"
        assert client.current_branch == "main"
        assert client.approvals.pending_count == 0

    async def test_initial_context(self, github: MockGitHubApiClient) -> None:
        client = LocalMcpClient(github)
        assert client.current_owner is None
        assert client.current_repo is None
        assert client.current_branch == "main"

    async def test_tool_catalog(self, github: MockGitHubApiClient) -> None:
        client = LocalMcpClient(github)
        await client.connect()
        names = [d.name for d in client.tool_definitions()]
        assert names == ["open_repo", "create_file", "edit_file", "create_branch", "create_pr"]
        assert client.handles("create_pr")
        assert not client.handles("delete_repo")
        assert client.realtime_tools()[0]["type"] == "function"


class TestGating:
    async def test_unknown_tool_never_asks(
        self, github: MockGitHubApiClient, fast_retry: RetryPolicy
    ) -> None:
        client = _local(github, fast_retry)
        result = await client.handle_tool_call("delete_repo", "{}")
        assert result == McpFailure("Unknown tool: delete_repo")
        assert client.approvals.pending_count == 0

    async def test_bad_arguments_never_ask(
        self, github: MockGitHubApiClient, fast_retry: RetryPolicy
    ) -> None:
        client = _local(github, fast_retry)
        result = await client.handle_tool_call("create_file", '"just a string"')
        assert isinstance(result, McpFailure)
        assert result.message.startswith("Expected JSON object")
        assert client.approvals.pending_count == 0

    async def test_no_repository_fails_before_approval(
        self, github: MockGitHubApiClient, fast_retry: RetryPolicy
    ) -> None:
        client = _local(github, fast_retry, approval_timeout=5.0)
        with client.approvals.requests.subscribe() as requests:
            result = await asyncio.wait_for(
                client.handle_tool_call("create_file", _args(path="a.txt", content="hi")),
                timeout=1.0,
            )
            assert len(requests) == 0

        assert result == McpFailure(NO_REPOSITORY)
        assert github.calls == []
        assert client.approvals.pending_count == 0

    async def test_missing_field_fails_before_approval(
        self, github: MockGitHubApiClient, fast_retry: RetryPolicy
    ) -> None:
        client = _local(github, fast_retry, approval_timeout=5.0)
        await client.handle_tool_call("open_repo", _args(repoUrl="https://github.com/o/r"))

        with client.approvals.requests.subscribe() as requests:
            result = await client.handle_tool_call(
                "create_pr", _args(title="Fix", body="b", headBranch=" ")
            )
            assert len(requests) == 0

        assert result == McpFailure("Head branch is required")
        assert github.call_count("create_pull_request") == 0

    async def test_approved_call_runs(
        self, github: MockGitHubApiClient, fast_retry: RetryPolicy
    ) -> None:
        client = _local(github, fast_retry)
        await client.handle_tool_call("open_repo", _args(repoUrl="https://github.com/o/r"))

        responder = asyncio.create_task(_respond_to_next(client, approve=True))
        await asyncio.sleep(0)
        result = await client.handle_tool_call("create_file", _args(path="a.md", content="x"))
        await responder

        assert isinstance(result, McpSuccess)
        assert github.call_count("create_file") == 1

    async def test_denied_call_never_runs(
        self, github: MockGitHubApiClient, fast_retry: RetryPolicy
    ) -> None:
        client = _local(github, fast_retry)
        await client.handle_tool_call("open_repo", _args(repoUrl="https://github.com/o/r"))

        responder = asyncio.create_task(_respond_to_next(client, False, "not now"))
        await asyncio.sleep(0)
        result = await client.handle_tool_call("create_file", _args(path="a.md", content="x"))
        await responder

        assert result == McpFailure("Approval denied for create_file: not now")
        assert github.call_count("create_file") == 0

    async def test_denied_without_reason(
        self, github: MockGitHubApiClient, fast_retry: RetryPolicy
    ) -> None:
        client = _local(github, fast_retry)
        await client.handle_tool_call("open_repo", _args(repoUrl="https://github.com/o/r"))
        responder = asyncio.create_task(_respond_to_next(client, approve=False))
        await asyncio.sleep(0)
        result = await client.handle_tool_call("create_branch", _args(branchName="b"))
        await responder
        assert result == McpFailure("Approval denied for create_branch: Denied by user")

    async def test_timeout_never_runs(
        self, github: MockGitHubApiClient, fast_retry: RetryPolicy
    ) -> None:
        client = _local(github, fast_retry, approval_timeout=0.01)
        await client.handle_tool_call("open_repo", _args(repoUrl="https://github.com/o/r"))

        result = await client.handle_tool_call("create_file", _args(path="a.md", content="x"))

        assert result == McpFailure("Approval timed out for create_file")
        assert github.call_count("create_file") == 0
        assert client.approvals.pending_count == 0

    async def test_custom_policy(
        self, github: MockGitHubApiClient, fast_retry: RetryPolicy
    ) -> None:
        client = _local(
            github,
            fast_retry,
            policy=ApprovalPolicy(read_only_tools=frozenset({"open_repo", "create_branch"})),
        )
        await client.handle_tool_call("open_repo", _args(repoUrl="https://github.com/o/r"))

        result = await client.handle_tool_call("create_branch", _args(branchName="feature"))

        assert result == McpSuccess("Branch created: feature (from main)")


class TestLifecycle:
    async def test_close_closes_github_client(self, github: MockGitHubApiClient) -> None:
        client = LocalMcpClient(github)
        await client.close()
        assert github.closed
