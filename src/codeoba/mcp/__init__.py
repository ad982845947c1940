"""MCP tool pipeline: registry, GitHub handlers, approval and retry."""

from codeoba.mcp.approval import (
    AUTO_APPROVED,
    ApprovalManager,
    ApprovalPolicy,
    ApprovalRequest,
    ApprovalResult,
    ApprovalState,
    Approved,
    Denied,
    TimedOut,
    requires_approval,
)
from codeoba.mcp.client import LocalMcpClient, McpClient
from codeoba.mcp.compose import CompositeMcpClient
from codeoba.mcp.github import (
    BranchInfo,
    FileInfo,
    GitHubApiClient,
    GitHubConfig,
    PullRequestInfo,
    RepositoryInfo,
    parse_github_url,
)
from codeoba.mcp.github_http import HttpGitHubApiClient
from codeoba.mcp.handlers import (
    CreateBranchToolHandler,
    CreateFileToolHandler,
    CreatePullRequestToolHandler,
    EditFileToolHandler,
    GitHubToolHandler,
    OpenRepoToolHandler,
    create_default_registry,
)
from codeoba.mcp.registry import McpToolContext, McpToolHandler, McpToolRegistry
from codeoba.mcp.remote import McpServerConfig, RemoteMcpClient
from codeoba.mcp.results import (
    GitHubApiResult,
    GitHubError,
    GitHubSuccess,
    McpFailure,
    McpResult,
    McpSuccess,
)
from codeoba.mcp.retry import RetryPolicy, execute_with_retry
from codeoba.mcp.schemas import ToolDefinition

__all__ = [
    "AUTO_APPROVED",
    "ApprovalManager",
    "ApprovalPolicy",
    "ApprovalRequest",
    "ApprovalResult",
    "ApprovalState",
    "Approved",
    "BranchInfo",
    "CompositeMcpClient",
    "CreateBranchToolHandler",
    "CreateFileToolHandler",
    "CreatePullRequestToolHandler",
    "Denied",
    "EditFileToolHandler",
    "FileInfo",
    "GitHubApiClient",
    "GitHubApiResult",
    "GitHubConfig",
    "GitHubError",
    "GitHubSuccess",
    "GitHubToolHandler",
    "HttpGitHubApiClient",
    "LocalMcpClient",
    "McpClient",
    "McpFailure",
    "McpResult",
    "McpServerConfig",
    "McpSuccess",
    "McpToolContext",
    "McpToolHandler",
    "McpToolRegistry",
    "OpenRepoToolHandler",
    "PullRequestInfo",
    "RemoteMcpClient",
    "RepositoryInfo",
    "RetryPolicy",
    "TimedOut",
    "ToolDefinition",
    "create_default_registry",
    "execute_with_retry",
    "parse_github_url",
    "requires_approval",
]
