"""GitHub API client contract used by the repository tools."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod

from pydantic import BaseModel, Field, SecretStr

from codeoba.mcp.results import GitHubApiResult

GITHUB_API_BASE = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"

_GITHUB_URL_RE = re.compile(r"github\.com[:/]([^/]+)/([^/.]+)(?:\.git)?")


def parse_github_url(url: str) -> tuple[str, str] | None:
    """Extract ``(owner, repo)`` from an HTTPS or SSH GitHub URL.

    >>> parse_github_url("https://github.com/octo/hello.git")
    ('octo', 'hello')
    >>> parse_github_url("git@github.com:octo/hello")
    ('octo', 'hello')
    """
    match = _GITHUB_URL_RE.search(url.strip())
    if match is None:
        return None
    return match.group(1), match.group(2)


class GitHubConfig(BaseModel):
    """Configuration for :class:`~codeoba.mcp.github_http.HttpGitHubApiClient`."""

    token: SecretStr
    base_url: str = GITHUB_API_BASE
    timeout: float = Field(default=30.0, gt=0.0)
    connect_timeout: float = Field(default=10.0, gt=0.0)


class RepositoryInfo(BaseModel):
    owner: str
    repo: str
    default_branch: str
    clone_url: str = ""


class FileInfo(BaseModel):
    path: str
    sha: str
    content: str | None = None


class BranchInfo(BaseModel):
    name: str
    sha: str


class PullRequestInfo(BaseModel):
    number: int
    title: str
    html_url: str


class GitHubApiClient(ABC):
    """Repository operations the tool handlers need.

    HTTP error responses come back as :class:`~codeoba.mcp.results.GitHubError`
    rather than raising. Network failures may raise so the retry policy can
    classify them.
    """

    @abstractmethod
    async def open_repository(
        self, repo_url: str, branch: str | None = None
    ) -> GitHubApiResult[RepositoryInfo]:
        """Resolve a repository URL. ``branch`` defaults to the repository's default branch."""
        ...

    @abstractmethod
    async def create_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
    ) -> GitHubApiResult[FileInfo]: ...

    @abstractmethod
    async def update_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
        sha: str,
    ) -> GitHubApiResult[FileInfo]:
        """Replace a file; ``sha`` is the blob being replaced."""
        ...

    @abstractmethod
    async def get_file(
        self, owner: str, repo: str, path: str, branch: str
    ) -> GitHubApiResult[FileInfo]:
        """Fetch a file with its decoded content."""
        ...

    @abstractmethod
    async def create_branch(
        self, owner: str, repo: str, branch_name: str, from_ref: str
    ) -> GitHubApiResult[BranchInfo]: ...

    @abstractmethod
    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str,
        head: str,
        base: str,
    ) -> GitHubApiResult[PullRequestInfo]: ...

    async def close(self) -> None:  # noqa: B027
        """Release resources. Override if the client holds connections."""
