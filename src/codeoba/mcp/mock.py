"""Mock GitHub API client for testing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from codeoba.mcp.github import (
    BranchInfo,
    FileInfo,
    GitHubApiClient,
    PullRequestInfo,
    RepositoryInfo,
    parse_github_url,
)
from codeoba.mcp.results import GitHubApiResult, GitHubError, GitHubSuccess


@dataclass
class MockCall:
    """Record of a method call for test assertions."""

    method: str
    args: dict[str, Any] = field(default_factory=dict)


class MockGitHubApiClient(GitHubApiClient):
    """In-memory GitHub for handler tests.

    Files live in ``files`` keyed by ``(owner, repo, branch, path)``. Queue
    results in ``responses[method]`` to override what a method returns
    (a queued exception is raised instead).

    Example:
        github = MockGitHubApiClient()
        github.responses["create_file"].append(GitHubError(500, "boom"))
        ...
        assert github.call_count("create_file") == 1
    """

    def __init__(self, default_branch: str = "main") -> None:
        self.calls: list[MockCall] = []
        self.default_branch = default_branch
        self.files: dict[tuple[str, str, str, str], FileInfo] = {}
        self.branches: dict[tuple[str, str, str], str] = {}
        self.responses: dict[str, list[Any]] = {
            name: []
            for name in (
                "open_repository",
                "create_file",
                "update_file",
                "get_file",
                "create_branch",
                "create_pull_request",
            )
        }
        self._sha_counter = 0
        self._pr_counter = 0
        self.closed = False

    def call_count(self, method: str) -> int:
        return sum(1 for c in self.calls if c.method == method)

    def calls_to(self, method: str) -> list[MockCall]:
        return [c for c in self.calls if c.method == method]

    def _next_sha(self) -> str:
        self._sha_counter += 1
        return f"sha{self._sha_counter:04d}"

    def _queued(self, method: str) -> Any:
        queue = self.responses[method]
        if not queue:
            return None
        result = queue.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    async def open_repository(
        self, repo_url: str, branch: str | None = None
    ) -> GitHubApiResult[RepositoryInfo]:
        self.calls.append(MockCall("open_repository", {"repo_url": repo_url, "branch": branch}))
        if (queued := self._queued("open_repository")) is not None:
            return queued
        parsed = parse_github_url(repo_url)
        if parsed is None:
            return GitHubError(400, f"Invalid GitHub URL: {repo_url}")
        owner, repo = parsed
        return GitHubSuccess(
            RepositoryInfo(
                owner=owner,
                repo=repo,
                default_branch=branch or self.default_branch,
                clone_url=f"https://github.com/{owner}/{repo}.git",
            )
        )

    async def create_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
    ) -> GitHubApiResult[FileInfo]:
        self.calls.append(
            MockCall(
                "create_file",
                {
                    "owner": owner,
                    "repo": repo,
                    "path": path,
                    "content": content,
                    "message": message,
                    "branch": branch,
                },
            )
        )
        if (queued := self._queued("create_file")) is not None:
            return queued
        key = (owner, repo, branch, path)
        if key in self.files:
            return GitHubError(422, '"sha" wasn\'t supplied.')
        info = FileInfo(path=path, sha=self._next_sha(), content=content)
        self.files[key] = info
        return GitHubSuccess(FileInfo(path=path, sha=info.sha))

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
        self.calls.append(
            MockCall(
                "update_file",
                {
                    "owner": owner,
                    "repo": repo,
                    "path": path,
                    "content": content,
                    "message": message,
                    "branch": branch,
                    "sha": sha,
                },
            )
        )
        if (queued := self._queued("update_file")) is not None:
            return queued
        key = (owner, repo, branch, path)
        current = self.files.get(key)
        if current is None or current.sha != sha:
            return GitHubError(409, f"{path} does not match {sha}")
        info = FileInfo(path=path, sha=self._next_sha(), content=content)
        self.files[key] = info
        return GitHubSuccess(FileInfo(path=path, sha=info.sha))

    async def get_file(
        self, owner: str, repo: str, path: str, branch: str
    ) -> GitHubApiResult[FileInfo]:
        self.calls.append(
            MockCall("get_file", {"owner": owner, "repo": repo, "path": path, "branch": branch})
        )
        if (queued := self._queued("get_file")) is not None:
            return queued
        info = self.files.get((owner, repo, branch, path))
        if info is None:
            return GitHubError(404, "Not Found")
        return GitHubSuccess(info)

    async def create_branch(
        self, owner: str, repo: str, branch_name: str, from_ref: str
    ) -> GitHubApiResult[BranchInfo]:
        self.calls.append(
            MockCall(
                "create_branch",
                {"owner": owner, "repo": repo, "branch_name": branch_name, "from_ref": from_ref},
            )
        )
        if (queued := self._queued("create_branch")) is not None:
            return queued
        sha = self._next_sha()
        self.branches[(owner, repo, branch_name)] = sha
        return GitHubSuccess(BranchInfo(name=branch_name, sha=sha))

    async def create_pull_request(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str,
        head: str,
        base: str,
    ) -> GitHubApiResult[PullRequestInfo]:
        self.calls.append(
            MockCall(
                "create_pull_request",
                {
                    "owner": owner,
                    "repo": repo,
                    "title": title,
                    "body": body,
                    "head": head,
                    "base": base,
                },
            )
        )
        if (queued := self._queued("create_pull_request")) is not None:
            return queued
        self._pr_counter += 1
        number = self._pr_counter
        return GitHubSuccess(
            PullRequestInfo(
                number=number,
                title=title,
                html_url=f"https://github.com/{owner}/{repo}/pull/{number}",
            )
        )

    async def close(self) -> None:
        self.calls.append(MockCall("close"))
        self.closed = True

    def seed_file(
        self, owner: str, repo: str, path: str, content: str, branch: str = "main"
    ) -> FileInfo:
        """Put a file in place before a test runs."""
        info = FileInfo(path=path, sha=self._next_sha(), content=content)
        self.files[(owner, repo, branch, path)] = info
        return info
