"""Result types for tool execution and GitHub calls."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class McpSuccess:
    """The tool ran; ``summary`` is the human-readable outcome."""

    summary: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class McpFailure:
    """The tool did not run to completion."""

    message: str

    @property
    def ok(self) -> bool:
        return False


McpResult = McpSuccess | McpFailure


@dataclass(frozen=True)
class GitHubSuccess[T]:
    data: T


@dataclass(frozen=True)
class GitHubError:
    """An HTTP-level failure from the GitHub API."""

    code: int
    message: str


type GitHubApiResult[T] = GitHubSuccess[T] | GitHubError
