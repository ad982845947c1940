"""GitHub REST implementation of :class:`GitHubApiClient` over httpx."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Any
from urllib.parse import quote

import httpx

from codeoba.mcp.github import (
    GITHUB_API_VERSION,
    BranchInfo,
    FileInfo,
    GitHubApiClient,
    GitHubConfig,
    PullRequestInfo,
    RepositoryInfo,
    parse_github_url,
)
from codeoba.mcp.results import GitHubApiResult, GitHubError, GitHubSuccess

logger = logging.getLogger("codeoba.mcp.github")


def _encode(content: str) -> str:
    return base64.b64encode(content.encode()).decode("ascii")


def _decode(content: str) -> str:
    # The contents API wraps base64 at 60 columns
    return base64.b64decode(content.replace("\n", "")).decode()


class HttpGitHubApiClient(GitHubApiClient):
    """Talk to the GitHub REST API with a bearer token.

    Non-2xx responses become ``GitHubError(status, body)``. Malformed
    response bodies become ``GitHubError(500, ...)``. Network errors from
    httpx propagate so :func:`~codeoba.mcp.retry.execute_with_retry` can
    retry them.

    Example:
        github = HttpGitHubApiClient(GitHubConfig(token="ghp_..."))
        result = await github.open_repository("https://github.com/octo/hello")
    """

    def __init__(self, config: GitHubConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client: httpx.AsyncClient = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout, connect=config.connect_timeout),
        )

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.token.get_secret_value()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        resp = await self._client.request(
            method, path, json=json, params=params, headers=self._headers()
        )
        logger.debug("GitHub %s %s -> %d", method, path, resp.status_code)
        return resp

    @staticmethod
    def _error(resp: httpx.Response) -> GitHubError:
        return GitHubError(resp.status_code, resp.text)

    @staticmethod
    def _contents_path(owner: str, repo: str, path: str) -> str:
        return f"/repos/{owner}/{repo}/contents/{quote(path.lstrip('/'))}"

    async def open_repository(
        self, repo_url: str, branch: str | None = None
    ) -> GitHubApiResult[RepositoryInfo]:
        parsed = parse_github_url(repo_url)
        if parsed is None:
            return GitHubError(400, f"Invalid GitHub URL: {repo_url}")
        owner, repo = parsed

        resp = await self._request("GET", f"/repos/{owner}/{repo}")
        if not resp.is_success:
            return self._error(resp)
        try:
            data = resp.json()
            info = RepositoryInfo(
                owner=data["owner"]["login"],
                repo=data["name"],
                default_branch=branch or data["default_branch"],
                clone_url=data.get("clone_url", ""),
            )
        except (ValueError, KeyError, TypeError) as exc:
            return GitHubError(500, f"Failed to open repository: {exc}")
        return GitHubSuccess(info)

    async def _put_contents(
        self,
        verb: str,
        owner: str,
        repo: str,
        path: str,
        body: dict[str, Any],
    ) -> GitHubApiResult[FileInfo]:
        resp = await self._request("PUT", self._contents_path(owner, repo, path), json=body)
        if not resp.is_success:
            return self._error(resp)
        try:
            content = resp.json()["content"]
            info = FileInfo(path=content["path"], sha=content["sha"])
        except (ValueError, KeyError, TypeError) as exc:
            return GitHubError(500, f"Failed to {verb} file: {exc}")
        return GitHubSuccess(info)

    async def create_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
    ) -> GitHubApiResult[FileInfo]:
        body = {"message": message, "content": _encode(content), "branch": branch}
        return await self._put_contents("create", owner, repo, path, body)

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
        body = {"message": message, "content": _encode(content), "sha": sha, "branch": branch}
        return await self._put_contents("update", owner, repo, path, body)

    async def get_file(
        self, owner: str, repo: str, path: str, branch: str
    ) -> GitHubApiResult[FileInfo]:
        resp = await self._request(
            "GET", self._contents_path(owner, repo, path), params={"ref": branch}
        )
        if not resp.is_success:
            return self._error(resp)
        try:
            data = resp.json()
            raw = data.get("content")
            info = FileInfo(
                path=data["path"],
                sha=data["sha"],
                content=_decode(raw) if raw is not None else None,
            )
        except (ValueError, KeyError, TypeError, binascii.Error) as exc:
            return GitHubError(500, f"Failed to get file: {exc}")
        return GitHubSuccess(info)

    async def create_branch(
        self, owner: str, repo: str, branch_name: str, from_ref: str
    ) -> GitHubApiResult[BranchInfo]:
        ref_resp = await self._request("GET", f"/repos/{owner}/{repo}/git/ref/heads/{from_ref}")
        if not ref_resp.is_success:
            return GitHubError(ref_resp.status_code, "Source branch not found")
        try:
            source_sha = ref_resp.json()["object"]["sha"]
        except (ValueError, KeyError, TypeError) as exc:
            return GitHubError(500, f"Failed to create branch: {exc}")

        resp = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            json={"ref": f"refs/heads/{branch_name}", "sha": source_sha},
        )
        if not resp.is_success:
            return self._error(resp)
        try:
            sha = resp.json()["object"]["sha"]
        except (ValueError, KeyError, TypeError) as exc:
            return GitHubError(500, f"Failed to create branch: {exc}")
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
        resp = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={"title": title, "body": body, "head": head, "base": base},
        )
        if not resp.is_success:
            return self._error(resp)
        try:
            data = resp.json()
            info = PullRequestInfo(
                number=data["number"], title=data["title"], html_url=data["html_url"]
            )
        except (ValueError, KeyError, TypeError) as exc:
            return GitHubError(500, f"Failed to create pull request: {exc}")
        return GitHubSuccess(info)

    async def close(self) -> None:
        await self._client.aclose()
