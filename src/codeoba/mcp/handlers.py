"""GitHub repository tools: open, create/edit file, branch and pull request."""

from __future__ import annotations

import logging
from abc import abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ValidationError

from codeoba.mcp.github import BranchInfo, FileInfo, PullRequestInfo, RepositoryInfo
from codeoba.mcp.registry import NO_REPOSITORY, McpToolContext, McpToolHandler, McpToolRegistry
from codeoba.mcp.results import (
    GitHubApiResult,
    GitHubError,
    GitHubSuccess,
    McpFailure,
    McpResult,
    McpSuccess,
)
from codeoba.mcp.retry import execute_with_retry
from codeoba.mcp.schemas import (
    CREATE_BRANCH_SCHEMA,
    CREATE_FILE_SCHEMA,
    CREATE_PR_SCHEMA,
    EDIT_FILE_SCHEMA,
    OPEN_REPO_SCHEMA,
    CreateBranchParams,
    CreateFileParams,
    CreatePullRequestParams,
    EditFileParams,
    OpenRepoParams,
)

logger = logging.getLogger("codeoba.mcp.handlers")


def _parse[P: BaseModel](model: type[P], tool: str, args: dict[str, Any]) -> P | McpFailure:
    try:
        return model.model_validate(args)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
            for err in exc.errors()
        )
        return McpFailure(f"Failed to parse {tool} parameters: {errors}")


async def _call[T](
    context: McpToolContext,
    operation: Callable[[], Awaitable[GitHubApiResult[T]]],
) -> GitHubApiResult[T]:
    return await execute_with_retry(operation, context.retry_policy)


def _blank(value: str | None) -> bool:
    return value is None or not value.strip()


class GitHubToolHandler[P: BaseModel](McpToolHandler):
    """Handler with typed parameters and a side-effect-free precheck.

    :meth:`prepare` parses the arguments, checks required fields and, unless
    ``needs_repository`` is off, that a repository is open. ``validate`` and
    ``execute`` both go through it, so a call rejected before approval is
    rejected the same way if it reaches ``execute`` directly.
    """

    params_model: type[P]
    needs_repository: bool = True

    def check_fields(self, params: P) -> McpFailure | None:
        return None

    def prepare(self, args: dict[str, Any], context: McpToolContext) -> P | McpFailure:
        params = _parse(self.params_model, self.name, args)
        if isinstance(params, McpFailure):
            return params
        if (failure := self.check_fields(params)) is not None:
            return failure
        if self.needs_repository and not context.has_repository:
            return McpFailure(NO_REPOSITORY)
        return params

    def validate(self, args: dict[str, Any], context: McpToolContext) -> McpFailure | None:
        prepared = self.prepare(args, context)
        return prepared if isinstance(prepared, McpFailure) else None

    async def execute(self, args: dict[str, Any], context: McpToolContext) -> McpResult:
        params = self.prepare(args, context)
        if isinstance(params, McpFailure):
            return params
        return await self.run(params, context)

    @abstractmethod
    async def run(self, params: P, context: McpToolContext) -> McpResult: ...


class OpenRepoToolHandler(GitHubToolHandler[OpenRepoParams]):
    """Resolve a repository and make it the session's current one."""

    params_model = OpenRepoParams
    requires_approval = False
    needs_repository = False

    @property
    def name(self) -> str:
        return "open_repo"

    @property
    def description(self) -> str:
        return "Open or clone a GitHub repository"

    @property
    def input_schema(self) -> dict[str, Any]:
        return OPEN_REPO_SCHEMA

    def check_fields(self, params: OpenRepoParams) -> McpFailure | None:
        if _blank(params.repo_url):
            return McpFailure("Repository URL is required")
        return None

    async def run(self, params: OpenRepoParams, context: McpToolContext) -> McpResult:
        try:
            result: GitHubApiResult[RepositoryInfo] = await _call(
                context,
                lambda: context.github_client.open_repository(params.repo_url, params.branch),
            )
        except Exception as exc:
            return McpFailure(f"Failed to open repository: {exc}")

        match result:
            case GitHubSuccess(data=info):
                context.update_context(info.owner, info.repo, info.default_branch)
                return McpSuccess(
                    f"Repository opened: {info.owner}/{info.repo} (branch: {info.default_branch})"
                )
            case GitHubError(message=message):
                return McpFailure(f"Failed to open repository: {message}")


class CreateFileToolHandler(GitHubToolHandler[CreateFileParams]):
    params_model = CreateFileParams

    @property
    def name(self) -> str:
        return "create_file"

    @property
    def description(self) -> str:
        return "Create a new file in the repository"

    @property
    def input_schema(self) -> dict[str, Any]:
        return CREATE_FILE_SCHEMA

    def check_fields(self, params: CreateFileParams) -> McpFailure | None:
        if _blank(params.path):
            return McpFailure("File path is required")
        if _blank(params.content):
            return McpFailure("File content is required")
        return None

    async def run(self, params: CreateFileParams, context: McpToolContext) -> McpResult:
        owner, repo = context.current_owner or "", context.current_repo or ""
        message = params.message or f"Create {params.path}"

        try:
            result: GitHubApiResult[FileInfo] = await _call(
                context,
                lambda: context.github_client.create_file(
                    owner, repo, params.path, params.content, message, context.current_branch
                ),
            )
        except Exception as exc:
            return McpFailure(f"Failed to create file: {exc}")

        match result:
            case GitHubSuccess(data=info):
                return McpSuccess(f"File created: {params.path} (SHA: {info.sha})")
            case GitHubError(message=error):
                return McpFailure(f"Failed to create file: {error}")


class EditFileToolHandler(GitHubToolHandler[EditFileParams]):
    """Replace a file's content.

    The current file is read first: the contents API needs its blob SHA to
    accept the update, and a missing file stops here without writing.
    """

    params_model = EditFileParams

    @property
    def name(self) -> str:
        return "edit_file"

    @property
    def description(self) -> str:
        return "Edit an existing file in the repository"

    @property
    def input_schema(self) -> dict[str, Any]:
        return EDIT_FILE_SCHEMA

    def check_fields(self, params: EditFileParams) -> McpFailure | None:
        if _blank(params.path):
            return McpFailure("File path is required")
        if _blank(params.content):
            return McpFailure("File content is required")
        return None

    async def run(self, params: EditFileParams, context: McpToolContext) -> McpResult:
        owner, repo = context.current_owner or "", context.current_repo or ""
        branch = context.current_branch
        message = params.message or f"Update {params.path}"

        try:
            current: GitHubApiResult[FileInfo] = await _call(
                context,
                lambda: context.github_client.get_file(owner, repo, params.path, branch),
            )
            if isinstance(current, GitHubError):
                logger.info("edit_file: %s not readable (%d)", params.path, current.code)
                return McpFailure(f"File not found: {params.path}")

            sha = current.data.sha
            result: GitHubApiResult[FileInfo] = await _call(
                context,
                lambda: context.github_client.update_file(
                    owner, repo, params.path, params.content, message, branch, sha
                ),
            )
        except Exception as exc:
            return McpFailure(f"Failed to update file: {exc}")

        match result:
            case GitHubSuccess(data=info):
                return McpSuccess(f"File updated: {params.path} (SHA: {info.sha})")
            case GitHubError(message=error):
                return McpFailure(f"Failed to update file: {error}")


class CreateBranchToolHandler(GitHubToolHandler[CreateBranchParams]):
    params_model = CreateBranchParams

    @property
    def name(self) -> str:
        return "create_branch"

    @property
    def description(self) -> str:
        return "Create a new branch in the repository"

    @property
    def input_schema(self) -> dict[str, Any]:
        return CREATE_BRANCH_SCHEMA

    def check_fields(self, params: CreateBranchParams) -> McpFailure | None:
        if _blank(params.branch_name):
            return McpFailure("Branch name is required")
        return None

    async def run(self, params: CreateBranchParams, context: McpToolContext) -> McpResult:
        owner, repo = context.current_owner or "", context.current_repo or ""
        from_branch = params.from_branch or context.current_branch

        try:
            result: GitHubApiResult[BranchInfo] = await _call(
                context,
                lambda: context.github_client.create_branch(
                    owner, repo, params.branch_name, from_branch
                ),
            )
        except Exception as exc:
            return McpFailure(f"Failed to create branch: {exc}")

        match result:
            case GitHubSuccess(data=info):
                return McpSuccess(f"Branch created: {info.name} (from {from_branch})")
            case GitHubError(message=error):
                return McpFailure(f"Failed to create branch: {error}")


class CreatePullRequestToolHandler(GitHubToolHandler[CreatePullRequestParams]):
    params_model = CreatePullRequestParams

    @property
    def name(self) -> str:
        return "create_pr"

    @property
    def description(self) -> str:
        return "Create a pull request"

    @property
    def input_schema(self) -> dict[str, Any]:
        return CREATE_PR_SCHEMA

    def check_fields(self, params: CreatePullRequestParams) -> McpFailure | None:
        if _blank(params.title):
            return McpFailure("Pull request title is required")
        if _blank(params.head_branch):
            return McpFailure("Head branch is required")
        return None

    async def run(self, params: CreatePullRequestParams, context: McpToolContext) -> McpResult:
        owner, repo = context.current_owner or "", context.current_repo or ""

        try:
            result: GitHubApiResult[PullRequestInfo] = await _call(
                context,
                lambda: context.github_client.create_pull_request(
                    owner, repo, params.title, params.body, params.head_branch, params.base_branch
                ),
            )
        except Exception as exc:
            return McpFailure(f"Failed to create pull request: {exc}")

        match result:
            case GitHubSuccess(data=info):
                return McpSuccess(
                    f"Pull request created: #{info.number} - {info.title}\nURL: {info.html_url}"
                )
            case GitHubError(message=error):
                return McpFailure(f"Failed to create pull request: {error}")


def create_default_registry() -> McpToolRegistry:
    """Registry with the five GitHub tools."""
    registry = McpToolRegistry()
    for handler in (
        OpenRepoToolHandler(),
        CreateFileToolHandler(),
        EditFileToolHandler(),
        CreateBranchToolHandler(),
        CreatePullRequestToolHandler(),
    ):
        registry.register(handler)
    return registry
