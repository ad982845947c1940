"""Tool argument models and the JSON schemas declared to the model."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _ToolParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class OpenRepoParams(_ToolParams):
    repo_url: str = Field(alias="repoUrl")
    branch: str | None = None


class CreateFileParams(_ToolParams):
    path: str
    content: str
    message: str | None = None


class EditFileParams(_ToolParams):
    path: str
    content: str
    message: str | None = None


class CreateBranchParams(_ToolParams):
    branch_name: str = Field(alias="branchName")
    from_branch: str | None = Field(default=None, alias="fromBranch")


class CreatePullRequestParams(_ToolParams):
    title: str
    body: str
    head_branch: str = Field(alias="headBranch")
    base_branch: str = Field(default="main", alias="baseBranch")


class ToolDefinition(BaseModel):
    """A tool as declared to the model: name, description and JSON Schema."""

    name: str
    description: str
    parameters: dict[str, Any] = Field(default_factory=dict)

    def to_realtime(self) -> dict[str, Any]:
        """Shape used in the ``tools`` list of ``session.update``."""
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


def _string(description: str) -> dict[str, str]:
    return {"type": "string", "description": description}


def _object(properties: dict[str, Any], required: list[str]) -> dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required}


OPEN_REPO_SCHEMA = _object(
    {
        "repoUrl": _string("GitHub repository URL (e.g., https://github.com/owner/repo)"),
        "branch": _string("Optional branch to checkout (defaults to the repository default)"),
    },
    ["repoUrl"],
)

CREATE_FILE_SCHEMA = _object(
    {
        "path": _string("File path relative to repository root"),
        "content": _string("File content"),
        "message": _string("Optional commit message"),
    },
    ["path", "content"],
)

EDIT_FILE_SCHEMA = _object(
    {
        "path": _string("File path relative to repository root"),
        "content": _string("New file content"),
        "message": _string("Optional commit message"),
    },
    ["path", "content"],
)

CREATE_BRANCH_SCHEMA = _object(
    {
        "branchName": _string("Name of the new branch"),
        "fromBranch": _string("Optional source branch (defaults to current branch)"),
    },
    ["branchName"],
)

CREATE_PR_SCHEMA = _object(
    {
        "title": _string("Pull request title"),
        "body": _string("Pull request description"),
        "headBranch": _string("Source branch for the pull request"),
        "baseBranch": _string("Target branch (defaults to main)"),
    },
    ["title", "body", "headBranch"],
)
