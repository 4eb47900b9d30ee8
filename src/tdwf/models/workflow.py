"""Models returned by the workflow projects API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class WorkflowProject(BaseModel):
    id: str | None = None
    name: str | None = None
    revision: str | None = None
    archive_type: str | None = Field(default=None, alias="archiveType")
    archive_md5: str | None = Field(default=None, alias="archiveMd5")
    created_at: Any | None = Field(default=None, alias="createdAt")
    updated_at: Any | None = Field(default=None, alias="updatedAt")
    deleted_at: Any | None = Field(default=None, alias="deletedAt")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class WorkflowProjectList(BaseModel):
    projects: list[WorkflowProject] = Field(default_factory=list)


__all__ = ["WorkflowProject", "WorkflowProjectList"]
