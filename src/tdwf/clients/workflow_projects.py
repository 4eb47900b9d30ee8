"""Client for the Treasure Data workflow projects API.

Uploads run the project's pre-upload hooks and pack the directory with
:mod:`tdwf.archive` before the archive is sent; downloads are unpacked with the
same quotas and path checks.
"""

from __future__ import annotations

import hashlib
import logging
import os
from collections.abc import Callable
from pathlib import Path
from types import TracebackType
from typing import Any, cast

import httpx

from ..archive import DEFAULT_LIMITS, PackagingLimits, pack_directory, unpack_archive
from ..errors import ProjectNotFoundError, ValidationError
from ..hooks import run_pre_upload_hooks
from ..http_client import HttpClient
from ..models.workflow import WorkflowProject, WorkflowProjectList

logger = logging.getLogger(__name__)

WORKFLOW_REGIONAL_ENDPOINTS: dict[str, str] = {
    "us": "https://api-workflow.us01.treasuredata.com",
    "eu": "https://api-workflow.eu01.treasuredata.com",
    "tokyo": "https://api-workflow.treasuredata.co.jp",
    "ap02": "https://api-workflow.ap02.treasuredata.com",
}
DEFAULT_WORKFLOW_ENDPOINT = WORKFLOW_REGIONAL_ENDPOINTS["us"]

ARCHIVE_CONTENT_TYPE = "application/gzip"
_ARCHIVE_ACCEPT = "application/gzip, application/x-gzip, application/octet-stream, */*"


def archive_revision(archive: bytes) -> str:
    """Return the content-hash revision used when none is given."""

    return hashlib.md5(archive, usedforsecurity=False).hexdigest()


def _require(field: str, value: str) -> None:
    if not value:
        raise ValidationError(f"{field} cannot be empty")


class WorkflowProjectsClient:
    """Client focused on workflow project upload/download."""

    def __init__(
        self,
        api_key_getter: Callable[[], str],
        base_url: str = DEFAULT_WORKFLOW_ENDPOINT,
    ) -> None:
        self.http = HttpClient(base_url, api_key_getter=api_key_getter)

    def close(self) -> None:
        """Close the underlying HTTP client."""

        self.http.close()

    def __enter__(self) -> WorkflowProjectsClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    @staticmethod
    def _parse_response_dict(resp: httpx.Response) -> dict[str, Any]:
        if not resp.text:
            return {}
        try:
            data = resp.json()
        except ValueError:
            return {}
        return cast(dict[str, Any], data) if isinstance(data, dict) else {}

    # Queries ------------------------------------------------------------------
    def list_projects(self) -> list[WorkflowProject]:
        resp = self.http.get("api/projects")
        return WorkflowProjectList.model_validate(self._parse_response_dict(resp)).projects

    def get_project(self, project_id: str) -> WorkflowProject:
        _require("project_id", project_id)
        resp = self.http.get(f"api/projects/{project_id}")
        return WorkflowProject.model_validate(self._parse_response_dict(resp))

    def get_project_by_name(self, name: str) -> WorkflowProject:
        """Return the first project named ``name``."""

        _require("project name", name)
        resp = self.http.get("api/projects", params={"name": name})
        projects = WorkflowProjectList.model_validate(self._parse_response_dict(resp)).projects
        if not projects:
            raise ProjectNotFoundError(f"no project found with name: {name}")
        project = projects[0]
        if not project.id:
            raise ProjectNotFoundError(f"project found but ID is empty for project: {name}")
        return project

    # Upload -------------------------------------------------------------------
    def create_project(
        self, name: str, archive: bytes, *, revision: str | None = None
    ) -> WorkflowProject:
        """Upload ``archive`` as a new revision of project ``name``.

        When ``revision`` is omitted the MD5 of the archive is used, so pushing
        identical content twice yields the same revision.
        """

        _require("project name", name)
        resp = self.http.put(
            "api/projects",
            params={"project": name, "revision": revision or archive_revision(archive)},
            headers={"Content-Type": ARCHIVE_CONTENT_TYPE, "Accept": "application/json"},
            content=archive,
        )
        return WorkflowProject.model_validate(self._parse_response_dict(resp))

    def create_project_from_directory(
        self,
        name: str,
        directory: str | os.PathLike[str],
        *,
        revision: str | None = None,
        run_hooks: bool = True,
        limits: PackagingLimits = DEFAULT_LIMITS,
    ) -> WorkflowProject:
        """Run pre-upload hooks, pack ``directory`` and upload it."""

        _require("project name", name)
        if run_hooks:
            run_pre_upload_hooks(directory)
        archive = pack_directory(directory, limits=limits)
        logger.info("Uploading project '%s' (%d bytes)", name, len(archive))
        return self.create_project(name, archive, revision=revision)

    # Download -----------------------------------------------------------------
    def download_project(self, project_id: str, *, revision: str | None = None) -> bytes:
        _require("project_id", project_id)
        params = {"revision": revision} if revision else None
        resp = self.http.get(
            f"api/projects/{project_id}/archive",
            params=params,
            headers={"Accept": _ARCHIVE_ACCEPT},
        )
        return resp.content

    def download_project_to_directory(
        self,
        project_id: str,
        output_dir: str | os.PathLike[str],
        *,
        revision: str | None = None,
        limits: PackagingLimits = DEFAULT_LIMITS,
    ) -> Path:
        archive = self.download_project(project_id, revision=revision)
        return unpack_archive(archive, output_dir, limits=limits)

    def download_project_by_name_to_directory(
        self,
        name: str,
        output_dir: str | os.PathLike[str],
        *,
        revision: str | None = None,
        limits: PackagingLimits = DEFAULT_LIMITS,
    ) -> Path:
        project = self.get_project_by_name(name)
        return self.download_project_to_directory(
            cast(str, project.id), output_dir, revision=revision, limits=limits
        )


__all__ = [
    "ARCHIVE_CONTENT_TYPE",
    "DEFAULT_WORKFLOW_ENDPOINT",
    "WORKFLOW_REGIONAL_ENDPOINTS",
    "WorkflowProjectsClient",
    "archive_revision",
]
