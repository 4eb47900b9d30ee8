"""Commands for packing, pushing and pulling workflow projects."""

from __future__ import annotations

from pathlib import Path

import typer
from rich import print
from rich.markup import escape

from ..archive import pack_directory, unpack_archive
from ..cli_utils import resolve_workflow_endpoint_from_context
from ..clients.workflow_projects import WorkflowProjectsClient
from .common import get_api_key_getter, handle_cli_errors

app = typer.Typer(help="Workflow project packaging and transfer", no_args_is_help=True)

ENDPOINT_OPTION = typer.Option(
    None,
    "--endpoint",
    help="Workflow API endpoint (defaults to TD_WORKFLOW_ENDPOINT, profile, or region)",
)
REVISION_OPTION = typer.Option(
    None, "--revision", "-r", help="Project revision (default: archive MD5 on push, latest on pull)"
)


def _get_client(ctx: typer.Context, endpoint: str | None) -> WorkflowProjectsClient:
    api_key_getter = get_api_key_getter(ctx)
    base_url = resolve_workflow_endpoint_from_context(ctx, endpoint)
    return WorkflowProjectsClient(api_key_getter, base_url=base_url)


@app.command("pack")
@handle_cli_errors
def project_pack(
    src: Path = typer.Argument(..., help="Project directory to pack"),
    out: Path | None = typer.Option(None, "--out", help="Destination archive (default: project.tar.gz)"),
) -> None:
    """Pack a project directory into a tar.gz archive without uploading."""

    output_path = Path(out or Path("project.tar.gz"))
    data = pack_directory(src)
    output_path.write_bytes(data)
    print(f"Packed {src} -> {output_path} ({len(data)} bytes)")


@app.command("unpack")
@handle_cli_errors
def project_unpack(
    file: Path = typer.Argument(..., help="Project archive (tar.gz) to extract"),
    out: Path | None = typer.Option(None, "--out", help="Destination folder (default: project)"),
) -> None:
    """Extract a project archive into a folder."""

    output_dir = unpack_archive(file.read_bytes(), out or Path("project"))
    print(f"Unpacked {file} -> {output_dir}")


@app.command("list")
@handle_cli_errors
def project_list(
    ctx: typer.Context,
    endpoint: str | None = ENDPOINT_OPTION,
) -> None:
    """List workflow projects."""

    with _get_client(ctx, endpoint) as client:
        projects = client.list_projects()
    for project in projects:
        print(f"[bold]{escape(project.name or '')}[/bold]  id={project.id}  rev={project.revision}")


@app.command("push")
@handle_cli_errors
def project_push(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project name"),
    directory: Path = typer.Argument(Path("."), help="Project directory (default: .)"),
    revision: str | None = REVISION_OPTION,
    skip_hooks: bool = typer.Option(False, "--skip-hooks", help="Do not run pre-upload hooks"),
    endpoint: str | None = ENDPOINT_OPTION,
) -> None:
    """Run pre-upload hooks, pack the directory and upload it."""

    with _get_client(ctx, endpoint) as client:
        project = client.create_project_from_directory(
            name, directory, revision=revision, run_hooks=not skip_hooks
        )
    print(f"Uploaded project '{escape(name)}' (id={project.id}, revision={project.revision})")


@app.command("pull")
@handle_cli_errors
def project_pull(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project name"),
    out: Path | None = typer.Option(None, "--out", help="Destination folder (default: project name)"),
    revision: str | None = REVISION_OPTION,
    endpoint: str | None = ENDPOINT_OPTION,
) -> None:
    """Download a project by name and extract it."""

    with _get_client(ctx, endpoint) as client:
        output_dir = client.download_project_by_name_to_directory(
            name, out or Path(name), revision=revision
        )
    print(f"Downloaded project '{escape(name)}' -> {output_dir}")


__all__ = ["app", "project_list", "project_pack", "project_pull", "project_push", "project_unpack"]
