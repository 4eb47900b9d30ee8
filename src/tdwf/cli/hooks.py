"""Commands for managing and running a project's pre-upload hooks."""

from __future__ import annotations

from pathlib import Path

import typer
from rich import print
from rich.markup import escape

from ..hooks import (
    add_hook,
    hooks_config_path,
    init_hooks_config,
    load_hooks_config,
    remove_hook,
    run_pre_upload_hooks,
)
from ..models.hooks import HookSpec, HookStatus
from .common import handle_cli_errors

app = typer.Typer(help="Pre-upload hooks (.td-hooks.json)", no_args_is_help=True)

PROJECT_DIR_ARGUMENT = typer.Argument(..., help="Workflow project directory")


@app.command("show")
@handle_cli_errors
def hooks_show(
    directory: Path = PROJECT_DIR_ARGUMENT,
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """Display the hooks declared for a project."""

    path = hooks_config_path(directory)
    if not path.exists():
        print(f"No hooks configuration found at {path}")
        print("Run `tdwf hooks init` to create a hooks configuration file.")
        return

    if format.lower() == "json":
        typer.echo(path.read_text(encoding="utf-8"), nl=False)
        return

    config = load_hooks_config(directory)
    if config.is_empty():
        print("No pre-upload hooks configured")
        return

    print(f"Pre-upload hooks ({len(config.pre_upload_hooks)}):")
    for index, hook in enumerate(config.pre_upload_hooks, start=1):
        print(f"\n{index}. [bold]{escape(hook.name)}[/bold]")
        print(f"   Command: {escape(' '.join(hook.command))}")
        if hook.timeout > 0:
            print(f"   Timeout: {hook.timeout} seconds")
        print(f"   Fail on error: {str(hook.fail_on_error).lower()}")
        if hook.working_dir:
            print(f"   Working directory: {escape(hook.working_dir)}")


@app.command("init")
@handle_cli_errors
def hooks_init(directory: Path = PROJECT_DIR_ARGUMENT) -> None:
    """Create a starter hooks configuration file."""

    path = init_hooks_config(directory)
    if path is None:
        print(f"Hooks configuration file already exists at {hooks_config_path(directory)}")
        return
    print(f"Created hooks configuration file at {path}")
    print("Edit this file to configure your pre-upload hooks.")


@app.command("add")
@handle_cli_errors
def hooks_add(
    directory: Path = PROJECT_DIR_ARGUMENT,
    command: list[str] = typer.Argument(..., help="Command and arguments (after --)"),
    name: str = typer.Option(..., "--name", "-n", help="Hook name"),
    timeout: int = typer.Option(0, "--timeout", help="Timeout in seconds (default: 60)"),
    fail_on_error: bool = typer.Option(
        False, "--fail-on-error/--continue-on-error", help="Abort the upload if the hook fails"
    ),
    working_dir: str = typer.Option(
        "", "--working-dir", help="Working directory relative to the project"
    ),
) -> None:
    """Append a hook to the project's hooks configuration."""

    hook = HookSpec(
        name=name,
        command=command,
        timeout=timeout,
        fail_on_error=fail_on_error,
        working_dir=working_dir,
    )
    path = add_hook(directory, hook)
    print(f"Added hook '{escape(name)}' to {path}")


@app.command("remove")
@handle_cli_errors
def hooks_remove(
    directory: Path = PROJECT_DIR_ARGUMENT,
    name: str = typer.Argument(..., help="Hook name"),
) -> None:
    """Remove a hook by name."""

    path = remove_hook(directory, name)
    print(f"Removed hook '{escape(name)}' from {path}")


_STATUS_COLOURS = {
    HookStatus.SUCCEEDED: "green",
    HookStatus.FAILED: "yellow",
    HookStatus.TIMED_OUT: "yellow",
}


def _report_status(hook: HookSpec, status: HookStatus) -> None:
    colour = _STATUS_COLOURS.get(status)
    if colour:
        print(f"[{colour}]{status.value}[/{colour}]  {escape(hook.name)}")


@app.command("run")
@handle_cli_errors
def hooks_run(directory: Path = PROJECT_DIR_ARGUMENT) -> None:
    """Run the pre-upload hooks without packing or uploading."""

    results = run_pre_upload_hooks(directory, on_status=_report_status)
    if not results:
        print("No pre-upload hooks configured")


__all__ = ["app", "hooks_add", "hooks_init", "hooks_remove", "hooks_run", "hooks_show"]
