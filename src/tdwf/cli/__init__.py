from __future__ import annotations

import typer

from . import hooks, profile, project
from .common import configure_logging

app = typer.Typer(help="tdwf: Treasure Data workflow project CLI", no_args_is_help=True)


def _register_sub_app(name: str, sub_app: typer.Typer) -> None:
    app.add_typer(sub_app, name=name)


_register_sub_app("hooks", hooks.app)
_register_sub_app("project", project.app)
_register_sub_app("profile", profile.app)


@app.callback()
def common(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Initialize shared Typer context state."""

    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj.setdefault("api_key_getter", None)


def main() -> None:
    app()


__all__ = ["app", "hooks", "main", "profile", "project"]
