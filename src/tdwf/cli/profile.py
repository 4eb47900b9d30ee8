"""Commands for inspecting and mutating stored tdwf profiles."""

from __future__ import annotations

import os
from dataclasses import asdict
from typing import Any

import typer
from rich import print

from ..config import ConfigStore, Profile
from .common import handle_cli_errors

app = typer.Typer(help="Profiles & configuration", no_args_is_help=True)


MASK_PLACEHOLDER = "<hidden>"
SENSITIVE_KEYS = frozenset({"api_key"})


@app.command("add")
@handle_cli_errors
def profile_add(
    name: str = typer.Argument(..., help="Profile name"),
    api_key_env: str | None = typer.Option(
        None, "--api-key-env", help="Read the API key from this environment variable"
    ),
    prompt_key: bool = typer.Option(False, "--prompt-key", help="Prompt for the API key"),
    region: str | None = typer.Option(None, "--region", help="Region: us|eu|tokyo|ap02"),
    endpoint: str | None = typer.Option(None, "--endpoint", help="Explicit workflow endpoint"),
    set_default: bool = typer.Option(False, "--set-default", help="Make this the default profile"),
) -> None:
    """Create or update a profile."""

    api_key: str | None = None
    if api_key_env:
        api_key = os.getenv(api_key_env)
        if not api_key:
            raise typer.BadParameter(f"Environment variable {api_key_env} is not set")
    elif prompt_key:
        api_key = typer.prompt("API key", hide_input=True)

    store = ConfigStore()
    existing = store.load().profiles.get(name)
    profile = Profile(
        name=name,
        api_key=api_key or (existing.api_key if existing else None),
        region=region or (existing.region if existing else None),
        endpoint=endpoint or (existing.endpoint if existing else None),
    )
    cfg = store.add_or_update_profile(profile, set_default=set_default)
    suffix = " (default)" if cfg.default_profile == name else ""
    print(f"Saved profile '{name}'{suffix}")


@app.command("list")
@handle_cli_errors
def profile_list() -> None:
    """Show all saved profiles, highlighting the default profile."""

    store = ConfigStore()
    cfg = store.load()
    names = sorted(cfg.profiles.keys()) if cfg.profiles else []
    for name in names:
        star = "*" if cfg.default_profile == name else " "
        print(f"{star} {name}")


@app.command("show")
@handle_cli_errors
def profile_show(name: str = typer.Argument(..., help="Profile name")) -> None:
    """Display the stored configuration for a profile."""

    store = ConfigStore()
    cfg = store.load()
    profile = cfg.profiles.get(name) if cfg.profiles else None
    if not profile:
        raise typer.BadParameter(f"Profile '{name}' not found")

    print(_mask_sensitive_fields(asdict(profile)))


@app.command("use")
@handle_cli_errors
def profile_use(name: str = typer.Argument(..., help="Profile name")) -> None:
    """Set the default profile."""

    store = ConfigStore()
    try:
        store.set_default_profile(name)
    except KeyError as exc:
        raise typer.BadParameter(str(exc.args[0])) from None
    print(f"Default profile set to {name}")


def _mask_sensitive_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with sensitive keys masked."""

    masked = dict(data)
    for key in masked:
        if key in SENSITIVE_KEYS and masked[key] not in (None, ""):
            masked[key] = MASK_PLACEHOLDER
    return masked


__all__ = ["app", "profile_add", "profile_list", "profile_show", "profile_use"]
