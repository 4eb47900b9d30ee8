from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable
from functools import wraps
from typing import Any, Literal, ParamSpec, TypeVar, cast, overload

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from ..cli_utils import get_config_from_context
from ..config import ConfigData, ConfigStore, EncryptedConfigError
from ..errors import ExecutionError, HttpError, TdwfError

err_console = Console(stderr=True)

LOG_LEVEL_ENV = "TDWF_LOG_LEVEL"


def configure_logging(verbose: bool = False) -> None:
    """Route library log records (hook progress, uploads) to the console."""

    if verbose:
        level = logging.DEBUG
    else:
        level_name = os.getenv(LOG_LEVEL_ENV, "INFO").upper()
        level = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger("tdwf")
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=err_console, show_time=False, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
    logger.setLevel(level)


def _render_http_error(exc: HttpError) -> None:
    err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
    details = getattr(exc, "details", None)
    if details:
        snippet = details
        if isinstance(details, dict):
            snippet = json.dumps(details, indent=2)
        err_console.print(str(snippet), markup=False)


CommandParams = ParamSpec("CommandParams")
CommandReturn = TypeVar("CommandReturn")


def handle_cli_errors(
    func: Callable[CommandParams, CommandReturn],
) -> Callable[CommandParams, CommandReturn]:
    @wraps(func)
    def wrapper(*args: CommandParams.args, **kwargs: CommandParams.kwargs) -> CommandReturn:
        try:
            return func(*args, **kwargs)
        except typer.BadParameter:
            raise
        except typer.Exit:
            raise
        except HttpError as exc:
            _render_http_error(exc)
            raise typer.Exit(1) from None
        except EncryptedConfigError as exc:
            err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
            err_console.print(
                "Restore the original key by exporting TDWF_CONFIG_ENCRYPTION_KEY before rerunning the command."
            )
            err_console.print(
                "If the key is lost, back up and remove the encrypted config (default ~/.tdwf/config.json) then run `tdwf profile add NAME` to recreate credentials."
            )
            raise typer.Exit(1) from None
        except ExecutionError as exc:
            err_console.print(f"[red]Error:[/red] pre-upload hook failed: {escape(str(exc))}")
            raise typer.Exit(1) from None
        except TdwfError as exc:
            err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
            raise typer.Exit(1) from None
        except Exception as exc:
            if os.getenv("TDWF_DEBUG"):
                raise
            err_console.print(f"[red]Error:[/red] Unexpected failure: {exc}")
            err_console.print("Set TDWF_DEBUG=1 for a stack trace.")
            raise typer.Exit(1) from exc

    return wrapper


ApiKeyGetter = Callable[[], str]


def resolve_api_key_getter(config: ConfigData | None = None) -> ApiKeyGetter:
    """Resolve a callable that returns the TD API key.

    Resolution order is:

    1. Explicit environment override via ``TD_API_KEY``.
    2. The ``api_key`` stored on the default profile (decrypted on load).
    """

    api_key = os.getenv("TD_API_KEY")
    if api_key:

        def env_getter() -> str:
            override = os.getenv("TD_API_KEY")
            return override or api_key

        return env_getter

    cfg = config or ConfigStore().load()
    profile = cfg.current_profile()
    if profile is None:
        raise typer.BadParameter("No TD_API_KEY and no default profile configured.")
    if not profile.api_key:
        raise typer.BadParameter(
            f"Profile '{profile.name}' has no API key; run `tdwf profile add {profile.name}` to set one."
        )
    stored = profile.api_key

    def getter() -> str:
        return os.getenv("TD_API_KEY") or stored

    return getter


@overload
def get_api_key_getter(ctx: typer.Context, *, required: Literal[True] = ...) -> ApiKeyGetter: ...


@overload
def get_api_key_getter(ctx: typer.Context, *, required: Literal[False]) -> ApiKeyGetter | None: ...


def get_api_key_getter(ctx: typer.Context, *, required: bool = True) -> ApiKeyGetter | None:
    ctx_obj = cast(dict[str, Any], ctx.ensure_object(dict))
    api_key_getter = ctx_obj.get("api_key_getter")
    if callable(api_key_getter):
        return cast(ApiKeyGetter, api_key_getter)

    config: ConfigData | None = None
    if not os.getenv("TD_API_KEY"):
        config = get_config_from_context(ctx)
    try:
        api_key_getter = resolve_api_key_getter(config=config)
    except typer.BadParameter:
        if not required:
            return None
        raise
    ctx_obj["api_key_getter"] = api_key_getter
    return api_key_getter


__all__ = [
    "ApiKeyGetter",
    "configure_logging",
    "err_console",
    "get_api_key_getter",
    "handle_cli_errors",
    "resolve_api_key_getter",
]
