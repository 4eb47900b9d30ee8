"""Pre-upload hooks declared in a project's ``.td-hooks.json``.

Hooks are local commands (linters, build steps) that must pass before a
workflow project is packed and uploaded. Every hook is validated before
anything runs: the argument vector goes through
:func:`tdwf.validation.validate_command` and the working directory is confined
to the project root with :func:`tdwf.validation.confine_path`.

Hooks run one at a time in declared order, without a shell, each bounded by its
own deadline. A failing hook aborts the pipeline when ``fail_on_error`` is set;
otherwise the failure is logged and the next hook runs.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess
from collections.abc import Callable
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from .errors import (
    ConfigParseError,
    ConfigValidationError,
    DuplicateHookError,
    ExecutionError,
    HookConfigError,
    HookFailed,
    HookNotFoundError,
    HookTimedOut,
    ValidationError,
)
from .models.hooks import HookResult, HookSpec, HookStatus, HooksConfig
from .validation import confine_path, validate_command

logger = logging.getLogger(__name__)

HOOKS_FILENAME = ".td-hooks.json"
DEFAULT_HOOK_TIMEOUT = 60.0
MAX_HOOK_TIMEOUT = 600.0

StatusCallback = Callable[[HookSpec, HookStatus], None]


def hooks_config_path(directory: str | os.PathLike[str]) -> Path:
    return Path(directory) / HOOKS_FILENAME


def validate_hook(hook: HookSpec, project_root: str | os.PathLike[str]) -> None:
    """Raise :class:`ConfigValidationError` when ``hook`` is unsafe or malformed."""

    if not hook.name:
        raise ConfigValidationError("hook name cannot be empty")

    try:
        validate_command(hook.command)
    except ValidationError as exc:
        raise ConfigValidationError(f"invalid command for hook '{hook.name}': {exc}") from exc

    if hook.timeout < 0:
        raise ConfigValidationError(f"hook '{hook.name}' timeout cannot be negative")
    if hook.timeout > MAX_HOOK_TIMEOUT:
        raise ConfigValidationError(
            f"hook '{hook.name}' timeout {hook.timeout}s exceeds maximum {MAX_HOOK_TIMEOUT:g}s"
        )

    try:
        confine_path(hook.working_dir, project_root)
    except ValidationError as exc:
        raise ConfigValidationError(
            f"invalid working directory for hook '{hook.name}': {exc}"
        ) from exc


def _read_hooks_config(path: Path) -> HooksConfig:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise HookConfigError(f"failed to read hooks config file {path}: {exc}") from exc

    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigParseError(f"failed to parse hooks config file {path}: {exc}") from exc

    try:
        return HooksConfig.model_validate(raw)
    except PydanticValidationError as exc:
        raise ConfigParseError(f"failed to parse hooks config file {path}: {exc}") from exc


def load_hooks_config(directory: str | os.PathLike[str]) -> HooksConfig:
    """Load and validate the hooks file in ``directory``.

    A missing file is not an error and yields an empty config. A single invalid
    hook rejects the whole file so a bad declaration never partially runs.
    """

    path = hooks_config_path(directory)
    if not path.exists():
        return HooksConfig()

    config = _read_hooks_config(path)
    for hook in config.pre_upload_hooks:
        try:
            validate_hook(hook, directory)
        except ConfigValidationError as exc:
            raise ConfigValidationError(f"hook validation failed: {exc}") from exc
    return config


def save_hooks_config(directory: str | os.PathLike[str], config: HooksConfig) -> Path:
    path = hooks_config_path(directory)
    tmp = path.with_suffix(".tmp")
    with tmp.open("w", encoding="utf-8") as handle:
        json.dump(config.to_payload(), handle, indent=2)
        handle.write("\n")
    tmp.replace(path)
    return path


def init_hooks_config(directory: str | os.PathLike[str]) -> Path | None:
    """Write a starter hooks file. Returns ``None`` if one already exists."""

    if hooks_config_path(directory).exists():
        return None
    starter = HooksConfig(
        pre_upload_hooks=[
            HookSpec(
                name="lint",
                command=["echo", "Add your linting command here"],
                timeout=60,
                fail_on_error=True,
            )
        ]
    )
    return save_hooks_config(directory, starter)


def add_hook(directory: str | os.PathLike[str], hook: HookSpec) -> Path:
    validate_hook(hook, directory)
    path = hooks_config_path(directory)
    config = _read_hooks_config(path) if path.exists() else HooksConfig()
    if config.find(hook.name) is not None:
        raise DuplicateHookError(f"hook with name '{hook.name}' already exists")
    updated = HooksConfig(pre_upload_hooks=[*config.pre_upload_hooks, hook])
    return save_hooks_config(directory, updated)


def remove_hook(directory: str | os.PathLike[str], name: str) -> Path:
    path = hooks_config_path(directory)
    if not path.exists():
        raise HookNotFoundError(f"no hooks configuration found at {path}")
    config = _read_hooks_config(path)
    remaining = [hook for hook in config.pre_upload_hooks if hook.name != name]
    if len(remaining) == len(config.pre_upload_hooks):
        raise HookNotFoundError(f"hook '{name}' not found")
    return save_hooks_config(directory, HooksConfig(pre_upload_hooks=remaining))


def effective_timeout(hook: HookSpec) -> float:
    return float(hook.timeout) if hook.timeout else DEFAULT_HOOK_TIMEOUT


def _notify(on_status: StatusCallback | None, hook: HookSpec, status: HookStatus) -> None:
    logger.debug("Hook '%s' is %s", hook.name, status.value)
    if on_status:
        on_status(hook, status)


def run_hook(
    hook: HookSpec,
    project_root: str | os.PathLike[str],
    *,
    on_status: StatusCallback | None = None,
) -> HookResult:
    """Execute one hook and return its result.

    ``on_status`` is called on every transition after the hook is picked up:
    ``validated``, ``running`` (once the process has started) and the terminal
    state. Raises :class:`HookTimedOut` when the deadline expires (the process
    is killed and reaped first) and :class:`HookFailed` on a non-zero exit or
    when the executable cannot be started.
    """

    validate_hook(hook, project_root)
    _notify(on_status, hook, HookStatus.VALIDATED)
    timeout = effective_timeout(hook)
    working_dir = confine_path(hook.working_dir, project_root)

    logger.info("Running hook '%s': %s", hook.name, " ".join(hook.command))
    logger.info("Working directory: %s", working_dir)

    try:
        process = subprocess.Popen(list(hook.command), cwd=working_dir, shell=False)  # noqa: S603
    except OSError as exc:
        _notify(on_status, hook, HookStatus.FAILED)
        raise HookFailed(hook.name, f"hook '{hook.name}' failed to start: {exc}") from exc
    _notify(on_status, hook, HookStatus.RUNNING)

    try:
        returncode = process.wait(timeout=timeout)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()
        _notify(on_status, hook, HookStatus.TIMED_OUT)
        raise HookTimedOut(hook.name, timeout) from None
    except BaseException:
        process.kill()
        process.wait()
        raise

    if returncode != 0:
        _notify(on_status, hook, HookStatus.FAILED)
        raise HookFailed(
            hook.name,
            f"hook '{hook.name}' failed: exit status {returncode}",
            returncode=returncode,
        )

    logger.info("Hook '%s' completed successfully", hook.name)
    _notify(on_status, hook, HookStatus.SUCCEEDED)
    return HookResult(hook=hook, status=HookStatus.SUCCEEDED)


def run_pre_upload_hooks(
    directory: str | os.PathLike[str],
    *,
    on_status: StatusCallback | None = None,
) -> list[HookResult]:
    """Run every pre-upload hook declared in ``directory`` in order.

    Every declared hook is reported ``pending`` before the first one starts.
    """

    config = load_hooks_config(directory)
    if config.is_empty():
        return []

    logger.info("Executing %d pre-upload hook(s)...", len(config.pre_upload_hooks))
    for hook in config.pre_upload_hooks:
        _notify(on_status, hook, HookStatus.PENDING)

    results: list[HookResult] = []
    for hook in config.pre_upload_hooks:
        try:
            results.append(run_hook(hook, directory, on_status=on_status))
        except ExecutionError as exc:
            if hook.fail_on_error:
                raise
            status = HookStatus.TIMED_OUT if isinstance(exc, HookTimedOut) else HookStatus.FAILED
            logger.warning("Hook '%s' failed but continuing: %s", hook.name, exc)
            results.append(HookResult(hook=hook, status=status, error=exc))

    logger.info("All pre-upload hooks completed")
    return results


__all__ = [
    "DEFAULT_HOOK_TIMEOUT",
    "HOOKS_FILENAME",
    "MAX_HOOK_TIMEOUT",
    "StatusCallback",
    "add_hook",
    "effective_timeout",
    "hooks_config_path",
    "init_hooks_config",
    "load_hooks_config",
    "remove_hook",
    "run_hook",
    "run_pre_upload_hooks",
    "save_hooks_config",
    "validate_hook",
]
