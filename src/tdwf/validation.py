"""Guards shared by the hook runner and the archive unpacker.

Both helpers are pure: they take every input explicitly and keep no state, so
they are safe to call from any thread.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from pathlib import Path

from .errors import (
    ArgumentTooLong,
    DangerousCharacter,
    EmptyCommand,
    PathEscapesRoot,
    UnsafeExecutablePath,
)

MAX_COMMAND_LENGTH = 1000
DANGEROUS_CHARACTERS = frozenset(";|&$`\n\r")


def validate_command(command: Sequence[str]) -> None:
    """Reject hook argument vectors that are empty, oversized or injectable.

    Commands are never run through a shell, but the hook script or tooling it
    calls may re-interpret shell metacharacters, so those are refused outright.
    """

    if not command:
        raise EmptyCommand("command cannot be empty")

    for index, arg in enumerate(command):
        if len(arg) > MAX_COMMAND_LENGTH:
            raise ArgumentTooLong(index, MAX_COMMAND_LENGTH)
        if any(ch in DANGEROUS_CHARACTERS for ch in arg):
            raise DangerousCharacter(index)

    if ".." in command[0]:
        raise UnsafeExecutablePath("executable path cannot contain '..'")


def confine_path(candidate: str, root: str | os.PathLike[str]) -> Path:
    """Return ``candidate`` as an absolute path proven to live under ``root``.

    Relative candidates are joined onto ``root``. The joined path is cleaned
    before the containment check so ``a/../../x`` cannot slip through. An empty
    candidate, or one that cleans to ``root`` itself, yields ``root``.
    """

    abs_root = os.path.normpath(os.path.abspath(os.fspath(root)))
    if not candidate:
        return Path(abs_root)

    joined = candidate if os.path.isabs(candidate) else os.path.join(abs_root, candidate)
    abs_candidate = os.path.normpath(os.path.abspath(joined))

    try:
        rel = os.path.relpath(abs_candidate, abs_root)
    except ValueError:
        # different drives on Windows
        raise PathEscapesRoot(candidate, abs_root) from None

    if rel == os.pardir or rel.startswith(os.pardir + os.sep):
        raise PathEscapesRoot(candidate, abs_root)
    return Path(abs_candidate)


__all__ = [
    "DANGEROUS_CHARACTERS",
    "MAX_COMMAND_LENGTH",
    "confine_path",
    "validate_command",
]
