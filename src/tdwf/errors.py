from __future__ import annotations

from typing import Any, Optional


class TdwfError(Exception):
    """Base error for tdwf."""


class HttpError(TdwfError):
    def __init__(self, status_code: int, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.details = details


class ProjectNotFoundError(TdwfError):
    pass


# Validation ------------------------------------------------------------------


class ValidationError(TdwfError, ValueError):
    """Malformed or unsafe input rejected before any execution or I/O."""


class EmptyCommand(ValidationError):
    pass


class ArgumentTooLong(ValidationError):
    def __init__(self, index: int, limit: int) -> None:
        super().__init__(f"command argument {index} too long (max {limit} characters)")
        self.index = index
        self.limit = limit


class DangerousCharacter(ValidationError):
    def __init__(self, index: int) -> None:
        super().__init__(f"command argument {index} contains dangerous characters")
        self.index = index


class UnsafeExecutablePath(ValidationError):
    pass


class HookConfigError(ValidationError):
    """Raised when the hooks configuration file cannot be used."""


class ConfigParseError(HookConfigError):
    pass


class ConfigValidationError(HookConfigError):
    pass


class DuplicateHookError(HookConfigError):
    pass


class HookNotFoundError(HookConfigError):
    pass


# Security --------------------------------------------------------------------


class SecurityError(TdwfError):
    """A path or entry would escape the containment root."""


class PathEscapesRoot(ValidationError, SecurityError):
    def __init__(self, candidate: str, root: str) -> None:
        super().__init__(f"path {candidate!r} escapes root directory {root}")
        self.candidate = candidate
        self.root = root


class SymlinkNotAllowed(SecurityError):
    pass


class PathTraversal(SecurityError):
    pass


class UnsafePath(SecurityError):
    pass


class LinksNotAllowed(SecurityError):
    pass


# Resource limits -------------------------------------------------------------


class ResourceLimitError(TdwfError):
    """A packaging quota was exceeded."""


class TooManyFiles(ResourceLimitError):
    pass


class FileTooLarge(ResourceLimitError):
    pass


class ArchiveTooLarge(ResourceLimitError):
    pass


# Archives --------------------------------------------------------------------


class ArchiveError(TdwfError):
    pass


class CorruptArchiveError(ArchiveError):
    pass


class OperationCancelled(ArchiveError):
    pass


# Hook execution --------------------------------------------------------------


class ExecutionError(TdwfError):
    def __init__(self, hook_name: str, message: str) -> None:
        super().__init__(message)
        self.hook_name = hook_name


class HookFailed(ExecutionError):
    def __init__(self, hook_name: str, message: str, *, returncode: int | None = None) -> None:
        super().__init__(hook_name, message)
        self.returncode = returncode


class HookTimedOut(ExecutionError):
    def __init__(self, hook_name: str, timeout: float) -> None:
        super().__init__(hook_name, f"hook '{hook_name}' timed out after {timeout:g}s")
        self.timeout = timeout
