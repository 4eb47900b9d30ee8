"""Re-export typed models for the tdwf SDK."""

from __future__ import annotations

from .hooks import HookResult, HookSpec, HookStatus, HooksConfig
from .workflow import WorkflowProject, WorkflowProjectList

__all__ = [
    "HookResult",
    "HookSpec",
    "HookStatus",
    "HooksConfig",
    "WorkflowProject",
    "WorkflowProjectList",
]
