"""Models describing the ``.td-hooks.json`` project file."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, field_validator


class HookSpec(BaseModel):
    """A single pre-upload hook declaration."""

    name: StrictStr = ""
    command: list[StrictStr] = Field(default_factory=list)
    timeout: StrictInt = 0
    fail_on_error: StrictBool = False
    working_dir: StrictStr = ""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        """Return the JSON shape written to the hooks file."""

        payload: dict[str, Any] = {
            "name": self.name,
            "command": list(self.command),
            "fail_on_error": self.fail_on_error,
        }
        if self.timeout:
            payload["timeout"] = self.timeout
        if self.working_dir:
            payload["working_dir"] = self.working_dir
        return payload


class HooksConfig(BaseModel):
    pre_upload_hooks: list[HookSpec] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("pre_upload_hooks", mode="before")
    @classmethod
    def _null_means_no_hooks(cls, value: Any) -> Any:
        return [] if value is None else value

    def is_empty(self) -> bool:
        return not self.pre_upload_hooks

    def find(self, name: str) -> HookSpec | None:
        for hook in self.pre_upload_hooks:
            if hook.name == name:
                return hook
        return None

    def to_payload(self) -> dict[str, Any]:
        return {"pre_upload_hooks": [hook.to_payload() for hook in self.pre_upload_hooks]}


class HookStatus(str, Enum):
    PENDING = "pending"
    VALIDATED = "validated"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True, slots=True)
class HookResult:
    """Outcome of one hook execution."""

    hook: HookSpec
    status: HookStatus
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.status is HookStatus.SUCCEEDED


__all__ = ["HookResult", "HookSpec", "HookStatus", "HooksConfig"]
