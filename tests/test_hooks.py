from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest

from tdwf.errors import (
    ConfigParseError,
    ConfigValidationError,
    DuplicateHookError,
    HookFailed,
    HookNotFoundError,
    HookTimedOut,
)
from tdwf.hooks import (
    DEFAULT_HOOK_TIMEOUT,
    HOOKS_FILENAME,
    add_hook,
    effective_timeout,
    init_hooks_config,
    load_hooks_config,
    remove_hook,
    run_hook,
    run_pre_upload_hooks,
    validate_hook,
)
from tdwf.models.hooks import HookSpec, HookStatus


def python_hook(name: str, code: str, **kwargs: object) -> HookSpec:
    return HookSpec(name=name, command=[sys.executable, "-c", code], **kwargs)


def write_hooks(directory: Path, hooks: list[HookSpec] | list[dict[str, object]]) -> None:
    payload = [h.to_payload() if isinstance(h, HookSpec) else h for h in hooks]
    (directory / HOOKS_FILENAME).write_text(
        json.dumps({"pre_upload_hooks": payload}), encoding="utf-8"
    )


def touch(name: str) -> str:
    return f"open('{name}', 'w').write('ran')"


# Loading ---------------------------------------------------------------------


def test_load_missing_file_returns_empty_config(tmp_path) -> None:
    config = load_hooks_config(tmp_path)

    assert config.is_empty()


def test_load_valid_config(tmp_path) -> None:
    write_hooks(tmp_path, [{"name": "test", "command": ["echo", "hello"]}])

    config = load_hooks_config(tmp_path)

    assert [hook.name for hook in config.pre_upload_hooks] == ["test"]
    hook = config.pre_upload_hooks[0]
    assert hook.timeout == 0
    assert hook.fail_on_error is False
    assert hook.working_dir == ""


def test_load_malformed_json_raises_parse_error(tmp_path) -> None:
    (tmp_path / HOOKS_FILENAME).write_text('{"pre_upload_hooks": [', encoding="utf-8")

    with pytest.raises(ConfigParseError):
        load_hooks_config(tmp_path)


def test_load_wrong_shape_raises_parse_error(tmp_path) -> None:
    (tmp_path / HOOKS_FILENAME).write_text(
        json.dumps({"pre_upload_hooks": [{"name": "x", "command": "echo hi"}]}), encoding="utf-8"
    )

    with pytest.raises(ConfigParseError):
        load_hooks_config(tmp_path)


@pytest.mark.parametrize(
    "hook",
    [
        {"name": "x", "command": ["echo"], "timeout": "30"},
        {"name": "x", "command": ["echo"], "fail_on_error": "true"},
        {"name": 5, "command": ["echo"]},
    ],
)
def test_load_rejects_mistyped_fields(tmp_path, hook: dict[str, object]) -> None:
    write_hooks(tmp_path, [hook])

    with pytest.raises(ConfigParseError):
        load_hooks_config(tmp_path)


def test_load_null_hook_list_is_empty(tmp_path) -> None:
    (tmp_path / HOOKS_FILENAME).write_text('{"pre_upload_hooks": null}', encoding="utf-8")

    assert load_hooks_config(tmp_path).is_empty()


def test_load_rejects_whole_file_when_one_hook_is_invalid(tmp_path) -> None:
    write_hooks(
        tmp_path,
        [
            {"name": "ok", "command": ["echo", "hello"]},
            {"name": "", "command": ["echo", "hello"]},
        ],
    )

    with pytest.raises(ConfigValidationError, match="hook validation failed"):
        load_hooks_config(tmp_path)


# Validation ------------------------------------------------------------------


@pytest.mark.parametrize(
    "hook",
    [
        HookSpec(name="", command=["echo"]),
        HookSpec(name="x", command=[]),
        HookSpec(name="x", command=["echo", "a;b"]),
        HookSpec(name="x", command=["../evil"]),
        HookSpec(name="x", command=["echo"], timeout=-1),
        HookSpec(name="x", command=["echo"], timeout=601),
        HookSpec(name="x", command=["echo"], working_dir="../outside"),
    ],
)
def test_validate_hook_rejects_invalid(tmp_path, hook: HookSpec) -> None:
    with pytest.raises(ConfigValidationError):
        validate_hook(hook, tmp_path)


def test_validate_hook_accepts_max_timeout_and_subdir(tmp_path) -> None:
    validate_hook(HookSpec(name="x", command=["echo"], timeout=600, working_dir="sub"), tmp_path)


def test_validate_hook_chains_underlying_error(tmp_path) -> None:
    with pytest.raises(ConfigValidationError) as exc_info:
        validate_hook(HookSpec(name="lint", command=["echo", "$HOME"]), tmp_path)

    assert "lint" in str(exc_info.value)
    assert exc_info.value.__cause__ is not None


def test_effective_timeout_defaults() -> None:
    assert effective_timeout(HookSpec(name="x", command=["echo"])) == DEFAULT_HOOK_TIMEOUT
    assert effective_timeout(HookSpec(name="x", command=["echo"], timeout=5)) == 5.0


# Execution -------------------------------------------------------------------


def test_run_hook_success_uses_project_root(tmp_path) -> None:
    result = run_hook(python_hook("touch", touch("marker.txt")), tmp_path)

    assert result.status is HookStatus.SUCCEEDED
    assert result.ok
    assert (tmp_path / "marker.txt").read_text() == "ran"


def test_run_hook_uses_working_dir(tmp_path) -> None:
    (tmp_path / "sub").mkdir()

    run_hook(python_hook("touch", touch("marker.txt"), working_dir="sub"), tmp_path)

    assert (tmp_path / "sub" / "marker.txt").exists()
    assert not (tmp_path / "marker.txt").exists()


def test_run_hook_nonzero_exit_raises(tmp_path) -> None:
    with pytest.raises(HookFailed) as exc_info:
        run_hook(python_hook("fail", "raise SystemExit(3)"), tmp_path)

    assert exc_info.value.returncode == 3
    assert exc_info.value.hook_name == "fail"


def test_run_hook_missing_executable_raises(tmp_path) -> None:
    hook = HookSpec(name="missing", command=["definitely-not-a-real-binary-tdwf"])

    with pytest.raises(HookFailed) as exc_info:
        run_hook(hook, tmp_path)

    assert isinstance(exc_info.value.__cause__, OSError)


def test_run_hook_timeout_kills_process(tmp_path) -> None:
    hook = python_hook("slow", "__import__('time').sleep(30)", timeout=1)

    with pytest.raises(HookTimedOut) as exc_info:
        run_hook(hook, tmp_path)

    assert exc_info.value.timeout == 1.0


def test_run_hook_revalidates(tmp_path) -> None:
    with pytest.raises(ConfigValidationError):
        run_hook(HookSpec(name="bad", command=["echo", "a|b"]), tmp_path)


class StatusLog:
    def __init__(self) -> None:
        self.events: list[tuple[str, HookStatus]] = []

    def __call__(self, hook: HookSpec, status: HookStatus) -> None:
        self.events.append((hook.name, status))

    def statuses(self, name: str) -> list[HookStatus]:
        return [status for hook_name, status in self.events if hook_name == name]


def test_run_hook_reports_transitions_on_success(tmp_path) -> None:
    log = StatusLog()

    run_hook(python_hook("ok", "pass"), tmp_path, on_status=log)

    assert log.statuses("ok") == [HookStatus.VALIDATED, HookStatus.RUNNING, HookStatus.SUCCEEDED]


def test_run_hook_reports_failure_after_running(tmp_path) -> None:
    log = StatusLog()

    with pytest.raises(HookFailed):
        run_hook(python_hook("fail", "raise SystemExit(1)"), tmp_path, on_status=log)

    assert log.statuses("fail") == [HookStatus.VALIDATED, HookStatus.RUNNING, HookStatus.FAILED]


def test_run_hook_that_cannot_start_never_runs(tmp_path) -> None:
    log = StatusLog()
    hook = HookSpec(name="missing", command=["definitely-not-a-real-binary-tdwf"])

    with pytest.raises(HookFailed):
        run_hook(hook, tmp_path, on_status=log)

    assert log.statuses("missing") == [HookStatus.VALIDATED, HookStatus.FAILED]


def test_run_hook_reports_timeout(tmp_path) -> None:
    log = StatusLog()
    hook = python_hook("slow", "__import__('time').sleep(30)", timeout=1)

    with pytest.raises(HookTimedOut):
        run_hook(hook, tmp_path, on_status=log)

    assert log.statuses("slow")[-1] is HookStatus.TIMED_OUT


def test_run_hook_invalid_hook_reports_nothing(tmp_path) -> None:
    log = StatusLog()

    with pytest.raises(ConfigValidationError):
        run_hook(HookSpec(name="bad", command=["echo", "a|b"]), tmp_path, on_status=log)

    assert log.events == []


# Pipeline --------------------------------------------------------------------


def test_pipeline_without_config_is_noop(tmp_path) -> None:
    assert run_pre_upload_hooks(tmp_path) == []


def test_pipeline_continues_after_non_fatal_failure(tmp_path, caplog) -> None:
    write_hooks(
        tmp_path,
        [
            python_hook("first", "raise SystemExit(1)", fail_on_error=False),
            python_hook("second", touch("second.txt"), fail_on_error=True),
        ],
    )

    with caplog.at_level(logging.WARNING, logger="tdwf.hooks"):
        results = run_pre_upload_hooks(tmp_path)

    assert [r.status for r in results] == [HookStatus.FAILED, HookStatus.SUCCEEDED]
    assert isinstance(results[0].error, HookFailed)
    assert (tmp_path / "second.txt").exists()
    assert "failed but continuing" in caplog.text


def test_pipeline_aborts_on_fatal_failure(tmp_path) -> None:
    write_hooks(
        tmp_path,
        [
            python_hook("first", "raise SystemExit(1)", fail_on_error=True),
            python_hook("second", touch("second.txt")),
        ],
    )

    with pytest.raises(HookFailed):
        run_pre_upload_hooks(tmp_path)

    assert not (tmp_path / "second.txt").exists()


def test_pipeline_runs_in_declared_order(tmp_path) -> None:
    write_hooks(
        tmp_path,
        [
            python_hook("build", touch("built.txt"), fail_on_error=True),
            python_hook(
                "check",
                "raise SystemExit(0 if __import__('os').path.exists('built.txt') else 1)",
                fail_on_error=True,
            ),
        ],
    )

    results = run_pre_upload_hooks(tmp_path)

    assert [r.hook.name for r in results] == ["build", "check"]
    assert all(r.ok for r in results)


def test_pipeline_marks_every_hook_pending_before_running(tmp_path) -> None:
    write_hooks(tmp_path, [python_hook("one", "pass"), python_hook("two", "pass")])
    log = StatusLog()

    run_pre_upload_hooks(tmp_path, on_status=log)

    assert log.events[:3] == [
        ("one", HookStatus.PENDING),
        ("two", HookStatus.PENDING),
        ("one", HookStatus.VALIDATED),
    ]
    assert log.statuses("two") == [
        HookStatus.PENDING,
        HookStatus.VALIDATED,
        HookStatus.RUNNING,
        HookStatus.SUCCEEDED,
    ]


def test_pipeline_does_not_run_anything_when_config_invalid(tmp_path) -> None:
    write_hooks(
        tmp_path,
        [
            python_hook("first", touch("first.txt")),
            {"name": "bad", "command": ["echo", "a&b"]},
        ],
    )

    with pytest.raises(ConfigValidationError):
        run_pre_upload_hooks(tmp_path)

    assert not (tmp_path / "first.txt").exists()


# Config file management -------------------------------------------------------


def test_init_creates_starter_config_once(tmp_path) -> None:
    path = init_hooks_config(tmp_path)

    assert path == tmp_path / HOOKS_FILENAME
    config = load_hooks_config(tmp_path)
    assert [h.name for h in config.pre_upload_hooks] == ["lint"]
    assert config.pre_upload_hooks[0].fail_on_error is True
    assert init_hooks_config(tmp_path) is None


def test_add_and_remove_hook(tmp_path) -> None:
    add_hook(tmp_path, HookSpec(name="lint", command=["echo", "lint"], timeout=30))
    add_hook(tmp_path, HookSpec(name="build", command=["echo", "build"], working_dir="src"))

    payload = json.loads((tmp_path / HOOKS_FILENAME).read_text(encoding="utf-8"))
    assert payload["pre_upload_hooks"][0] == {
        "name": "lint",
        "command": ["echo", "lint"],
        "fail_on_error": False,
        "timeout": 30,
    }
    assert payload["pre_upload_hooks"][1]["working_dir"] == "src"

    remove_hook(tmp_path, "lint")

    assert [h.name for h in load_hooks_config(tmp_path).pre_upload_hooks] == ["build"]


def test_add_rejects_duplicate_and_invalid(tmp_path) -> None:
    add_hook(tmp_path, HookSpec(name="lint", command=["echo"]))

    with pytest.raises(DuplicateHookError):
        add_hook(tmp_path, HookSpec(name="lint", command=["echo"]))
    with pytest.raises(ConfigValidationError):
        add_hook(tmp_path, HookSpec(name="evil", command=["echo", "`id`"]))


def test_remove_unknown_hook(tmp_path) -> None:
    with pytest.raises(HookNotFoundError):
        remove_hook(tmp_path, "lint")

    init_hooks_config(tmp_path)
    with pytest.raises(HookNotFoundError):
        remove_hook(tmp_path, "missing")
