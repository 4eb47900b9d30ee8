from __future__ import annotations

import sys
from pathlib import Path

import pytest
import respx
from typer.testing import CliRunner


# Ensure the repository-local ``src`` directory is importable when the project is
# not installed as a package.
SRC_PATH = Path(__file__).resolve().parents[1] / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


@pytest.fixture
def api_key_getter():
    return lambda: "dummy-key"


@pytest.fixture
def respx_mock():
    with respx.mock(assert_all_called=False) as respx_mgr:
        yield respx_mgr


@pytest.fixture
def cli_runner(monkeypatch):
    """Provide a CLI runner with a dummy API key and an isolated config home."""

    monkeypatch.setenv("TD_API_KEY", "test-key")
    return CliRunner()


@pytest.fixture
def isolated_config(monkeypatch, tmp_path):
    import tdwf.config as config_module

    home = tmp_path / "tdwf-home"
    monkeypatch.setattr(config_module, "TDWF_DIR", str(home), raising=False)
    monkeypatch.setattr(config_module, "CONFIG_PATH", str(home / "config.json"), raising=False)
    monkeypatch.delenv("TDWF_CONFIG_ENCRYPTION_KEY", raising=False)
    for name in ("TD_WORKFLOW_ENDPOINT", "TD_REGION"):
        monkeypatch.delenv(name, raising=False)
    return home / "config.json"
