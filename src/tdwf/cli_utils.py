from __future__ import annotations

import os

import typer

from .clients.workflow_projects import DEFAULT_WORKFLOW_ENDPOINT, WORKFLOW_REGIONAL_ENDPOINTS
from .config import ConfigData, ConfigStore


def _ensure_config(config: ConfigData | None) -> ConfigData:
    return config or ConfigStore().load()


def resolve_workflow_endpoint(option_value: str | None, *, config: ConfigData | None = None) -> str:
    """Return the workflow API base URL for a CLI command.

    Resolution order: ``--endpoint``, ``TD_WORKFLOW_ENDPOINT``, the default
    profile's endpoint, then its region (or ``TD_REGION``) mapped to the
    regional workflow endpoint.
    """

    if option_value:
        return option_value

    env_endpoint = os.getenv("TD_WORKFLOW_ENDPOINT")
    if env_endpoint:
        return env_endpoint

    cfg = _ensure_config(config)
    profile = cfg.current_profile()
    if profile and profile.endpoint:
        return profile.endpoint

    region = os.getenv("TD_REGION") or (profile.region if profile else None)
    if not region:
        return DEFAULT_WORKFLOW_ENDPOINT

    endpoint = WORKFLOW_REGIONAL_ENDPOINTS.get(region.lower())
    if endpoint is None:
        raise typer.BadParameter(
            f"Unknown region '{region}'. Expected one of: "
            + ", ".join(sorted(WORKFLOW_REGIONAL_ENDPOINTS))
        )
    return endpoint


def get_config_from_context(ctx: typer.Context, *, store: ConfigStore | None = None) -> ConfigData:
    """Return a cached :class:`ConfigData` instance stored on ``ctx``."""

    ctx.ensure_object(dict)
    existing = ctx.obj.get("config") if ctx.obj else None
    if isinstance(existing, ConfigData):
        return existing

    cfg_store = store or ConfigStore()
    cfg = cfg_store.load()
    ctx.obj["config"] = cfg
    return cfg


def resolve_workflow_endpoint_from_context(
    ctx: typer.Context, option_value: str | None, *, store: ConfigStore | None = None
) -> str:
    """Resolve the workflow endpoint using cached CLI configuration."""

    if option_value:
        return option_value
    cfg = get_config_from_context(ctx, store=store)
    return resolve_workflow_endpoint(option_value, config=cfg)
