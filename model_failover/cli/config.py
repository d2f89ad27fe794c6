"""Configuration loading: YAML file, .env, and environment overrides."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import click
import yaml
from pydantic import ValidationError

from model_failover.shared.types import FailoverConfig
from model_failover.shared.utils import expand_home

# ── Path constants ──────────────────────────────────────────

CONFIG_FILE = "~/.openclaw/model-failover.yaml"
# None: look for .env in the working directory when the CLI runs
ENV_FILE: Path | None = None

# ── Environment overrides ───────────────────────────────────

ENV_CONFIG = "MODEL_FAILOVER_CONFIG"
ENV_MODEL_ORDER = "MODEL_FAILOVER_MODEL_ORDER"
ENV_STATE_FILE = "MODEL_FAILOVER_STATE_FILE"
ENV_METRICS_FILE = "MODEL_FAILOVER_METRICS_FILE"


def _config_path(config_path: str | Path | None = None) -> Path:
    raw = config_path or os.environ.get(ENV_CONFIG) or CONFIG_FILE
    return Path(expand_home(str(raw)))


def _load_config(config_path: str | Path | None = None) -> FailoverConfig:
    """Load the failover config, then apply environment overrides.

    A missing file yields defaults. Malformed YAML or invalid values raise
    ``click.ClickException`` so the CLI reports them cleanly.
    """
    path = _config_path(config_path)
    data: dict = {}
    if path.exists():
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise click.ClickException(f"Invalid YAML in {path}: {e}") from e
        if not isinstance(data, dict):
            raise click.ClickException(f"{path} must contain a mapping at the top level")
        # Allow the settings to live under a `model_failover:` section
        data = data.get("model_failover") or data

    order = os.environ.get(ENV_MODEL_ORDER)
    if order:
        data["model_order"] = [m.strip() for m in order.split(",") if m.strip()]
    if os.environ.get(ENV_STATE_FILE):
        data["state_file"] = os.environ[ENV_STATE_FILE]
    if os.environ.get(ENV_METRICS_FILE):
        data["metrics_file"] = os.environ[ENV_METRICS_FILE]

    try:
        return FailoverConfig.model_validate(data)
    except ValidationError as e:
        raise click.ClickException(f"Invalid failover config in {path}:\n{e}") from e


def _save_config(cfg: FailoverConfig, config_path: str | Path | None = None) -> Path:
    """Write *cfg* back as YAML. Returns the path written."""
    path = _config_path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.dump(cfg.model_dump(), f, default_flow_style=False, sort_keys=False)
    return path


def _suppress_library_logs() -> None:
    """Set library loggers to WARNING for clean CLI output."""
    for name in ["failover.state", "failover.metrics", "failover.selector"]:
        logging.getLogger(name).setLevel(logging.WARNING)
