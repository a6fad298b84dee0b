"""Configuration loading and override resolution."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from flowline.config.models import AppConfig

DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise ValueError("Configuration file must deserialize to a mapping")
    return data


def apply_overrides(
    raw_config: dict[str, Any],
    env: Mapping[str, str],
    cli_overrides: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Apply precedence: CLI > env > YAML defaults."""
    merged = dict(raw_config)
    if env.get("FLOWLINE_DB_PATH"):
        _section(merged, "database")["path"] = env["FLOWLINE_DB_PATH"]
    if env.get("FLOWLINE_SCHEDULER_INTERVAL_SECONDS"):
        _section(merged, "scheduler")["interval_seconds"] = float(
            env["FLOWLINE_SCHEDULER_INTERVAL_SECONDS"]
        )
    _apply_whatsapp_env_overrides(merged, env)

    if cli_overrides:
        if cli_overrides.get("db_path"):
            _section(merged, "database")["path"] = str(cli_overrides["db_path"])
        if cli_overrides.get("interval_seconds") is not None:
            _section(merged, "scheduler")["interval_seconds"] = cli_overrides[
                "interval_seconds"
            ]
        if cli_overrides.get("gateway_provider"):
            _section(merged, "gateway")["provider"] = cli_overrides["gateway_provider"]
    return merged


def _apply_whatsapp_env_overrides(
    merged: dict[str, Any],
    env: Mapping[str, str],
) -> None:
    gateway = _section(merged, "gateway")
    if env.get("WHATSAPP_PHONE_NUMBER_ID"):
        gateway["phone_number_id"] = env["WHATSAPP_PHONE_NUMBER_ID"]
    if env.get("WHATSAPP_API_URL"):
        gateway["api_url"] = env["WHATSAPP_API_URL"]


def _section(merged: dict[str, Any], name: str) -> dict[str, Any]:
    section = merged.get(name)
    if not isinstance(section, dict):
        section = {}
    else:
        section = dict(section)
    merged[name] = section
    return section


def load_app_config(
    config_path: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> AppConfig:
    """Load and validate central application config."""
    active_env = os.environ if env is None else env
    raw = _load_yaml(config_path or DEFAULT_CONFIG_PATH)
    merged = apply_overrides(raw, active_env, cli_overrides)
    return AppConfig.model_validate(merged)
