"""Configuration loading tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from flowline.config.loader import load_app_config
from flowline.schemas.enums import GatewayProvider, UnmatchedBranchPolicy

REPO_ROOT = Path(__file__).resolve().parents[2]


def _write_config(tmp_path: Path, content: str) -> Path:
    config_path = tmp_path / "settings.yaml"
    config_path.write_text(content, encoding="utf-8")
    return config_path


_BASE_CONFIG = """
schema_version: "1.0.0"
database:
  path: "yaml.db"
engine:
  claim_ttl_seconds: 300
  unmatched_branch: "fail"
scheduler:
  interval_seconds: 60
gateway:
  provider: "whatsapp"
  api_url: "https://graph.facebook.com/v18.0/"
""".strip()


def test_repository_settings_file_is_valid() -> None:
    """The shipped settings.yaml should validate without any overrides."""
    config = load_app_config(REPO_ROOT / "config" / "settings.yaml", env={})
    assert config.gateway.provider == GatewayProvider.WHATSAPP
    assert config.engine.unmatched_branch == UnmatchedBranchPolicy.FIRST_EDGE
    assert config.retries.max_attempts == 3


def test_yaml_values_are_loaded(tmp_path: Path) -> None:
    config = load_app_config(_write_config(tmp_path, _BASE_CONFIG), env={})
    assert config.database.path == "yaml.db"
    assert config.engine.unmatched_branch == UnmatchedBranchPolicy.FAIL
    assert config.gateway.api_url == "https://graph.facebook.com/v18.0"
    assert config.gateway.phone_number_id is None


def test_cli_overrides_env_and_yaml_defaults(tmp_path: Path) -> None:
    """CLI override should have highest precedence."""
    config = load_app_config(
        _write_config(tmp_path, _BASE_CONFIG),
        env={"FLOWLINE_DB_PATH": "env.db", "FLOWLINE_SCHEDULER_INTERVAL_SECONDS": "30"},
        cli_overrides={"db_path": tmp_path / "cli.db", "gateway_provider": "mock"},
    )
    assert config.database.path == str(tmp_path / "cli.db")
    assert config.scheduler.interval_seconds == 30.0
    assert config.gateway.provider == GatewayProvider.MOCK


def test_whatsapp_env_overrides_apply(tmp_path: Path) -> None:
    config = load_app_config(
        _write_config(tmp_path, _BASE_CONFIG),
        env={
            "WHATSAPP_PHONE_NUMBER_ID": "1098765",
            "WHATSAPP_API_URL": "https://graph.example.test/v19.0",
        },
    )
    assert config.gateway.phone_number_id == "1098765"
    assert config.gateway.api_url == "https://graph.example.test/v19.0"


def test_claim_ttl_shorter_than_tick_interval_is_rejected(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        """
engine:
  claim_ttl_seconds: 30
scheduler:
  interval_seconds: 60
""".strip(),
    )
    with pytest.raises(ValueError):
        load_app_config(config_path, env={})


def test_unknown_keys_are_rejected(tmp_path: Path) -> None:
    config_path = _write_config(
        tmp_path,
        """
scheduler:
  interval_seconds: 60
  cron: "* * * * *"
""".strip(),
    )
    with pytest.raises(ValueError):
        load_app_config(config_path, env={})


def test_missing_config_file_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_app_config(tmp_path / "absent.yaml", env={})
