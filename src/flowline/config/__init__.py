"""Configuration exports."""

from flowline.config.loader import DEFAULT_CONFIG_PATH, load_app_config
from flowline.config.models import AppConfig

__all__ = [
    "AppConfig",
    "DEFAULT_CONFIG_PATH",
    "load_app_config",
]
