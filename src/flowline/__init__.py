"""Flowline package entrypoints."""

from flowline.cli import app
from flowline.constants import PACKAGE_VERSION
from flowline.runtime_env import load_runtime_env

__all__ = ["app", "main", "__version__"]
__version__ = PACKAGE_VERSION


def main() -> None:
    """Launch the CLI."""
    load_runtime_env()
    app()
