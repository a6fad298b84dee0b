"""Runtime environment loading helpers."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

_DISABLE_DOTENV_VALUES = {"1", "true", "yes", "on"}


def load_runtime_env(*, filename: str = ".env") -> bool:
    """Load a dotenv file without overriding the existing process env.

    ``FLOWLINE_ENV_FILE`` points at an explicit file; otherwise ``filename``
    is searched for from the cwd upwards. ``FLOWLINE_DISABLE_DOTENV`` skips
    loading entirely.
    """
    disabled = os.getenv("FLOWLINE_DISABLE_DOTENV", "").strip().lower()
    if disabled in _DISABLE_DOTENV_VALUES:
        return False

    explicit = os.getenv("FLOWLINE_ENV_FILE", "").strip()
    if explicit:
        dotenv_path = str(Path(explicit).expanduser())
        if not Path(dotenv_path).is_file():
            return False
    else:
        dotenv_path = find_dotenv(filename=filename, usecwd=True)
    if not dotenv_path:
        return False

    return bool(load_dotenv(dotenv_path=dotenv_path, override=False))
