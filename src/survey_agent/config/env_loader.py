"""Environment detection and ``.env`` file loading."""

import os
from enum import Enum
from pathlib import Path

from dotenv import load_dotenv

from survey_agent.config.validators import PROJECT_ROOT
from survey_agent.telemetry import get_logger

log = get_logger(__name__)


class Environment(str, Enum):
    """Deployment environment, selected by ``APP_ENV``."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


_ALIASES = {
    "prod": Environment.PRODUCTION,
    "production": Environment.PRODUCTION,
    "stage": Environment.STAGING,
    "staging": Environment.STAGING,
    "test": Environment.TEST,
}


def get_environment() -> Environment:
    """Detect the current environment from ``APP_ENV`` (default: development)."""
    return _ALIASES.get(os.getenv("APP_ENV", "").lower(), Environment.DEVELOPMENT)


def load_env_files(project_root: Path | None = None) -> list[str]:
    """Load ``.env`` files, lowest priority first.

    Order: ``.env``, ``.env.local``, ``.env.{env}``, ``.env.{env}.local``.
    Variables already present in the process environment always win.

    Args:
        project_root: Directory holding the files. Defaults to the project root.

    Returns:
        Names of the files that were loaded.
    """
    root = project_root or PROJECT_ROOT
    env_name = get_environment().value
    candidates = [".env", ".env.local", f".env.{env_name}", f".env.{env_name}.local"]

    loaded = []
    for name in candidates:
        env_file = root / name
        if env_file.exists():
            load_dotenv(env_file, override=False)
            loaded.append(name)

    log.debug("env_files_loaded", environment=env_name, files=loaded)
    return loaded
