"""Pre-settings configuration helpers.

Logging has to be configured before the settings singleton exists (settings
loading itself logs), so the level is read straight from the environment here.
This module must not import telemetry.
"""

from __future__ import annotations

import os

from survey_agent.config.validators import validate_log_level


def get_bootstrap_log_level(default: str = "INFO") -> str:
    """Read ``APP_LOG_LEVEL`` without importing settings.

    Falls back to ``default`` when unset or invalid.
    """
    try:
        return validate_log_level(os.getenv("APP_LOG_LEVEL", default))
    except ValueError:
        return validate_log_level(default)
