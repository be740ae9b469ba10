"""Configuration for the survey agent.

Settings are read from the environment (``SURVEY_AGENT_`` prefix) and ``.env``
files, validated with pydantic-settings, and exposed as a singleton.
"""

from survey_agent.config.env_loader import Environment, get_environment
from survey_agent.config.settings import AppConfig, get_settings, load_app_config

__all__ = [
    "AppConfig",
    "Environment",
    "get_environment",
    "get_settings",
    "load_app_config",
]
