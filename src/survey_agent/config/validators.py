"""Field validators shared by the configuration models."""

from pathlib import Path

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_VALID_FORMATS = {"json", "console"}

# src/survey_agent/config -> project root
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent


def validate_log_level(value: str) -> str:
    """Validate and normalize a logging level name.

    Raises:
        ValueError: If the level is not a standard logging level.
    """
    if value.upper() not in _VALID_LEVELS:
        raise ValueError(f"log_level must be one of {sorted(_VALID_LEVELS)}, got {value}")
    return value.upper()


def validate_log_format(value: str) -> str:
    """Validate the console log format ('json' or 'console')."""
    if value.lower() not in _VALID_FORMATS:
        raise ValueError(f"log_format must be one of {sorted(_VALID_FORMATS)}, got {value}")
    return value.lower()


def resolve_path(value: Path | str) -> Path:
    """Resolve a path relative to the project root.

    Args:
        value: Absolute or project-relative path.

    Returns:
        Absolute, resolved path.
    """
    path = Path(value)
    if not path.is_absolute():
        path = PROJECT_ROOT / path
    return path.resolve()
