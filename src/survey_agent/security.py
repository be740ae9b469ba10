"""Helpers for keeping internal details out of user-visible text."""

import re

from survey_agent.errors import (
    NotFound,
    PersistenceFailure,
    StateConflict,
    UpstreamUnavailable,
)

UPSTREAM_FAILURE_REPLY = (
    "Sorry, something went wrong while processing your request. Please try again."
)


def sanitize_error_message(error: Exception) -> str:
    """Create a user-facing error message without exposing internal details.

    Args:
        error: The exception that occurred.

    Returns:
        A sanitized message safe to show in chat or an HTTP response.
    """
    if isinstance(error, UpstreamUnavailable):
        return UPSTREAM_FAILURE_REPLY
    if isinstance(error, NotFound):
        return "The requested resource was not found."
    if isinstance(error, StateConflict):
        return str(error)
    if isinstance(error, PersistenceFailure):
        return "The request could not be recorded. Please try again."

    error_str = str(error)
    error_str = re.sub(r"/[^\s]+", "[path]", error_str)
    error_str = re.sub(r"0x[0-9a-fA-F]+", "[address]", error_str)
    if "timeout" in error_str.lower() or "Timeout" in type(error).__name__:
        return "The request took too long to process. Please try again."
    return "An error occurred while processing your request. Please try again."
