"""Static gating policy: which tools need human approval before running.

Gated tools send external communications, change a survey's lifecycle stage,
trigger irreversible processing, or assign work across companies. Everything
else executes directly within the turn.
"""

GATED_TOOLS: frozenset[str] = frozenset(
    {
        "send_reminders",
        "activate_survey",
        "close_survey",
        "trigger_sentiment_analysis",
        "assign_survey_to_companies",
        "send_survey_invitations",
    }
)


def requires_approval(tool_name: str) -> bool:
    """Return True if the tool must go through the approval gate."""
    return tool_name in GATED_TOOLS
