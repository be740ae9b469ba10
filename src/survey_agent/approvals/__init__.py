"""Approval gate: task/step state machine and the decision service."""

from survey_agent.approvals.service import ApprovalService, Decision, DecisionOutcome, TaskView
from survey_agent.approvals.state_machine import TRANSITIONS, TaskEvent, can_apply, next_status

__all__ = [
    "ApprovalService",
    "Decision",
    "DecisionOutcome",
    "TRANSITIONS",
    "TaskEvent",
    "TaskView",
    "can_apply",
    "next_status",
]
