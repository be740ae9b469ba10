"""Task/Step lifecycle.

A task and its single step share one lifecycle::

    waiting_approval --approve--> approved --begin--> running --succeed--> succeeded
    waiting_approval --reject---> rejected            running --fail-----> failed
    waiting_approval | approved | running --abandon--> canceled

Terminal states accept no event.
"""

from enum import Enum

from survey_agent.errors import InvalidTransition
from survey_agent.storage.models import TaskStatus


class TaskEvent(str, Enum):
    """Events that move a task through its lifecycle."""

    APPROVE = "approve"
    REJECT = "reject"
    BEGIN = "begin"
    SUCCEED = "succeed"
    FAIL = "fail"
    ABANDON = "abandon"


TRANSITIONS: dict[tuple[TaskStatus, TaskEvent], TaskStatus] = {
    (TaskStatus.WAITING_APPROVAL, TaskEvent.APPROVE): TaskStatus.APPROVED,
    (TaskStatus.WAITING_APPROVAL, TaskEvent.REJECT): TaskStatus.REJECTED,
    (TaskStatus.WAITING_APPROVAL, TaskEvent.ABANDON): TaskStatus.CANCELED,
    (TaskStatus.APPROVED, TaskEvent.BEGIN): TaskStatus.RUNNING,
    (TaskStatus.APPROVED, TaskEvent.ABANDON): TaskStatus.CANCELED,
    (TaskStatus.RUNNING, TaskEvent.SUCCEED): TaskStatus.SUCCEEDED,
    (TaskStatus.RUNNING, TaskEvent.FAIL): TaskStatus.FAILED,
    (TaskStatus.RUNNING, TaskEvent.ABANDON): TaskStatus.CANCELED,
}


def next_status(current: TaskStatus, event: TaskEvent) -> TaskStatus:
    """Return the state reached by applying ``event`` to ``current``.

    Raises:
        InvalidTransition: If the edge does not exist.
    """
    target = TRANSITIONS.get((current, event))
    if target is None:
        raise InvalidTransition("task", current.value, event.value)
    return target


def can_apply(current: TaskStatus, event: TaskEvent) -> bool:
    return (current, event) in TRANSITIONS
