"""Semantic event names for structured logging.

Log calls use these constants rather than literal strings so events can be
queried reliably.
"""

# Turn lifecycle
TURN_RECEIVED = "turn_received"
REPLY_READY = "reply_ready"
TURN_FAILED = "turn_failed"
CONTEXT_WINDOW_BUILT = "context_window_built"
TOOL_ROUNDS_EXHAUSTED = "tool_rounds_exhausted"

# Reasoning engine
MODEL_CALL_STARTED = "model_call_started"
MODEL_CALL_COMPLETED = "model_call_completed"
MODEL_CALL_ERROR = "model_call_error"

# Tool execution
TOOL_REGISTERED = "tool_registered"
TOOL_CALL_STARTED = "tool_call_started"
TOOL_CALL_COMPLETED = "tool_call_completed"
TOOL_CALL_FAILED = "tool_call_failed"
TOOL_CALL_CANCELED = "tool_call_canceled"
SCHEMA_VIOLATION = "schema_violation"

# Approval gate
APPROVAL_REQUIRED = "approval_required"
APPROVAL_GRANTED = "approval_granted"
APPROVAL_DENIED = "approval_denied"
APPROVAL_DUPLICATE = "approval_duplicate"
TASK_STARTED = "task_started"
TASK_COMPLETED = "task_completed"
TASK_FAILED = "task_failed"
TASK_CANCELED = "task_canceled"
STATE_TRANSITION = "state_transition"

# Sessions
SESSION_CREATED = "session_created"
SESSION_RESUMED = "session_resumed"
SESSION_RESUME_REJECTED = "session_resume_rejected"
SESSION_CLOSED = "session_closed"

# Persistence
PERSISTENCE_FAILURE = "persistence_failure"
