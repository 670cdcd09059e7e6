"""Shared defaults for scenecraft."""

DEFAULT_PLACEHOLDER = "Type your message..."

SINGLE_FIELD_THRESHOLD = 0.9
CLARIFY_THRESHOLD = 0.7
NO_ANSWER_FLOOR = 0.3

DEFAULT_MAX_DISPATCH_ATTEMPTS = 3
DEFAULT_MAX_POLL_FAILURES = 3
DEFAULT_POLL_INTERVAL = 5.0

LOCAL_JOB_PREFIX = "local-"
