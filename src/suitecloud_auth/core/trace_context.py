"""Trace id context variable for logging"""

import contextvars
import secrets

# Create a context variable to store the trace_id of the current HTTP exchange
trace_id_context: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "trace_id", default=None
)


def new_trace_id() -> str:
    """Generate a short random trace id."""
    return secrets.token_hex(8)
