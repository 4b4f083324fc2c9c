import contextvars
from typing import Optional

# Context variable carrying the storefront request id into logs and outgoing api calls
request_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)

GENERIC_SERVER_ERROR = "Something went wrong. Please try again."

# Device id of the visitor being served (set by VisitorMiddleware)
visitor_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("visitor", default=None)
