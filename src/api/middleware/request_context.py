"""Request context middleware for correlation IDs.

Key features:
- **Correlation ID propagation**: Extracts or generates unique IDs per request
- **Context variables**: The ID is readable anywhere in the request's task
- **Loguru integration**: Binds the ID to every log line of the request
- **Response headers**: Echoes the ID back to the client

Websocket connections are not wrapped by this middleware; channel log lines
carry ``user_id`` instead.
"""

import uuid
from contextvars import ContextVar

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.api.constants import CORRELATION_ID_HEADER

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Correlation ID of the request being handled, if any."""
    return _correlation_id_var.get()


def generate_request_id() -> str:
    """Generate a unique request ID in the format ``req-<uuid4>``."""
    return f"req-{uuid.uuid4()}"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to manage request correlation IDs."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Process the request with context management.

        Args:
            request: The incoming request.
            call_next: The next middleware/endpoint.

        Returns:
            Response: Response with correlation ID header.
        """
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or str(uuid.uuid4())
        token = _correlation_id_var.set(correlation_id)
        try:
            with logger.contextualize(correlation_id=correlation_id):
                response = await call_next(request)
                response.headers[CORRELATION_ID_HEADER] = correlation_id
                return response
        finally:
            _correlation_id_var.reset(token)
