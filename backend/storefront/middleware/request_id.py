"""
Storefront Backend: Request ID Middleware
===========================================

What:  Gives every request an id, returns it as X-Request-ID and makes it
       available to the access log and the exception handlers.
How:   An incoming X-Request-ID is kept so the dashboard can quote it in
       support tickets. Otherwise the first eight hex digits of a uuid4 are used.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

HEADER = "X-Request-ID"

# Per-coroutine, so interleaved requests never see each other's id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def new_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get(HEADER) or new_request_id()
        request.state.request_id = request_id
        request_id_var.set(request_id)

        response = await call_next(request)
        response.headers[HEADER] = request_id
        return response
