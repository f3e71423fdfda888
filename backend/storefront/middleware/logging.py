"""
Storefront Backend: Access Log Middleware
===========================================

What:  Writes one access-log line per request. The line carries the method,
       path, status, elapsed time, request id and client address.
How:   Server failures go out at ERROR and client failures at WARNING.
       Everything else goes out at INFO. Request bodies and headers never reach the log
       because they carry passwords, bearer tokens and webhook payloads.
       Health probes are skipped entirely.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from storefront.middleware.request_id import request_id_var

access_log = logging.getLogger("storefront.access")

QUIET_PATHS = frozenset({"/health"})


def level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        began = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - began) * 1000, 2)

        fields = {
            "request_id": request_id_var.get(""),
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": elapsed_ms,
            "client": request.client.host if request.client else "-",
        }
        access_log.log(
            level_for(response.status_code),
            "%(method)s %(path)s -> %(status)d in %(duration_ms).1fms "
            "(request %(request_id)s, client %(client)s)",
            fields,
            extra={k: v for k, v in fields.items() if k != "client"},
        )
        return response
