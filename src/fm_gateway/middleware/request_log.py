"""Request logging and correlation ids.

A caller-supplied X-Request-ID is reused when it looks sane, otherwise a short
one is minted. The id lands on request.state (echoed in the ApiResponse
envelope) and on the response header.

    INFO [POST] /api/v1/bets 200 18ms req_3f9a1c0b7d2e
"""

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("fm.request")

REQUEST_ID_HEADER = "X-Request-ID"
_ACCEPTED_ID = re.compile(r"^[A-Za-z0-9_.-]{1,64}$")


def resolve_request_id(incoming: str | None) -> str:
    if incoming and _ACCEPTED_ID.match(incoming):
        return incoming
    return f"req_{uuid.uuid4().hex[:12]}"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        took_ms = (time.perf_counter() - started) * 1000

        response.headers[REQUEST_ID_HEADER] = request_id
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "[%s] %s %d %.0fms %s",
            request.method,
            request.url.path,
            response.status_code,
            took_ms,
            request_id,
        )
        return response
