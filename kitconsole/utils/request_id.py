"""
Per-request IDs for log correlation.

The ID of the request that starts an npm operation is written to the top of
that operation's npm log, so console log lines and npm output can be matched
up. Clients may supply their own ID in ``X-Request-ID``.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Anything else from the client is replaced, it ends up in file names and logs
_CLIENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9-]{8,64}$")

request_id_var: ContextVar[Optional[str]] = ContextVar("kitconsole_request_id", default=None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


def accept_request_id(supplied: Optional[str]) -> str:
    if supplied and _CLIENT_ID_PATTERN.match(supplied):
        return supplied
    return new_request_id()


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rid = accept_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = rid
        token = request_id_var.set(rid)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers[REQUEST_ID_HEADER] = rid
        return response
