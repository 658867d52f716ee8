# apisign/middleware/request_id.py
import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request

from apisign.utils.logger import set_request_context, clear_request_context

_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._-]{8,64}$")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with a Request-ID so signature rejections can be traced
    across the caller's logs and ours. A well-formed inbound X-Request-ID is kept.
    """

    async def dispatch(self, request: Request, call_next):
        inbound = request.headers.get("X-Request-ID", "")
        req_id = inbound if _REQUEST_ID_RE.match(inbound) else str(uuid.uuid4())
        request.state.request_id = req_id
        ip_address = request.client.host if request.client else None

        tokens = set_request_context(request_id=req_id, ip_address=ip_address)
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = req_id
            return response
        finally:
            clear_request_context(tokens)
