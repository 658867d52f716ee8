# apisign/middleware/signature_debug.py
import logging

from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request

from apisign.signing.models import SignatureConfig
from apisign.utils.logger import get_application_logger

logger = get_application_logger("apisign.signature_debug")


class SignatureDebugMiddleware(BaseHTTPMiddleware):
    """
    Debug helper: records whether signature headers were sent, never their values
    (the timestamp is fine to log). Only emits at DEBUG level.
    """

    def __init__(self, app, config: SignatureConfig):
        super().__init__(app)
        self.config = config

    async def dispatch(self, request: Request, call_next):
        has_signature = self.config.header_name in request.headers
        timestamp = request.headers.get(self.config.timestamp_header_name)

        if (has_signature or timestamp is not None) and logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                "API signature information",
                extra={
                    "path": request.url.path,
                    "method": request.method,
                    "has_signature": has_signature,
                    "has_timestamp": timestamp is not None,
                    "request_timestamp": timestamp,
                    "user_agent": request.headers.get("user-agent"),
                },
            )

        return await call_next(request)
