# apisign/middleware/api_signature.py
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from fastapi import Request
from fastapi.responses import JSONResponse

from apisign.signing.canonical import build_path
from apisign.signing.errors import SignatureErrorCode
from apisign.signing.models import SignatureConfig, SignedRequestContext
from apisign.signing.policy import PolicyTable
from apisign.signing.replay import ReplayGuard
from apisign.signing.verifier import verify
from apisign.utils.logger import get_security_logger, log_signature_rejection

logger = get_security_logger(__name__)

SAFE_METHODS = ("GET", "HEAD", "OPTIONS")


def request_path(request: Request) -> str:
    """Raw path as sent on the wire, plus ``?query`` when present."""
    raw_path = request.scope.get("raw_path")
    path = raw_path.split(b"?", 1)[0].decode("latin-1") if raw_path else request.url.path
    return build_path(path, request.scope.get("query_string", b""))


async def extract_signed_context(request: Request, config: SignatureConfig) -> SignedRequestContext:
    """The only place that knows header names; Starlette headers are case-insensitive."""
    return SignedRequestContext(
        method=request.method.upper(),
        path=request_path(request),
        timestamp=request.headers.get(config.timestamp_header_name),
        body=await request.body(),
        signature=request.headers.get(config.header_name),
        route_path=request.url.path,
    )


def rejection_response(code: SignatureErrorCode) -> JSONResponse:
    return JSONResponse(
        {"detail": code.message, "code": code.value},
        status_code=code.status_code,
        headers={"Cache-Control": "no-store"},
    )


class ApiSignatureMiddleware(BaseHTTPMiddleware):
    """
    Verifies HMAC-signed API requests before they reach a route.

    - Client sends X-API-Signature = HMAC-SHA256(METHOD:PATH:TIMESTAMP[:BODY], key)
      and X-API-Timestamp = unix seconds (header names come from the config).
    - The policy table decides per path whether a signature is required.
    - Rejections are 401 (503 when the replay store is unavailable) with a
      machine-readable ``code``; session/CSRF layers report their own errors.
    """

    def __init__(
        self,
        app,
        config: SignatureConfig,
        policy: PolicyTable,
        guard: Optional[ReplayGuard] = None,
        sign_safe_methods: bool = True,
    ):
        super().__init__(app)
        self.config = config
        self.policy = policy
        self.guard = guard or ReplayGuard()
        self.sign_safe_methods = sign_safe_methods

    def skips_verification(self, request: Request) -> bool:
        # Unsigned safe methods never reach a path with an explicit Required rule
        if self.sign_safe_methods or request.method.upper() not in SAFE_METHODS:
            return False
        return not self.policy.has_required_rule(request.url.path)

    async def dispatch(self, request: Request, call_next):
        if self.skips_verification(request):
            request.state.api_signature_verified = False
            return await call_next(request)

        context = await extract_signed_context(request, self.config)
        result = verify(self.config, self.policy, context, self.guard)

        if result.ok:
            if result.exempt:
                logger.debug(
                    "Skipping API signature verification for exempt path",
                    extra={"path": request.url.path, "method": context.method},
                )
            request.state.api_signature_verified = not result.exempt
            return await call_next(request)

        log_signature_rejection(
            path=request.url.path,
            method=context.method,
            code=result.error.value,
            timestamp=context.timestamp,
            ip_address=request.client.host if request.client else None,
            has_signature=bool(context.signature),
            has_timestamp=bool(context.timestamp),
        )
        return rejection_response(result.error)
