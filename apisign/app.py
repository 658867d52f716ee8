from typing import Optional

from fastapi import FastAPI, Request

from apisign.config.config import Settings, get_settings, load_signature_config
from apisign.middleware.api_signature import ApiSignatureMiddleware
from apisign.middleware.request_id import RequestIDMiddleware
from apisign.middleware.signature_debug import SignatureDebugMiddleware
from apisign.signing.policy import policy_for_environment
from apisign.signing.replay import InMemoryReplayStore, RedisReplayStore, ReplayGuard, ReplayStore
from apisign.utils.logger import init_logging, get_application_logger

logger = get_application_logger(__name__)


def build_replay_store(settings: Settings) -> Optional[ReplayStore]:
    if not settings.replay_protection:
        return None
    if settings.replay_backend == "redis":
        logger.info(
            "Replay protection backed by redis",
            extra={"redis_host": settings.redis_host, "redis_port": settings.redis_port},
        )
        return RedisReplayStore.from_settings(settings)
    logger.warning(
        "Replay protection is per-process (memory backend); use REPLAY_BACKEND=redis when running several instances"
    )
    return InMemoryReplayStore(max_entries=settings.replay_max_entries)


def create_app(
    settings: Optional[Settings] = None,
    replay_store: Optional[ReplayStore] = None,
    guard: Optional[ReplayGuard] = None,
) -> FastAPI:
    """Build the API app with the signing pipeline in front of every route.

    Raises MisconfiguredKeyError when no signing key is available in production,
    so the server never starts accepting traffic.
    """
    settings = settings or get_settings()
    init_logging(secrets=[settings.api_signature_key])

    config = load_signature_config(settings)
    policy = policy_for_environment(settings.environment, enforce=settings.enforce_api_signing)
    if guard is None:
        guard = ReplayGuard(replay_store if replay_store is not None else build_replay_store(settings))

    logger.info(
        "API signature verification configured",
        extra={
            "environment": settings.environment,
            "enforced": settings.enforce_api_signing,
            "default_effect": policy.default_effect.value,
            "required_prefixes": list(policy.required_prefixes),
            "single_use": guard.single_use,
            "window_ms": config.expiration_window_ms,
        },
    )

    app = FastAPI(title="Signed API")
    # Starlette runs the last-added middleware first: request id -> debug -> signature
    app.add_middleware(
        ApiSignatureMiddleware,
        config=config,
        policy=policy,
        guard=guard,
        sign_safe_methods=settings.sign_safe_methods,
    )
    app.add_middleware(SignatureDebugMiddleware, config=config)
    app.add_middleware(RequestIDMiddleware)

    app.state.signature_config = config
    app.state.signature_policy = policy

    @app.get("/health")
    async def health():
        return {"status": "ok", "environment": settings.environment}

    @app.post("/api/auth/login")
    async def login(request: Request):
        # session auth lives elsewhere; this route only shows an exempt path
        return {"status": "ok"}

    @app.get("/api/surveys")
    async def list_surveys(request: Request):
        return {"surveys": [], "signed": request.state.api_signature_verified}

    @app.post("/api/surveys")
    async def create_survey(request: Request):
        payload = await request.json()
        return {"created": payload, "signed": request.state.api_signature_verified}

    @app.get("/api/company/{company_id}")
    async def get_company(company_id: int, request: Request):
        return {"id": company_id, "signed": request.state.api_signature_verified}

    @app.get("/api/reports")
    async def reports(request: Request):
        return {"reports": [], "signed": request.state.api_signature_verified}

    return app
