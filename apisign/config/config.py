from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

from apisign.signing.errors import MisconfiguredKeyError
from apisign.signing.models import SignatureConfig, SigningKey
from apisign.utils.logger import get_application_logger

logger = get_application_logger(__name__)


RELAXED_ENVIRONMENTS = ("development", "test")


# Values come from the process environment or a .env file next to the working directory
class Settings(BaseSettings):
    environment: str = "development"

    # Shared secret for request signing (never logged)
    api_signature_key: Optional[str] = None
    api_signature_header: str = "X-API-Signature"
    api_timestamp_header: str = "X-API-Timestamp"
    api_signature_expiration_ms: int = Field(default=5 * 60 * 1000, gt=0)

    # Apply the production policy even in development/test
    enforce_api_signing: bool = False
    # False lets GET/HEAD/OPTIONS through unsigned, except on paths with a Required rule
    sign_safe_methods: bool = True

    # Single-use enforcement
    replay_protection: bool = True
    replay_backend: str = "memory"
    replay_max_entries: int = Field(default=100_000, gt=0)

    # Redis (shared replay store for multi-instance deployments)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_timeout_ms: int = Field(default=250, gt=0)

    log_level: str = "INFO"

    # Server bind (entrypoint.py); PORT is what most hosting platforms inject
    host: str = "0.0.0.0"
    port: int = Field(default=8000, ge=1, le=65535)
    ssl_keyfile: Optional[str] = None
    ssl_certfile: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("environment")
    @classmethod
    def _lower(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("replay_backend")
    @classmethod
    def _known_backend(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("memory", "redis"):
            raise ValueError("replay_backend must be 'memory' or 'redis'")
        return value

    @property
    def is_relaxed(self) -> bool:
        return self.environment in RELAXED_ENVIRONMENTS


def get_settings() -> Settings:
    return Settings()


DEVELOPMENT_SIGNING_KEY = "development-signing-secret"


def load_signature_config(settings: Settings) -> SignatureConfig:
    """Build the process-wide SignatureConfig.

    Without ``API_SIGNATURE_KEY`` a production process refuses to start; relaxed
    environments fall back to the well-known development key so local tooling
    keeps working.
    """
    secret = settings.api_signature_key
    if not secret or not secret.strip():
        if not settings.is_relaxed:
            raise MisconfiguredKeyError(
                f"API_SIGNATURE_KEY must be set when ENVIRONMENT={settings.environment}"
            )
        logger.warning(
            "API_SIGNATURE_KEY not set; using the development signing key",
            extra={"environment": settings.environment},
        )
        secret = DEVELOPMENT_SIGNING_KEY

    return SignatureConfig(
        key=SigningKey(secret),
        header_name=settings.api_signature_header,
        timestamp_header_name=settings.api_timestamp_header,
        expiration_window_ms=settings.api_signature_expiration_ms,
    )
