import logging
import logging.handlers
import json
import os
import re
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, Iterable, Optional


# Log directory (created on import if missing)
BASE_DIR = Path(__file__).resolve().parent.parent.parent
LOG_DIR = Path(os.getenv("LOG_DIR", str(BASE_DIR / "logs")))
LOG_DIR.mkdir(parents=True, exist_ok=True)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

LOG_FILES = {
    "application": LOG_DIR / "application.log",
    "security": LOG_DIR / "security.log",
    "errors": LOG_DIR / "errors.log",
}

# Rotation settings
MAX_BYTES = 10 * 1024 * 1024  # 10MB
BACKUP_COUNT = 10

# ============================
# SENSITIVE DATA FILTER
# ============================


class SensitiveDataFilter(logging.Filter):
    """Redact signatures and secret material from logs"""

    PATTERNS = {
        # hex HMAC-SHA256 digests (and anything longer that looks like one)
        "digest": re.compile(r"\b[0-9a-fA-F]{64,}\b"),
        "signature_kv": re.compile(r"\b(signature)\s*[:=]\s*\S+", re.IGNORECASE),
        "secret_kv": re.compile(r"\b(secret|api_signature_key|key)\s*[:=]\s*\S+", re.IGNORECASE),
        "api_key": re.compile(r"(sk_|pk_|Bearer\s+)[A-Za-z0-9_-]+", re.IGNORECASE),
    }

    _secrets: tuple = ()

    @classmethod
    def register_secret(cls, secret: Optional[str]) -> None:
        """Make sure ``secret`` is masked wherever it shows up in a record."""
        # very short values would blank out unrelated text
        if secret and len(secret) >= 8 and secret not in cls._secrets:
            cls._secrets = cls._secrets + (secret,)

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = self._redact(record.msg)

        if record.args:
            record.args = tuple(
                self._redact(str(arg)) if isinstance(arg, str) else arg
                for arg in record.args
            )

        # Redact extra fields as well (important for JSON logs)
        for key, value in list(record.__dict__.items()):
            if key.startswith("_") or key in ("msg", "args"):
                continue
            record.__dict__[key] = self._redact_obj(value)

        return True

    def _redact_obj(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._redact(value)
        if isinstance(value, dict):
            return {k: self._redact_obj(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            redacted = [self._redact_obj(v) for v in value]
            return type(value)(redacted) if isinstance(value, tuple) else redacted
        return value

    def _redact(self, text: str) -> str:
        for secret in self._secrets:
            text = text.replace(secret, "[KEY_REDACTED]")
        text = self.PATTERNS["signature_kv"].sub(r"\1=[REDACTED]", text)
        text = self.PATTERNS["secret_kv"].sub(r"\1=[REDACTED]", text)
        text = self.PATTERNS["digest"].sub("[DIGEST_REDACTED]", text)
        text = self.PATTERNS["api_key"].sub(r"\1***", text)
        return text


# ============================
# REQUEST CONTEXT (request_id, ip)
# ============================


_request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
_ip_address_ctx: ContextVar[Optional[str]] = ContextVar("ip_address", default=None)


def set_request_context(
    *,
    request_id: Optional[str] = None,
    ip_address: Optional[str] = None,
) -> Dict[str, Any]:
    tokens: Dict[str, Any] = {}
    tokens["request_id"] = _request_id_ctx.set(request_id)
    tokens["ip_address"] = _ip_address_ctx.set(ip_address)
    return tokens


def clear_request_context(tokens: Dict[str, Any]) -> None:
    if not tokens:
        return
    _request_id_ctx.reset(tokens["request_id"])
    _ip_address_ctx.reset(tokens["ip_address"])


def get_request_id() -> Optional[str]:
    return _request_id_ctx.get()


class RequestContextFilter(logging.Filter):
    """Inject request-scoped context into each log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = _request_id_ctx.get()
        if not hasattr(record, "ip_address"):
            record.ip_address = _ip_address_ctx.get()
        return True


class JsonFormatter(logging.Formatter):

    RESERVED = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
    }

    def format(self, record: logging.LogRecord):
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Include all non-standard extra fields
        for key, value in record.__dict__.items():
            if key in self.RESERVED or key.startswith("_"):
                continue
            if key in log_data:
                continue
            log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


class ColoredFormatter(logging.Formatter):
    """Colored console output for better readability"""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        original_levelname = record.levelname
        try:
            record.levelname = f"{color}{record.levelname}{self.RESET}"
            return super().format(record)
        finally:
            record.levelname = original_levelname


def setup_file_handler(
    log_file: Path, level: int = logging.INFO, use_json: bool = True
):
    """Setup rotating file handler with JSON or text format"""
    handler = logging.handlers.RotatingFileHandler(
        log_file, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8"
    )
    handler.setLevel(level)

    if use_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))

    handler.addFilter(RequestContextFilter())
    handler.addFilter(SensitiveDataFilter())
    return handler


def setup_console_handler(level: int = logging.INFO):
    """Setup console handler with colored output"""
    handler = logging.StreamHandler()
    handler.setLevel(level)

    formatter = ColoredFormatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    handler.setFormatter(formatter)
    handler.addFilter(RequestContextFilter())
    handler.addFilter(SensitiveDataFilter())

    return handler


def get_logger(
    name: str,
    level: Optional[str] = None,
    console: bool = True,
    file_type: str = 'application'
):
    """
    Get or create a logger with specified configuration

    Args:
        name: Logger name
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        console: Enable console output
        file_type: Type of log file (application, security, errors)

    Returns:
        logging.Logger: Configured logger instance
    """
    logger = logging.getLogger(name)

    log_level = getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)
    logger.setLevel(log_level)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    logger.propagate = False

    if console:
        logger.addHandler(setup_console_handler(log_level))

    if file_type in LOG_FILES:
        logger.addHandler(setup_file_handler(
            LOG_FILES[file_type],
            log_level,
            use_json=True
        ))

    return logger


def get_application_logger(name: str = 'apisign'):
    """Get application logger (logs to application.log)"""
    return get_logger(name, file_type='application', console=True)


def get_security_logger(name: str = 'apisign.security'):
    """Get security logger (logs to security.log)"""
    return get_logger(name, file_type='security', console=True)


def get_error_logger(name: str = 'apisign.error'):
    """Get error logger (logs to errors.log, ERROR level only)"""
    return get_logger(name, level='ERROR', file_type='errors', console=True)


# ============================
# HIGH-LEVEL LOGGING FUNCTIONS
# ============================


def log_security_event(
    event_type: str,
    severity: str,
    ip_address: Optional[str] = None,
    details: Optional[Dict] = None
):
    """Log security event to security.log"""
    logger = get_security_logger()

    log_func = {
        'debug': logger.debug,
        'info': logger.info,
        'warning': logger.warning,
        'error': logger.error,
        'critical': logger.critical
    }.get(severity.lower(), logger.info)

    log_func(
        f"Security: {event_type}",
        extra={
            'event_type': event_type,
            'ip_address': ip_address,
            **(details or {})
        }
    )


def log_signature_rejection(
    path: str,
    method: str,
    code: str,
    timestamp: Optional[str] = None,
    ip_address: Optional[str] = None,
    **kwargs
):
    """Log a rejected signed request. Never pass the signature or the key here."""
    log_security_event(
        event_type="api_signature_rejected",
        severity="warning",
        ip_address=ip_address,
        details={
            'path': path,
            'method': method,
            'error_code': code,
            'request_timestamp': timestamp,
            **kwargs
        }
    )


def init_logging(secrets: Iterable[Optional[str]] = ()):
    """Initialize logging system (create log files, register secrets to mask)"""
    for log_file in LOG_FILES.values():
        if not log_file.exists():
            log_file.touch()

    for secret in secrets:
        SensitiveDataFilter.register_secret(secret)

    bootstrap_logger = get_application_logger("apisign.logging")
    bootstrap_logger.info(
        "Logging initialized",
        extra={"log_dir": str(LOG_DIR), "log_files": {k: str(v) for k, v in LOG_FILES.items()}},
    )
