#!/usr/bin/env python3
"""
Start the signing gateway under uvicorn.

Bind address, port, log level and optional TLS files come from the same
Settings the app uses (HOST, PORT, LOG_LEVEL, SSL_KEYFILE, SSL_CERTFILE).
"""
import sys

import uvicorn
from dotenv import load_dotenv
from pydantic import ValidationError

from apisign.config.config import Settings

APP_TARGET = "apisign.main:app"


def uvicorn_options(settings: Settings) -> dict:
    options = {
        "host": settings.host,
        "port": settings.port,
        "log_level": settings.log_level.lower(),
        "access_log": True,
        "timeout_keep_alive": 30,
    }
    if settings.ssl_keyfile and settings.ssl_certfile:
        options["ssl_keyfile"] = settings.ssl_keyfile
        options["ssl_certfile"] = settings.ssl_certfile
    return options


def main() -> int:
    load_dotenv()
    try:
        settings = Settings()
    except ValidationError as e:
        print(f"Invalid server configuration: {e}", file=sys.stderr)
        return 2

    options = uvicorn_options(settings)
    scheme = "https" if "ssl_certfile" in options else "http"
    print(f"Starting {APP_TARGET} on {scheme}://{options['host']}:{options['port']}")
    uvicorn.run(APP_TARGET, **options)
    return 0


if __name__ == "__main__":
    sys.exit(main())
