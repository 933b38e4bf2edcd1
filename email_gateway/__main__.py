"""Entry point: ``python -m email_gateway``."""

from __future__ import annotations

import sys

import structlog
import uvicorn

from .config import load_settings
from .errors import ConfigError
from .logging import setup_logging


def main() -> None:
    try:
        settings = load_settings()
    except ConfigError as exc:
        setup_logging()
        structlog.get_logger().error("gateway_config_invalid", error=exc.message)
        sys.exit(1)

    setup_logging(json=settings.log_json, level=settings.log_level)

    uvicorn.run(
        "email_gateway.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
