"""Entry point: ``python -m apiserver`` serves the health check from environment settings."""

import logging
import sys

from apiserver.config import Config, load_settings
from apiserver.core.errors import ConfigurationError
from apiserver.infrastructure.observability import setup_logging
from apiserver.server import Server

logger = logging.getLogger("apiserver")


def main() -> int:
    try:
        settings = load_settings()
    except ConfigurationError as e:
        setup_logging()
        logger.error(e.message, extra={"error_code": e.code})
        return 1
    setup_logging(settings.log_level, settings.log_format)
    try:
        server = Server(Config(settings, logger=logger))
    except ConfigurationError as e:
        logger.error(e.message, extra={"error_code": e.code})
        return 1
    server.start()
    return 0


if __name__ == "__main__":
    sys.exit(main())
