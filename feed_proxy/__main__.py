"""Run the proxy with uvicorn: ``python -m feed_proxy``."""

import logging
import sys

import uvicorn

from feed_proxy.core.config import settings

logger = logging.getLogger("feed_proxy")


def main() -> None:
    try:
        uvicorn.run(
            "feed_proxy.main:app",
            host=settings.app.host,
            port=settings.app.port,
            log_config=None,
        )
    except (OSError, SystemExit) as exc:
        logger.critical("app.fatal", extra={"error_type": type(exc).__name__, "error_msg": str(exc)})
        sys.exit(1)


if __name__ == "__main__":
    main()
