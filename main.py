"""
ReviewHub - Main Entry Point

Multi-location review management platform.
"""

import structlog
import uvicorn

from reviewhub.config import get_settings
from reviewhub.core.logging import configure_logging

logger = structlog.get_logger(__name__)


def main():
    """Main entry point for running the application."""
    settings = get_settings()
    configure_logging(settings.log_level, json_logs=not settings.is_development)

    logger.info("starting_server", environment=settings.app_env)

    uvicorn.run(
        "reviewhub.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
