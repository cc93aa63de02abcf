"""Run the admin API together with the per-tenant pollers."""

from __future__ import annotations

import argparse

import uvicorn
from loguru import logger

from mailboard.infrastructure.logging import configure_logging
from mailboard.infrastructure.settings import get_settings


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Serve the mailboard API and pollers")
    parser.add_argument("--host", default=settings.api_host)
    parser.add_argument("--port", type=int, default=settings.api_port)
    args = parser.parse_args()

    configure_logging(settings.log_level)

    logger.info("=" * 60)
    logger.info(f"{settings.app_name} v{settings.app_version}")
    logger.info("=" * 60)

    if not settings.imap_configured:
        logger.error("No mailbox configured! Set IMAP_USER and IMAP_PASSWORD")
        return 1

    logger.info(f"Mailbox: {settings.imap_user}@{settings.imap_host}/{settings.imap_folder}")
    logger.info(f"Poll interval: {settings.poll_interval_seconds:g} seconds")

    uvicorn.run(
        "mailboard.api.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
