"""One-shot poll for tenants persisted in the state database."""

from __future__ import annotations

import argparse
import asyncio

from loguru import logger

from mailboard.infrastructure.logging import configure_logging
from mailboard.infrastructure.services import Services, build_services
from mailboard.infrastructure.settings import get_settings


async def poll_once(services: Services, tenant_ids: list[str]) -> int:
    """Run a single cycle per tenant. Returns the number of items created."""
    created = 0
    try:
        for tenant_id in tenant_ids:
            report = await services.poller.run_cycle(tenant_id)
            summary = report.summary()
            created += summary.get("created", 0)
            print(f"{tenant_id}: {summary or 'no unseen mail'}")
            if report.error:
                print(f"{tenant_id}: error: {report.error}")
            if report.failed_uids:
                print(f"{tenant_id}: needs reconciliation: {', '.join(report.failed_uids)}")
    finally:
        services.mailbox.disconnect()
    return created


def main() -> int:
    parser = argparse.ArgumentParser(description="Poll the mailbox once for registered boards")
    parser.add_argument("--tenant", action="append", help="Board id to poll (repeatable, default: all)")
    args = parser.parse_args()

    settings = get_settings()
    configure_logging(settings.log_level)

    if not settings.state_db_path:
        logger.error("STATE_DB_PATH is required: tenants are only known from persisted state")
        return 1

    services = build_services(settings)
    tenant_ids = args.tenant or [t.tenant_id for t in services.registry.tenants()]
    if not tenant_ids:
        logger.error("No tenants registered")
        return 1

    created = asyncio.run(poll_once(services, tenant_ids))
    print(f"Created {created} items")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
