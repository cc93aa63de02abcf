"""Build the object graph from settings."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from mailboard.application.dedup_ledger import DedupLedger, InMemoryDedupLedger
from mailboard.application.ports.mailbox import Mailbox
from mailboard.application.ports.record_store import RecordStore
from mailboard.application.scheduler import PollingScheduler
from mailboard.application.tenant_registry import InMemoryTenantRepository, TenantRegistry
from mailboard.application.use_cases.create_record import CreateRecordUseCase
from mailboard.application.use_cases.ensure_schema import EnsureSchemaUseCase
from mailboard.application.use_cases.poll_mailbox import MailboxPoller
from mailboard.infrastructure.email.providers.imap import ImapConfig, ImapMailbox
from mailboard.infrastructure.monday import MondayClient
from mailboard.infrastructure.settings import Settings
from mailboard.infrastructure.sqlite import SQLiteClient, SqliteDedupLedger, SqliteTenantRepository


@dataclass
class Services:
    settings: Settings
    mailbox: Mailbox
    store: RecordStore
    registry: TenantRegistry
    ledger: DedupLedger
    poller: MailboxPoller
    scheduler: PollingScheduler


def build_services(
    settings: Settings,
    mailbox: Mailbox | None = None,
    store: RecordStore | None = None,
) -> Services:
    """Wire everything. ``mailbox``/``store`` may be injected (tests, dry runs)."""
    if mailbox is None:
        mailbox = ImapMailbox(
            ImapConfig(
                host=settings.imap_host,
                port=settings.imap_port,
                user=settings.imap_user,
                password=settings.imap_password.get_secret_value(),
                folder=settings.imap_folder,
                timeout_seconds=settings.imap_timeout_seconds,
            )
        )
    if store is None:
        store = MondayClient(
            base_url=settings.monday_api_url,
            api_version=settings.monday_api_version,
            timeout=settings.monday_timeout_seconds,
        )

    if settings.state_db_path:
        sqlite = SQLiteClient(settings.state_db_path)
        repository = SqliteTenantRepository(sqlite)
        ledger: DedupLedger = SqliteDedupLedger(sqlite)
        logger.info(f"Persisting tenants and claims to {settings.state_db_path}")
    else:
        repository = InMemoryTenantRepository()
        ledger = InMemoryDedupLedger(
            ttl_seconds=settings.dedup_ttl_hours * 3600,
            max_entries=settings.dedup_max_entries,
        )
        logger.info("Tenants and claims kept in memory (STATE_DB_PATH not set)")

    registry = TenantRegistry(repository, EnsureSchemaUseCase(store))
    poller = MailboxPoller(
        mailbox=mailbox,
        registry=registry,
        ledger=ledger,
        creator=CreateRecordUseCase(store, phone_country=settings.default_phone_country),
    )
    scheduler = PollingScheduler(poller, interval_seconds=settings.poll_interval_seconds)

    return Services(
        settings=settings,
        mailbox=mailbox,
        store=store,
        registry=registry,
        ledger=ledger,
        poller=poller,
        scheduler=scheduler,
    )
