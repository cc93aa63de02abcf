"""Turn unseen intake emails into board items, once per message."""

from __future__ import annotations

import asyncio
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from loguru import logger

from mailboard.application.dedup_ledger import DedupLedger
from mailboard.application.extraction import extract
from mailboard.application.ports.mailbox import Mailbox, RawEmail
from mailboard.application.tenant_registry import TenantRegistry
from mailboard.application.use_cases.create_record import CreateRecordUseCase
from mailboard.domain.entities.inbound_email import ExtractedFields, InboundEmail
from mailboard.domain.entities.tenant import TenantConfig
from mailboard.domain.errors import ExtractionIncompleteness, MailboxError, PolicyRejection
from mailboard.infrastructure.email.rfc822 import parse_inbound_email


class MessageOutcome(str, Enum):
    CREATED = "created"
    DUPLICATE = "duplicate"
    REJECTED_SENDER = "rejected_sender"
    SKIPPED_NO_NAME = "skipped_no_name"
    FAILED = "failed"


@dataclass
class CycleReport:
    tenant_id: str
    outcomes: dict[str, MessageOutcome] = field(default_factory=dict)
    error: Optional[str] = None

    def count(self, outcome: MessageOutcome) -> int:
        return sum(1 for o in self.outcomes.values() if o is outcome)

    @property
    def failed_uids(self) -> list[str]:
        return [uid for uid, o in self.outcomes.items() if o is MessageOutcome.FAILED]

    def summary(self) -> dict[str, int]:
        return dict(Counter(o.value for o in self.outcomes.values()))


class MailboxPoller:
    """One poll cycle for one tenant.

    Flow per unseen message:
    1. Claim the UID in the ledger (already claimed: skip, no ack)
    2. Parse sender and body
    3. Sender must equal the tenant's allowed sender, else ack and skip
    4. Extract fields; no name means ack and skip
    5. Create the board item
    6. Ack (flag \\Seen); only then may the claim expire

    A failed creation is not acked, and its claim is held with no expiry, so
    it is never retried in this process. Those UIDs need manual reconciliation.
    """

    def __init__(
        self,
        mailbox: Mailbox,
        registry: TenantRegistry,
        ledger: DedupLedger,
        creator: CreateRecordUseCase,
    ) -> None:
        self.mailbox = mailbox
        self.registry = registry
        self.ledger = ledger
        self.creator = creator

    async def run_cycle(self, tenant_id: str) -> CycleReport:
        report = CycleReport(tenant_id=tenant_id)

        tenant = self.registry.get(tenant_id)
        if tenant is None:
            logger.warning(f"Tenant {tenant_id} is not registered, skipping poll")
            report.error = "tenant not registered"
            return report

        try:
            emails = await asyncio.to_thread(self.mailbox.list_unseen)
        except Exception as e:
            logger.error(f"Listing unseen mail failed for {tenant_id}: {e}")
            report.error = str(e)
            return report

        for raw in emails:
            try:
                outcome = await self._process_email(tenant, raw)
            except Exception as e:
                logger.exception(f"Failed to process UID {raw.uid} for {tenant_id}: {e}")
                outcome = MessageOutcome.FAILED
            report.outcomes[raw.uid] = outcome

        if report.outcomes:
            logger.info(f"Poll for {tenant_id}: {report.summary()}")
        return report

    async def _process_email(self, tenant: TenantConfig, raw: RawEmail) -> MessageOutcome:
        if not self.ledger.try_claim(raw.uid):
            logger.debug(f"UID {raw.uid} already claimed, skipping")
            return MessageOutcome.DUPLICATE

        msg = parse_inbound_email(raw.uid, raw.rfc822_bytes)

        try:
            self._check_sender(tenant, msg)
            fields = self._extract_fields(msg)
        except PolicyRejection as e:
            logger.info(f"Skipping UID {raw.uid} for {tenant.tenant_id}: {e}")
            await self._ack(tenant.tenant_id, raw.uid)
            return MessageOutcome.REJECTED_SENDER
        except ExtractionIncompleteness as e:
            logger.info(f"Skipping UID {raw.uid} for {tenant.tenant_id}: {e}")
            await self._ack(tenant.tenant_id, raw.uid)
            return MessageOutcome.SKIPPED_NO_NAME

        try:
            await self.creator.create(tenant, fields)
        except Exception as e:
            logger.error(
                f"Item creation failed for {tenant.tenant_id} UID {raw.uid} "
                f"(subject: {msg.subject[:50]!r}); left unseen for manual reconciliation: {e}"
            )
            return MessageOutcome.FAILED

        await self._ack(tenant.tenant_id, raw.uid)
        return MessageOutcome.CREATED

    @staticmethod
    def _check_sender(tenant: TenantConfig, msg: InboundEmail) -> None:
        # Stored sender is lowercased; the incoming one is compared as-is
        if not tenant.allowed_sender:
            raise PolicyRejection("No allowed sender configured", context={"sender": msg.sender})
        if msg.sender != tenant.allowed_sender:
            raise PolicyRejection("Sender not allowed", context={"sender": msg.sender})

    @staticmethod
    def _extract_fields(msg: InboundEmail) -> ExtractedFields:
        fields = extract(msg.text)
        if not fields.actionable:
            raise ExtractionIncompleteness("No name in message body", context={"subject": msg.subject[:50]})
        return fields

    async def _ack(self, tenant_id: str, uid: str) -> bool:
        try:
            await asyncio.to_thread(self.mailbox.mark_seen, uid)
        except MailboxError as e:
            # the claim stays held, so the message will not be reprocessed here
            logger.error(f"Could not flag UID {uid} as seen for {tenant_id}: {e}")
            return False
        self.ledger.settle(uid)
        return True
