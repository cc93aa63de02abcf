"""
Shared fixtures and in-memory fakes.

FakeMailbox and FakeRecordStore stand in for IMAP and monday.com so the
pipeline can be driven end to end without network access.
"""

import sys
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Mapping

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from mailboard.application.dedup_ledger import InMemoryDedupLedger
from mailboard.application.ports.mailbox import RawEmail
from mailboard.application.ports.record_store import BoardField
from mailboard.application.tenant_registry import TenantRegistry
from mailboard.application.use_cases.create_record import CreateRecordUseCase
from mailboard.application.use_cases.ensure_schema import EnsureSchemaUseCase
from mailboard.application.use_cases.poll_mailbox import MailboxPoller
from mailboard.domain.entities.tenant import FieldKind
from mailboard.domain.errors import MailboxError, RecordStoreError


TENANT_ID = '1234567890'
ACCESS_TOKEN = 'tok_test'
MAPPING = {'email': 'colE', 'phone': 'colP', 'service': 'colS', 'note': 'colN'}
ALLOWED_SENDER = 'doc@clinic.com'


def make_email(
    sender: str,
    body: str,
    subject: str = 'New patient',
    html: str | None = None,
) -> bytes:
    """Build RFC822 bytes. ``html`` alone gives an HTML-only message."""
    msg = EmailMessage()
    msg['From'] = sender
    msg['To'] = 'intake@clinic.com'
    msg['Subject'] = subject
    if html is not None and not body:
        msg.set_content(html, subtype='html')
    else:
        msg.set_content(body)
        if html is not None:
            msg.add_alternative(html, subtype='html')
    return msg.as_bytes()


class FakeMailbox:
    """Unseen messages in insertion order; ``mark_seen`` hides them."""

    def __init__(self) -> None:
        self.messages: dict[str, bytes] = {}
        self.seen: set[str] = set()
        self.mark_seen_calls: list[str] = []
        self.list_calls = 0
        self.fail_listing = False
        self.disconnected = False

    def deliver(self, uid: str, rfc822_bytes: bytes) -> None:
        self.messages[uid] = rfc822_bytes

    def redeliver(self, uid: str) -> None:
        """Simulate at-least-once visibility: message shows up unseen again."""
        self.seen.discard(uid)

    def list_unseen(self) -> list[RawEmail]:
        self.list_calls += 1
        if self.fail_listing:
            raise MailboxError('connection reset')
        return [
            RawEmail(provider='fake', account='intake@clinic.com', folder='INBOX', uid=uid, rfc822_bytes=data)
            for uid, data in self.messages.items()
            if uid not in self.seen
        ]

    def mark_seen(self, uid: str) -> None:
        self.mark_seen_calls.append(uid)
        self.seen.add(uid)

    def disconnect(self) -> None:
        self.disconnected = True


class FakeRecordStore:
    """Board columns and created items held in memory."""

    def __init__(self, fields: list[BoardField] | None = None) -> None:
        self.fields: dict[str, list[BoardField]] = {}
        self.default_fields = list(fields or [])
        self.created_fields: list[tuple[str, str, FieldKind]] = []
        self.records: list[dict[str, Any]] = []
        self.fail_create_record: Exception | None = None
        self.fail_list_fields: Exception | None = None
        self._next_id = 100

    def _board(self, tenant_id: str) -> list[BoardField]:
        return self.fields.setdefault(tenant_id, list(self.default_fields))

    async def list_fields(self, tenant_id: str, access_token: str) -> list[BoardField]:
        if self.fail_list_fields:
            raise self.fail_list_fields
        return list(self._board(tenant_id))

    async def create_field(self, tenant_id: str, access_token: str, title: str, kind: FieldKind) -> str:
        self._next_id += 1
        field_id = f'{kind.value}_{self._next_id}'
        self._board(tenant_id).append(BoardField(id=field_id, title=title, kind=kind.value))
        self.created_fields.append((tenant_id, title, kind))
        return field_id

    async def create_record(
        self, tenant_id: str, access_token: str, name: str, values: Mapping[str, Any]
    ) -> str:
        if self.fail_create_record:
            raise self.fail_create_record
        self._next_id += 1
        self.records.append(
            {'tenant_id': tenant_id, 'access_token': access_token, 'name': name, 'values': dict(values)}
        )
        return str(self._next_id)


@pytest.fixture
def mailbox() -> FakeMailbox:
    return FakeMailbox()


@pytest.fixture
def store() -> FakeRecordStore:
    return FakeRecordStore()


@pytest.fixture
def registry(store: FakeRecordStore) -> TenantRegistry:
    return TenantRegistry(schema=EnsureSchemaUseCase(store))


@pytest.fixture
def ledger() -> InMemoryDedupLedger:
    return InMemoryDedupLedger()


@pytest.fixture
def configured_tenant(registry: TenantRegistry):
    """Tenant from the intake scenarios: fixed mapping plus allowed sender."""
    registry.register(TENANT_ID, ACCESS_TOKEN, MAPPING)
    return registry.set_allowed_sender(TENANT_ID, ALLOWED_SENDER)


@pytest.fixture
def poller(mailbox, registry, ledger, store) -> MailboxPoller:
    return MailboxPoller(
        mailbox=mailbox,
        registry=registry,
        ledger=ledger,
        creator=CreateRecordUseCase(store),
    )


@pytest.fixture
def upstream_failure() -> RecordStoreError:
    return RecordStoreError('monday.com returned HTTP 500', status_code=500)
