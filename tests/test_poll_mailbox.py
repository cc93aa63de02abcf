"""
End-to-end tests for one poll cycle against fake mailbox and store.

Scenarios:
- Allowed sender with a full body creates one item and acks it
- Other sender is acked without an item
- Same message visible twice across cycles creates one item
- Body without a name is acked without an item
- Sender comparison is case-sensitive on the incoming side
- Creation failure leaves the message unseen and is not retried
- One bad message never stops the rest of the cycle
"""

import pytest

from conftest import ACCESS_TOKEN, MAPPING, TENANT_ID, make_email

from mailboard.application.dedup_ledger import InMemoryDedupLedger
from mailboard.application.use_cases.create_record import CreateRecordUseCase
from mailboard.application.use_cases.poll_mailbox import MailboxPoller, MessageOutcome
from mailboard.domain.errors import ExtractionIncompleteness, MailboxError, PolicyRejection
from mailboard.infrastructure.email.rfc822 import parse_inbound_email


SCENARIO_BODY = "Jane Doe\nPhone Number: 555-1234\nEmail Address: jane@x.com\nService: Checkup"


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_allowed_sender_creates_item_then_acks(self, poller, mailbox, store, configured_tenant):
        mailbox.deliver("1", make_email("doc@clinic.com", SCENARIO_BODY))

        report = await poller.run_cycle(TENANT_ID)

        assert report.outcomes == {"1": MessageOutcome.CREATED}
        [record] = store.records
        assert record["name"] == "Jane Doe"
        assert record["access_token"] == ACCESS_TOKEN
        assert record["values"] == {
            "colP": {"phone": "555-1234", "countryShortName": "IN"},
            "colE": {"email": "jane@x.com", "text": "jane@x.com"},
            "colS": {"label": "Checkup"},
        }
        assert "colN" not in record["values"]
        assert mailbox.mark_seen_calls == ["1"]

    @pytest.mark.asyncio
    async def test_display_name_in_from_header(self, poller, mailbox, store, configured_tenant):
        mailbox.deliver("1", make_email("Doctor Who <doc@clinic.com>", SCENARIO_BODY))

        report = await poller.run_cycle(TENANT_ID)

        assert report.outcomes["1"] is MessageOutcome.CREATED

    @pytest.mark.asyncio
    async def test_html_only_body_is_converted(self, poller, mailbox, store, configured_tenant):
        html = "<html><body><p>Jane Doe</p><p>Service: Checkup</p></body></html>"
        mailbox.deliver("1", make_email("doc@clinic.com", "", html=html))

        await poller.run_cycle(TENANT_ID)

        [record] = store.records
        assert record["name"] == "Jane Doe"
        assert record["values"] == {"colS": {"label": "Checkup"}}

    @pytest.mark.asyncio
    async def test_html_title_not_taken_as_name(self, poller, mailbox, store, configured_tenant):
        html = (
            "<html><head><title>Intake form</title></head>"
            "<body><p>Jane Doe</p><p>Service: Checkup</p></body></html>"
        )
        mailbox.deliver("1", make_email("doc@clinic.com", "", html=html))

        report = await poller.run_cycle(TENANT_ID)

        assert report.outcomes == {"1": MessageOutcome.CREATED}
        [record] = store.records
        assert record["name"] == "Jane Doe"
        assert record["values"] == {"colS": {"label": "Checkup"}}

    @pytest.mark.asyncio
    async def test_messages_processed_in_mailbox_order(self, poller, mailbox, store, configured_tenant):
        mailbox.deliver("1", make_email("doc@clinic.com", "First"))
        mailbox.deliver("2", make_email("doc@clinic.com", "Second"))

        await poller.run_cycle(TENANT_ID)

        assert [r["name"] for r in store.records] == ["First", "Second"]
        assert mailbox.mark_seen_calls == ["1", "2"]


class TestSenderPolicy:
    @pytest.mark.asyncio
    async def test_other_sender_acked_without_item(self, poller, mailbox, store, configured_tenant):
        mailbox.deliver("1", make_email("other@evil.com", SCENARIO_BODY))

        report = await poller.run_cycle(TENANT_ID)

        assert report.outcomes == {"1": MessageOutcome.REJECTED_SENDER}
        assert store.records == []
        assert mailbox.mark_seen_calls == ["1"]

    @pytest.mark.asyncio
    async def test_uppercase_incoming_sender_is_rejected(self, poller, mailbox, store, registry):
        registry.register(TENANT_ID, ACCESS_TOKEN, MAPPING)
        registry.set_allowed_sender(TENANT_ID, "a@x.com")
        mailbox.deliver("1", make_email("A@X.com", SCENARIO_BODY))

        report = await poller.run_cycle(TENANT_ID)

        assert report.outcomes["1"] is MessageOutcome.REJECTED_SENDER
        assert store.records == []

    @pytest.mark.asyncio
    async def test_no_allowed_sender_rejects_everything(self, poller, mailbox, store, registry):
        registry.register(TENANT_ID, ACCESS_TOKEN, MAPPING)
        mailbox.deliver("1", make_email("doc@clinic.com", SCENARIO_BODY))

        report = await poller.run_cycle(TENANT_ID)

        assert report.outcomes["1"] is MessageOutcome.REJECTED_SENDER
        assert store.records == []
        assert mailbox.mark_seen_calls == ["1"]


class TestDeduplication:
    @pytest.mark.asyncio
    async def test_redelivered_message_creates_one_item(self, poller, mailbox, store, configured_tenant):
        mailbox.deliver("1", make_email("doc@clinic.com", SCENARIO_BODY))

        first = await poller.run_cycle(TENANT_ID)
        mailbox.redeliver("1")
        second = await poller.run_cycle(TENANT_ID)

        assert first.outcomes["1"] is MessageOutcome.CREATED
        assert second.outcomes["1"] is MessageOutcome.DUPLICATE
        assert len(store.records) == 1
        assert mailbox.mark_seen_calls == ["1"]

    @pytest.mark.asyncio
    async def test_claim_exists_before_creation(self, poller, mailbox, store, ledger, configured_tenant):
        claimed_at_create: list[bool] = []
        original = store.create_record

        async def spy(tenant_id, access_token, name, values):
            claimed_at_create.append("1" in ledger)
            return await original(tenant_id, access_token, name, values)

        store.create_record = spy
        mailbox.deliver("1", make_email("doc@clinic.com", SCENARIO_BODY))

        await poller.run_cycle(TENANT_ID)

        assert claimed_at_create == [True]

    @pytest.mark.asyncio
    async def test_ledger_shared_across_tenants(self, poller, mailbox, store, registry):
        for tenant_id in ("A", "B"):
            registry.register(tenant_id, ACCESS_TOKEN, MAPPING)
            registry.set_allowed_sender(tenant_id, "doc@clinic.com")
        mailbox.deliver("1", make_email("doc@clinic.com", SCENARIO_BODY))

        await poller.run_cycle("A")
        mailbox.redeliver("1")
        report_b = await poller.run_cycle("B")

        assert report_b.outcomes["1"] is MessageOutcome.DUPLICATE
        assert [r["tenant_id"] for r in store.records] == ["A"]


class TestIncompleteMessages:
    @pytest.mark.asyncio
    async def test_blank_body_acked_without_item(self, poller, mailbox, store, configured_tenant):
        mailbox.deliver("1", make_email("doc@clinic.com", "\n   \n\t\n"))

        report = await poller.run_cycle(TENANT_ID)

        assert report.outcomes == {"1": MessageOutcome.SKIPPED_NO_NAME}
        assert report.error is None
        assert store.records == []
        assert mailbox.mark_seen_calls == ["1"]


class TestFailures:
    @pytest.mark.asyncio
    async def test_creation_failure_not_acked_and_not_retried(
        self, poller, mailbox, store, configured_tenant, upstream_failure
    ):
        store.fail_create_record = upstream_failure
        mailbox.deliver("1", make_email("doc@clinic.com", SCENARIO_BODY))

        first = await poller.run_cycle(TENANT_ID)
        store.fail_create_record = None
        second = await poller.run_cycle(TENANT_ID)

        assert first.outcomes["1"] is MessageOutcome.FAILED
        assert first.failed_uids == ["1"]
        assert mailbox.mark_seen_calls == []
        assert second.outcomes["1"] is MessageOutcome.DUPLICATE
        assert store.records == []

    @pytest.mark.asyncio
    async def test_failed_creation_not_retried_after_ttl(
        self, mailbox, registry, store, configured_tenant, upstream_failure
    ):
        clock = FakeClock()
        poller = MailboxPoller(
            mailbox=mailbox,
            registry=registry,
            ledger=InMemoryDedupLedger(ttl_seconds=100, clock=clock),
            creator=CreateRecordUseCase(store),
        )
        attempts = []

        async def failing(tenant_id, access_token, name, values):
            attempts.append(name)
            raise upstream_failure

        store.create_record = failing
        mailbox.deliver("1", make_email("doc@clinic.com", SCENARIO_BODY))

        first = await poller.run_cycle(TENANT_ID)
        clock.now += 200
        second = await poller.run_cycle(TENANT_ID)

        assert first.outcomes["1"] is MessageOutcome.FAILED
        assert second.outcomes["1"] is MessageOutcome.DUPLICATE
        assert attempts == ["Jane Doe"]

    @pytest.mark.asyncio
    async def test_unacked_item_not_recreated_after_ttl(self, mailbox, registry, store, configured_tenant):
        clock = FakeClock()
        poller = MailboxPoller(
            mailbox=mailbox,
            registry=registry,
            ledger=InMemoryDedupLedger(ttl_seconds=100, clock=clock),
            creator=CreateRecordUseCase(store),
        )

        def broken_mark_seen(uid):
            raise MailboxError("STORE failed")

        mailbox.mark_seen = broken_mark_seen
        mailbox.deliver("1", make_email("doc@clinic.com", SCENARIO_BODY))

        await poller.run_cycle(TENANT_ID)
        clock.now += 200
        second = await poller.run_cycle(TENANT_ID)

        assert second.outcomes["1"] is MessageOutcome.DUPLICATE
        assert len(store.records) == 1

    @pytest.mark.asyncio
    async def test_acked_claim_expires_after_ttl(self, mailbox, registry, store, configured_tenant):
        clock = FakeClock()
        ledger = InMemoryDedupLedger(ttl_seconds=100, clock=clock)
        poller = MailboxPoller(
            mailbox=mailbox,
            registry=registry,
            ledger=ledger,
            creator=CreateRecordUseCase(store),
        )
        mailbox.deliver("1", make_email("doc@clinic.com", SCENARIO_BODY))

        await poller.run_cycle(TENANT_ID)
        clock.now += 200

        assert "1" not in ledger

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_cycle(
        self, poller, mailbox, store, configured_tenant, upstream_failure
    ):
        mailbox.deliver("1", make_email("doc@clinic.com", "Fails"))
        mailbox.deliver("2", make_email("doc@clinic.com", "Works"))
        original = store.create_record

        async def flaky(tenant_id, access_token, name, values):
            if name == "Fails":
                raise upstream_failure
            return await original(tenant_id, access_token, name, values)

        store.create_record = flaky

        report = await poller.run_cycle(TENANT_ID)

        assert report.outcomes == {"1": MessageOutcome.FAILED, "2": MessageOutcome.CREATED}
        assert [r["name"] for r in store.records] == ["Works"]

    @pytest.mark.asyncio
    async def test_unparseable_processing_is_contained(self, poller, mailbox, store, configured_tenant, monkeypatch):
        def explode(uid, data):
            raise UnicodeDecodeError("utf-8", b"\xff", 0, 1, "bad byte")

        monkeypatch.setattr("mailboard.application.use_cases.poll_mailbox.parse_inbound_email", explode)
        mailbox.deliver("1", make_email("doc@clinic.com", SCENARIO_BODY))

        report = await poller.run_cycle(TENANT_ID)

        assert report.outcomes["1"] is MessageOutcome.FAILED

    @pytest.mark.asyncio
    async def test_ack_failure_after_creation_still_counts_as_created(
        self, poller, mailbox, store, configured_tenant
    ):
        def broken_mark_seen(uid):
            raise MailboxError("STORE failed")

        mailbox.mark_seen = broken_mark_seen
        mailbox.deliver("1", make_email("doc@clinic.com", SCENARIO_BODY))

        report = await poller.run_cycle(TENANT_ID)

        assert report.outcomes["1"] is MessageOutcome.CREATED
        assert len(store.records) == 1

    @pytest.mark.asyncio
    async def test_listing_failure_ends_cycle_quietly(self, poller, mailbox, configured_tenant):
        mailbox.fail_listing = True

        report = await poller.run_cycle(TENANT_ID)

        assert report.outcomes == {}
        assert "connection reset" in report.error

    @pytest.mark.asyncio
    async def test_unknown_tenant(self, poller, mailbox):
        report = await poller.run_cycle("missing")

        assert report.error == "tenant not registered"
        assert mailbox.list_calls == 0


class TestSkipReasons:
    def test_sender_mismatch_raises_policy_rejection(self, configured_tenant):
        msg = parse_inbound_email("1", make_email("other@evil.com", SCENARIO_BODY))

        with pytest.raises(PolicyRejection) as exc_info:
            MailboxPoller._check_sender(configured_tenant, msg)

        assert exc_info.value.context == {"sender": "other@evil.com"}

    def test_missing_allowed_sender_raises_policy_rejection(self, registry):
        tenant = registry.register(TENANT_ID, ACCESS_TOKEN, MAPPING)
        msg = parse_inbound_email("1", make_email("doc@clinic.com", SCENARIO_BODY))

        with pytest.raises(PolicyRejection):
            MailboxPoller._check_sender(tenant, msg)

    def test_blank_body_raises_extraction_incompleteness(self):
        msg = parse_inbound_email("1", make_email("doc@clinic.com", "   \n"))

        with pytest.raises(ExtractionIncompleteness):
            MailboxPoller._extract_fields(msg)

    def test_named_body_extracts(self):
        msg = parse_inbound_email("1", make_email("doc@clinic.com", SCENARIO_BODY))

        assert MailboxPoller._extract_fields(msg).name == "Jane Doe"
