"""Application layer - extraction, registry, ledger and the polling pipeline."""

from mailboard.application.dedup_ledger import InMemoryDedupLedger
from mailboard.application.extraction import extract
from mailboard.application.scheduler import PollingScheduler
from mailboard.application.tenant_registry import TenantRegistry

__all__ = [
    "InMemoryDedupLedger",
    "PollingScheduler",
    "TenantRegistry",
    "extract",
]
