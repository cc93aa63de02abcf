"""SQLite-backed tenant and claim storage."""

from mailboard.infrastructure.sqlite.client import (
    SQLiteClient,
    SqliteDedupLedger,
    SqliteTenantRepository,
)

__all__ = ["SQLiteClient", "SqliteDedupLedger", "SqliteTenantRepository"]
