"""SQLite storage for tenants and message claims, so both survive restarts."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator, Optional

from loguru import logger

from mailboard.domain.entities.tenant import TenantConfig


class SQLiteClient:
    """SQLite client for tenant configs and the claim ledger."""

    def __init__(self, db_path: str | Path = "/app/data/mailboard.db"):
        self.db_path = Path(db_path)
        self._ensure_db()

    def _ensure_db(self) -> None:
        """Create database and tables if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._connection() as conn:
            conn.executescript("""
                PRAGMA journal_mode=WAL;

                CREATE TABLE IF NOT EXISTS tenants (
                    tenant_id TEXT PRIMARY KEY,
                    access_token TEXT NOT NULL,
                    field_mapping_json TEXT NOT NULL,
                    allowed_sender TEXT,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS claims (
                    message_id TEXT PRIMARY KEY,
                    claimed_at TEXT NOT NULL
                );
            """)
            logger.info(f"SQLite database initialized at {self.db_path}")

    @contextmanager
    def _connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path, timeout=30.0)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # -- tenants ---------------------------------------------------------

    @staticmethod
    def _row_to_tenant(row: sqlite3.Row) -> TenantConfig:
        return TenantConfig(
            tenant_id=row["tenant_id"],
            access_token=row["access_token"],
            field_mapping=json.loads(row["field_mapping_json"]),
            allowed_sender=row["allowed_sender"],
        )

    def load_tenant(self, tenant_id: str) -> Optional[TenantConfig]:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM tenants WHERE tenant_id = ?",
                (tenant_id,),
            ).fetchone()
        return self._row_to_tenant(row) if row else None

    def save_tenant(self, tenant: TenantConfig) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._connection() as conn:
            conn.execute(
                """INSERT INTO tenants (tenant_id, access_token, field_mapping_json, allowed_sender, updated_at)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(tenant_id) DO UPDATE SET
                       access_token = excluded.access_token,
                       field_mapping_json = excluded.field_mapping_json,
                       allowed_sender = excluded.allowed_sender,
                       updated_at = excluded.updated_at""",
                (
                    tenant.tenant_id,
                    tenant.access_token,
                    json.dumps(dict(tenant.field_mapping)),
                    tenant.allowed_sender,
                    now,
                ),
            )
        logger.debug(f"Saved tenant {tenant.tenant_id}")

    def all_tenants(self) -> list[TenantConfig]:
        with self._connection() as conn:
            rows = conn.execute("SELECT * FROM tenants ORDER BY tenant_id").fetchall()
        return [self._row_to_tenant(row) for row in rows]

    # -- claims ----------------------------------------------------------

    def try_claim(self, message_id: str) -> bool:
        """Insert the claim; the primary key makes check-and-set atomic."""
        now = datetime.now(timezone.utc).isoformat()
        with self._connection() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO claims (message_id, claimed_at) VALUES (?, ?)",
                (str(message_id), now),
            )
            return cursor.rowcount == 1

    def has_claim(self, message_id: str) -> bool:
        with self._connection() as conn:
            row = conn.execute(
                "SELECT 1 FROM claims WHERE message_id = ?",
                (str(message_id),),
            ).fetchone()
        return row is not None

    def count_claims(self) -> int:
        with self._connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM claims").fetchone()[0]


class SqliteTenantRepository:
    def __init__(self, client: SQLiteClient) -> None:
        self.client = client

    def load(self, tenant_id: str) -> Optional[TenantConfig]:
        return self.client.load_tenant(tenant_id)

    def save(self, tenant: TenantConfig) -> None:
        self.client.save_tenant(tenant)

    def all(self) -> list[TenantConfig]:
        return self.client.all_tenants()


class SqliteDedupLedger:
    def __init__(self, client: SQLiteClient) -> None:
        self.client = client

    def try_claim(self, message_id: str) -> bool:
        return self.client.try_claim(message_id)

    def settle(self, message_id: str) -> None:
        # persisted claims never expire
        pass

    def __contains__(self, message_id: object) -> bool:
        return self.client.has_claim(str(message_id))

    def __len__(self) -> int:
        return self.client.count_claims()
