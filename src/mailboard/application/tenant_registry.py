"""Tenant (board) registry."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Mapping, Optional

from loguru import logger

from mailboard.application.ports.tenant_repository import TenantRepository
from mailboard.application.use_cases.ensure_schema import EnsureSchemaUseCase
from mailboard.domain.entities.tenant import TenantConfig
from mailboard.domain.errors import NotFoundError


class InMemoryTenantRepository:
    """Process-local tenant storage. Lost on restart."""

    def __init__(self) -> None:
        self._tenants: dict[str, TenantConfig] = {}

    def load(self, tenant_id: str) -> Optional[TenantConfig]:
        return self._tenants.get(tenant_id)

    def save(self, tenant: TenantConfig) -> None:
        self._tenants[tenant.tenant_id] = tenant

    def all(self) -> list[TenantConfig]:
        return list(self._tenants.values())


def normalize_sender(email: str) -> str:
    return email.strip().lower()


class TenantRegistry:
    """Maps tenant id to token, field mapping and allowed sender.

    Written by onboarding and the sender config endpoint, read by the
    poller and the record creator.
    """

    def __init__(
        self,
        repository: TenantRepository | None = None,
        schema: EnsureSchemaUseCase | None = None,
    ) -> None:
        self.repository = repository or InMemoryTenantRepository()
        self.schema = schema
        self._lock = threading.Lock()

    def register(
        self,
        tenant_id: str,
        access_token: str,
        field_mapping: Mapping[str, str],
    ) -> TenantConfig:
        """Insert or replace a tenant. A configured sender survives re-registration."""
        with self._lock:
            previous = self.repository.load(tenant_id)
            tenant = TenantConfig(
                tenant_id=tenant_id,
                access_token=access_token,
                field_mapping=field_mapping,
                allowed_sender=previous.allowed_sender if previous else None,
            )
            self.repository.save(tenant)
        logger.info(f"Registered tenant {tenant_id} with fields {dict(tenant.field_mapping)}")
        return tenant

    def set_allowed_sender(self, tenant_id: str, email: str) -> TenantConfig:
        with self._lock:
            tenant = self.repository.load(tenant_id)
            if tenant is None:
                raise NotFoundError("Tenant not registered", context={"tenant_id": tenant_id})
            tenant = replace(tenant, allowed_sender=normalize_sender(email))
            self.repository.save(tenant)
        logger.info(f"Allowed sender for {tenant_id} set to {tenant.allowed_sender}")
        return tenant

    def get(self, tenant_id: str) -> Optional[TenantConfig]:
        return self.repository.load(tenant_id)

    def tenants(self) -> list[TenantConfig]:
        return self.repository.all()

    async def onboard(self, tenant_id: str, access_token: str) -> TenantConfig:
        """Resolve the board's fields, then register.

        Raises SchemaResolutionError and registers nothing if any field
        cannot be found or created.
        """
        if self.schema is None:
            raise RuntimeError("TenantRegistry was built without a schema resolver")
        mapping = await self.schema.run(tenant_id, access_token)
        return self.register(tenant_id, access_token, mapping)
