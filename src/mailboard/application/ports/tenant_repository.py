from __future__ import annotations
from typing import Optional, Protocol
from mailboard.domain.entities.tenant import TenantConfig

class TenantRepository(Protocol):
    def load(self, tenant_id: str) -> Optional[TenantConfig]: ...
    def save(self, tenant: TenantConfig) -> None: ...
    def all(self) -> list[TenantConfig]: ...
