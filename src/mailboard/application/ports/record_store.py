from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Mapping, Protocol

from mailboard.domain.entities.tenant import FieldKind

@dataclass(frozen=True)
class BoardField:
    id: str
    title: str
    kind: str | None = None

class RecordStore(Protocol):
    async def list_fields(self, tenant_id: str, access_token: str) -> list[BoardField]: ...
    async def create_field(self, tenant_id: str, access_token: str, title: str, kind: FieldKind) -> str: ...
    async def create_record(
        self, tenant_id: str, access_token: str, name: str, values: Mapping[str, Any]
    ) -> str: ...
