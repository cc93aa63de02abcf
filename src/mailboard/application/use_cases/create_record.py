"""Turn extracted fields into a board item."""

from __future__ import annotations

from typing import Any

from loguru import logger

from mailboard.application.ports.record_store import RecordStore
from mailboard.domain.entities.inbound_email import ExtractedFields
from mailboard.domain.entities.tenant import DESTINATION_FIELDS, FieldKind, TenantConfig
from mailboard.domain.errors import ConfigurationError

DEFAULT_PHONE_COUNTRY = "IN"


def encode_value(kind: FieldKind, value: str, phone_country: str = DEFAULT_PHONE_COUNTRY) -> Any:
    if kind is FieldKind.EMAIL:
        return {"email": value, "text": value}
    if kind is FieldKind.PHONE:
        return {"phone": value, "countryShortName": phone_country}
    if kind is FieldKind.STATUS:
        return {"label": value}
    return value


class CreateRecordUseCase:
    def __init__(self, store: RecordStore, phone_country: str = DEFAULT_PHONE_COUNTRY) -> None:
        self.store = store
        self.phone_country = phone_country

    def build_values(self, tenant: TenantConfig, fields: ExtractedFields) -> dict[str, Any]:
        """Column id -> encoded value. Absent fields are left out, never nulled."""
        values: dict[str, Any] = {}
        for dest in DESTINATION_FIELDS:
            value = fields.value_for(dest.key)
            if value is None:
                continue
            column_id = tenant.field_mapping.get(dest.key)
            if not column_id:
                raise ConfigurationError(
                    "Tenant has no column for field",
                    context={"tenant_id": tenant.tenant_id, "field": dest.key},
                )
            values[column_id] = encode_value(dest.kind, value, self.phone_country)
        return values

    async def create(self, tenant: TenantConfig, fields: ExtractedFields) -> str:
        if not fields.name:
            raise ValueError("Record name is required")

        values = self.build_values(tenant, fields)
        record_id = await self.store.create_record(
            tenant.tenant_id,
            tenant.access_token,
            fields.name,
            values,
        )
        logger.info(f"Item created on {tenant.tenant_id}: {record_id} ({fields.name})")
        return record_id
