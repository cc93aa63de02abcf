"""Make sure a board has the four intake columns."""

from __future__ import annotations

from loguru import logger

from mailboard.application.ports.record_store import RecordStore
from mailboard.domain.entities.tenant import DESTINATION_FIELDS
from mailboard.domain.errors import SchemaResolutionError, UpstreamError


class EnsureSchemaUseCase:
    """Lookup-or-create of destination fields, matched by exact title.

    Running it twice against the same board creates nothing the second time.
    """

    def __init__(self, store: RecordStore) -> None:
        self.store = store

    async def run(self, tenant_id: str, access_token: str) -> dict[str, str]:
        try:
            existing = await self.store.list_fields(tenant_id, access_token)
        except UpstreamError as e:
            raise SchemaResolutionError(
                "Could not list board fields",
                context={"tenant_id": tenant_id, "error": str(e)},
            ) from e

        by_title = {}
        for board_field in existing:
            by_title.setdefault(board_field.title, board_field.id)

        mapping: dict[str, str] = {}
        for dest in DESTINATION_FIELDS:
            found = by_title.get(dest.title)
            if found:
                mapping[dest.key] = found
                continue

            try:
                field_id = await self.store.create_field(
                    tenant_id, access_token, dest.title, dest.kind
                )
            except UpstreamError as e:
                raise SchemaResolutionError(
                    f"Could not create field '{dest.title}'",
                    context={"tenant_id": tenant_id, "error": str(e)},
                ) from e

            if not field_id:
                raise SchemaResolutionError(
                    f"Store returned no id for field '{dest.title}'",
                    context={"tenant_id": tenant_id},
                )

            logger.info(f"Created field '{dest.title}' ({dest.kind.value}) on {tenant_id}: {field_id}")
            by_title[dest.title] = field_id
            mapping[dest.key] = field_id

        return mapping
