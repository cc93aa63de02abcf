"""monday.com GraphQL client implementing the RecordStore port."""

from __future__ import annotations

import json
from typing import Any, Mapping

import httpx
from loguru import logger

from mailboard.application.ports.record_store import BoardField, RecordStore
from mailboard.domain.entities.tenant import FieldKind
from mailboard.domain.errors import RecordStoreError

LIST_COLUMNS = """
query ($boardIds: [ID!]) {
  boards(ids: $boardIds) {
    columns { id title type }
  }
}
"""

CREATE_COLUMN = """
mutation ($boardId: ID!, $title: String!, $columnType: ColumnType!) {
  create_column(board_id: $boardId, title: $title, column_type: $columnType) { id }
}
"""

CREATE_ITEM = """
mutation ($boardId: ID!, $itemName: String!, $columnValues: JSON) {
  create_item(board_id: $boardId, item_name: $itemName, column_values: $columnValues) { id }
}
"""


class MondayClient(RecordStore):
    """Boards are tenants. Every call carries the tenant's own token.

    User text only ever travels as GraphQL variables, so quotes or braces in
    a name or note cannot change the query.
    """

    BASE_URL = "https://api.monday.com/v2"

    def __init__(
        self,
        base_url: str | None = None,
        api_version: str | None = "2024-10",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or self.BASE_URL
        self.api_version = api_version
        self.timeout = timeout
        self._transport = transport

    async def execute(self, access_token: str, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        """POST one GraphQL operation and return its ``data``."""
        headers = {
            "Authorization": access_token,
            "Content-Type": "application/json",
        }
        if self.api_version:
            headers["API-Version"] = self.api_version

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.base_url,
                    headers=headers,
                    json={"query": query, "variables": variables},
                )
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise RecordStoreError(
                f"monday.com returned HTTP {status}",
                context={"body": e.response.text[:500]},
                status_code=status,
            ) from e
        except (httpx.TimeoutException, httpx.TransportError) as e:
            raise RecordStoreError(f"monday.com request failed: {type(e).__name__}: {e}") from e
        except ValueError as e:
            raise RecordStoreError("monday.com returned a non-JSON body") from e

        if not isinstance(body, dict):
            raise RecordStoreError("monday.com returned an unexpected body", context={"body": body})

        errors = body.get("errors") or body.get("error_message")
        if errors:
            raise RecordStoreError("monday.com returned errors", context={"errors": errors})

        data = body.get("data")
        if not isinstance(data, dict):
            raise RecordStoreError("monday.com response has no data", context={"body": body})
        return data

    async def list_fields(self, tenant_id: str, access_token: str) -> list[BoardField]:
        data = await self.execute(access_token, LIST_COLUMNS, {"boardIds": [str(tenant_id)]})
        boards = data.get("boards") or []
        if not boards:
            raise RecordStoreError("Board not found", context={"tenant_id": tenant_id})

        columns = boards[0].get("columns") or []
        logger.debug(f"Board {tenant_id} has {len(columns)} columns")
        return [BoardField(id=c["id"], title=c["title"], kind=c.get("type")) for c in columns]

    async def create_field(self, tenant_id: str, access_token: str, title: str, kind: FieldKind) -> str:
        data = await self.execute(
            access_token,
            CREATE_COLUMN,
            {"boardId": str(tenant_id), "title": title, "columnType": kind.value},
        )
        created = data.get("create_column") or {}
        return str(created.get("id") or "")

    async def create_record(
        self,
        tenant_id: str,
        access_token: str,
        name: str,
        values: Mapping[str, Any],
    ) -> str:
        data = await self.execute(
            access_token,
            CREATE_ITEM,
            {
                "boardId": str(tenant_id),
                "itemName": name,
                # the JSON scalar takes column values as a JSON-encoded string
                "columnValues": json.dumps(dict(values)),
            },
        )
        created = data.get("create_item") or {}
        item_id = created.get("id")
        if not item_id:
            raise RecordStoreError("create_item returned no id", context={"tenant_id": tenant_id})
        return str(item_id)
