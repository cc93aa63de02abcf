from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional

from mailboard.domain.errors import ConfigurationError


class FieldKind(str, Enum):
    """Destination column types understood by the record store."""

    EMAIL = "email"
    PHONE = "phone"
    STATUS = "status"
    LONG_TEXT = "long_text"


@dataclass(frozen=True)
class DestinationField:
    key: str      # logical key used by the extractor
    title: str    # column title on the board, also the label in email bodies
    kind: FieldKind


DESTINATION_FIELDS: tuple[DestinationField, ...] = (
    DestinationField("email", "Email Address", FieldKind.EMAIL),
    DestinationField("phone", "Phone Number", FieldKind.PHONE),
    DestinationField("service", "Service", FieldKind.STATUS),
    DestinationField("note", "Special Note", FieldKind.LONG_TEXT),
)

LOGICAL_KEYS: tuple[str, ...] = tuple(f.key for f in DESTINATION_FIELDS)


@dataclass(frozen=True)
class TenantConfig:
    """One board: its token, column mapping and sender policy."""

    tenant_id: str
    access_token: str = field(repr=False)
    field_mapping: Mapping[str, str]
    allowed_sender: Optional[str] = None

    def __post_init__(self) -> None:
        missing = [k for k in LOGICAL_KEYS if not self.field_mapping.get(k)]
        if missing:
            raise ConfigurationError(
                "Field mapping is incomplete",
                context={"tenant_id": self.tenant_id, "missing": missing},
            )
        object.__setattr__(self, "field_mapping", dict(self.field_mapping))
