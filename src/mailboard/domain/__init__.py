"""Domain entities and errors."""

from mailboard.domain.entities.inbound_email import ExtractedFields, InboundEmail
from mailboard.domain.entities.tenant import (
    DESTINATION_FIELDS,
    LOGICAL_KEYS,
    DestinationField,
    FieldKind,
    TenantConfig,
)

__all__ = [
    "DESTINATION_FIELDS",
    "LOGICAL_KEYS",
    "DestinationField",
    "ExtractedFields",
    "FieldKind",
    "InboundEmail",
    "TenantConfig",
]
