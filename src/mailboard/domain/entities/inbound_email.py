from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class InboundEmail:
    uid: str
    sender: Optional[str]  # bare address from From:, case preserved
    subject: str
    text: str


@dataclass(frozen=True)
class ExtractedFields:
    """Fields pulled out of one message body. Lives for one message only."""

    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    service: Optional[str] = None
    note: Optional[str] = None

    @property
    def actionable(self) -> bool:
        return self.name is not None

    def value_for(self, key: str) -> Optional[str]:
        return getattr(self, key)
