from __future__ import annotations
from dataclasses import dataclass
from typing import Protocol

@dataclass(frozen=True)
class RawEmail:
    provider: str
    account: str
    folder: str
    uid: str
    rfc822_bytes: bytes

class Mailbox(Protocol):
    # Same message may show up unseen again on a later poll
    def list_unseen(self) -> list[RawEmail]: ...
    def mark_seen(self, uid: str) -> None: ...
    def disconnect(self) -> None: ...
