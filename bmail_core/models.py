# bmail_core/models.py
from __future__ import annotations
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Optional

from .ledger.models import MessageRecord
from .utils import unix_now


@dataclass
class MailPayload:
    """Plaintext content of a message; this is what gets encrypted."""
    subject: str
    body: str
    sender: str
    timestamp: int = field(default_factory=unix_now)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MailItem:
    """A ledger record joined with its decrypted payload (if any)."""
    record: MessageRecord
    payload: Optional[Dict[str, Any]] = None
    decryption_error: Optional[str] = None

    @property
    def id(self) -> int:
        return self.record.id

    @property
    def body(self) -> Optional[str]:
        if self.payload is None:
            return None
        return self.payload.get("body")

    @property
    def subject(self) -> Optional[str]:
        if self.payload is None:
            return None
        return self.payload.get("subject")

    def to_dict(self) -> Dict[str, Any]:
        d = self.record.to_dict()
        d["payload"] = self.payload
        d["body"] = self.body
        d["decryptionError"] = self.decryption_error
        return d
