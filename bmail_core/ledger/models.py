# bmail_core/ledger/models.py
from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import Any, Dict, Sequence


@dataclass
class MessageRecord:
    """
    One ledger entry. id, sender, recipient and created_at never change;
    content_id changes only while is_draft is set.
    """
    id: int
    sender: str
    recipient: str
    content_id: str
    created_at: int
    is_read: bool = False
    is_starred: bool = False
    is_draft: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_contract(cls, message_id: int, row: Sequence[Any]) -> "MessageRecord":
        """Build from the getEmail() tuple: (sender, recipient, ipfsHash, timestamp, isRead, isStarred, isDraft)."""
        sender, recipient, content_id, ts, is_read, is_starred, is_draft = row
        return cls(
            id=int(message_id),
            sender=sender,
            recipient=recipient,
            content_id=content_id,
            created_at=int(ts),
            is_read=bool(is_read),
            is_starred=bool(is_starred),
            is_draft=bool(is_draft),
        )


def same_address(a: str, b: str) -> bool:
    return bool(a) and bool(b) and a.lower() == b.lower()
