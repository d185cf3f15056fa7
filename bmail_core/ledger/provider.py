from __future__ import annotations
from typing import List, Optional

from bmail_core.ledger.models import MessageRecord


class LedgerProvider:
    """
    Message-record registry, bound to the calling account.

    Writes complete only once the underlying transaction is final. Reads are
    idempotent and may be retried; writes never are.

    append() and save_draft() return the new id, or None when the record is
    final but its id could not be determined.
    """
    name: str = "base"
    account: str = ""

    def append(self, sender: str, recipient: str, content_id: str) -> Optional[int]:
        raise NotImplementedError

    def save_draft(self, sender: str, recipient: str, content_id: str) -> Optional[int]:
        raise NotImplementedError

    def update_status(self, message_id: int, is_read: bool, is_starred: bool, is_draft: bool) -> None:
        raise NotImplementedError

    def update_draft(self, message_id: int, content_id: str) -> None:
        raise NotImplementedError

    def get(self, message_id: int) -> MessageRecord:
        raise NotImplementedError

    def list_by_address(self, address: str) -> List[int]:
        raise NotImplementedError

    def healthz(self) -> dict:
        return {"status": "ok", "ledger": self.name}

    def close(self) -> None:
        return
