from __future__ import annotations
from typing import Callable, Dict, List, Optional
import threading
from bmail_core.constants import ZERO_ADDRESS
from bmail_core.errors import LedgerRejected, NotAuthorized, InvalidTransition, NotFound
from bmail_core.ledger.models import MessageRecord, same_address
from bmail_core.ledger.provider import LedgerProvider
from bmail_core.logger import get_logger
from bmail_core.utils import unix_now

log = get_logger("bmail.ledger.memory")


class LedgerBook:
    """Shared state behind every InMemoryLedger view."""

    def __init__(self):
        self.records: Dict[int, MessageRecord] = {}
        self.next_id = 1
        self.lock = threading.Lock()


class InMemoryLedger(LedgerProvider):
    """
    In-process ledger with the same rules the contract enforces.

    Each instance is bound to one caller account; connect() returns a view for
    another account over the same records.
    """
    name = "memory"

    def __init__(self, account: str, book: Optional[LedgerBook] = None,
                 clock: Callable[[], int] = unix_now):
        self.account = account
        self.book = book or LedgerBook()
        self.clock = clock

    def connect(self, account: str) -> "InMemoryLedger":
        return InMemoryLedger(account, self.book, self.clock)

    def _record(self, message_id: int) -> MessageRecord:
        rec = self.book.records.get(int(message_id))
        if rec is None:
            raise NotFound(f"Email {message_id} does not exist")
        return rec

    def _create(self, sender: str, recipient: str, content_id: str, is_draft: bool) -> int:
        if not recipient or same_address(recipient, ZERO_ADDRESS):
            raise LedgerRejected("Invalid recipient address")
        if not same_address(sender, self.account):
            raise NotAuthorized("Sender does not match the calling account")
        with self.book.lock:
            message_id = self.book.next_id
            self.book.next_id += 1
            self.book.records[message_id] = MessageRecord(
                id=message_id,
                sender=sender,
                recipient=recipient,
                content_id=content_id,
                created_at=self.clock(),
                is_draft=is_draft,
            )
        log.info(f"[LEDGER] {'draft' if is_draft else 'email'} {message_id} {sender} -> {recipient}")
        return message_id

    def append(self, sender: str, recipient: str, content_id: str) -> int:
        return self._create(sender, recipient, content_id, is_draft=False)

    def save_draft(self, sender: str, recipient: str, content_id: str) -> int:
        return self._create(sender, recipient, content_id, is_draft=True)

    def update_status(self, message_id: int, is_read: bool, is_starred: bool, is_draft: bool) -> None:
        with self.book.lock:
            rec = self._record(message_id)
            if not (same_address(self.account, rec.sender) or same_address(self.account, rec.recipient)):
                raise NotAuthorized("Not authorized")
            if is_draft and not rec.is_draft:
                raise InvalidTransition(f"Email {message_id} has been sent and cannot become a draft")
            rec.is_read = bool(is_read)
            rec.is_starred = bool(is_starred)
            rec.is_draft = bool(is_draft)

    def update_draft(self, message_id: int, content_id: str) -> None:
        with self.book.lock:
            rec = self._record(message_id)
            if not same_address(self.account, rec.sender):
                raise NotAuthorized("Not authorized")
            if not rec.is_draft:
                raise InvalidTransition(f"Email {message_id} is not a draft")
            rec.content_id = content_id

    def get(self, message_id: int) -> MessageRecord:
        rec = self._record(message_id)
        # hand out a copy; callers must not mutate ledger state directly
        return MessageRecord(**rec.to_dict())

    def list_by_address(self, address: str) -> List[int]:
        return [
            rec.id for rec in self.book.records.values()
            if same_address(address, rec.sender) or same_address(address, rec.recipient)
        ]

    def healthz(self) -> dict:
        return {"status": "ok", "ledger": self.name, "records": len(self.book.records)}
