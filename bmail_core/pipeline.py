"""
bmail_core.pipeline
-------------------
Send and read orchestration on top of the key store, cipher, content store
and ledger.

Every public coroutine returns a result dict and never raises a BmailError:
failures come back as {"success": False, "error": ..., "code": ...}.

Sending is strictly sequential (resolve → encrypt → upload → record) and
never writes a ledger record for content that failed to upload. Listing
fetches and decrypts messages concurrently; a message that cannot be fetched
or decrypted is still returned, with payload None and decryption_error set.
"""

from __future__ import annotations
import asyncio
from typing import Any, Callable, Dict, Optional, Tuple

from .context import MailContext
from .crypto import encrypt_payload, decrypt_payload
from .errors import BmailError, RecipientUnknown, InvalidTransition
from .ledger.models import MessageRecord, same_address
from .logger import get_logger
from .models import MailItem, MailPayload

log = get_logger("bmail.pipeline")

Result = Dict[str, Any]


def _failure(e: BmailError, **extra) -> Result:
    res = {"success": False, "error": str(e), "code": e.code}
    res.update(extra)
    return res


class MailPipeline:
    def __init__(self, ctx: MailContext):
        self.ctx = ctx

    # ------------------------------------------------------------------
    # Compose
    # ------------------------------------------------------------------
    async def _resolve_recipient(self, identity: str) -> Tuple[str, str]:
        public_key = await self.ctx.keystore.resolve_public_key(identity)
        if not public_key:
            raise RecipientUnknown(f"Recipient {identity} not found")
        address = await asyncio.to_thread(self.ctx.directory.lookup_address, identity)
        if not address:
            raise RecipientUnknown(f"Recipient {identity} address not found")
        return public_key, address

    async def _seal(self, public_key: str, subject: str, body: str) -> str:
        payload = MailPayload(subject=subject, body=body, sender=self.ctx.identity)
        envelope = await asyncio.to_thread(encrypt_payload, payload.to_dict(), public_key)
        return await asyncio.to_thread(self.ctx.content.upload, envelope)

    async def _submit(self, recipient_identity: str, subject: str, body: str,
                      write: Callable[[str, str, str], Optional[int]], action: str) -> Result:
        try:
            public_key, address = await self._resolve_recipient(recipient_identity)
            content_id = await self._seal(public_key, subject, body)
        except BmailError as e:
            log.warning(f"[PIPELINE] {action} to {recipient_identity} aborted: {e}")
            return _failure(e)

        try:
            message_id = await asyncio.to_thread(write, self.ctx.address, address, content_id)
        except BmailError as e:
            log.error(f"[PIPELINE] content {content_id} stored but ledger {action} failed: {e}")
            return _failure(
                e,
                error=f"Message not delivered: content was stored as {content_id} but the ledger rejected the record: {e}",
                delivered=False,
                content_id=content_id,
            )

        result = {"success": True, "id": message_id, "content_id": content_id}
        if message_id is None:
            log.warning(f"[PIPELINE] {action} to {recipient_identity} recorded as {content_id}, id unknown")
            result["warning"] = "Message recorded on the ledger but its id could not be determined"
        else:
            log.info(f"[PIPELINE] {action} id={message_id} to={recipient_identity}")
        return result

    async def send(self, recipient_identity: str, subject: str, body: str) -> Result:
        return await self._submit(recipient_identity, subject, body, self.ctx.ledger.append, "send")

    async def save_draft(self, recipient_identity: str, subject: str, body: str) -> Result:
        return await self._submit(recipient_identity, subject, body, self.ctx.ledger.save_draft, "save_draft")

    async def update_draft(self, message_id: int, recipient_identity: str, subject: str, body: str) -> Result:
        """Re-encrypt and re-upload a draft, then repoint its ledger record."""
        try:
            record = await asyncio.to_thread(self.ctx.ledger.get, message_id)
            if not record.is_draft:
                raise InvalidTransition(f"Email {message_id} is not a draft")
            public_key, address = await self._resolve_recipient(recipient_identity)
            if not same_address(address, record.recipient):
                raise RecipientUnknown(f"Draft {message_id} is addressed to a different recipient")
            content_id = await self._seal(public_key, subject, body)
            await asyncio.to_thread(self.ctx.ledger.update_draft, message_id, content_id)
        except BmailError as e:
            log.warning(f"[PIPELINE] update_draft {message_id} failed: {e}")
            return _failure(e)
        return {"success": True, "id": message_id, "content_id": content_id}

    async def send_draft(self, message_id: int) -> Result:
        try:
            record = await asyncio.to_thread(self.ctx.ledger.get, message_id)
            if not record.is_draft:
                raise InvalidTransition(f"Email {message_id} is not a draft")
            await asyncio.to_thread(
                self.ctx.ledger.update_status, message_id, record.is_read, record.is_starred, False)
        except BmailError as e:
            log.warning(f"[PIPELINE] send_draft {message_id} failed: {e}")
            return _failure(e)
        return {"success": True, "id": message_id, "content_id": record.content_id}

    # ------------------------------------------------------------------
    # Status flags
    # ------------------------------------------------------------------
    async def update_status(self, message_id: int, is_read: bool, is_starred: bool, is_draft: bool) -> Result:
        try:
            await asyncio.to_thread(self.ctx.ledger.update_status, message_id, is_read, is_starred, is_draft)
        except BmailError as e:
            log.warning(f"[PIPELINE] update_status {message_id} failed: {e}")
            return _failure(e)
        return {"success": True}

    async def _flip(self, message_id: int, change: Callable[[MessageRecord], Tuple[bool, bool]]) -> Result:
        try:
            record = await asyncio.to_thread(self.ctx.ledger.get, message_id)
        except BmailError as e:
            return _failure(e)
        is_read, is_starred = change(record)
        return await self.update_status(message_id, is_read, is_starred, record.is_draft)

    async def mark_read(self, message_id: int) -> Result:
        return await self._flip(message_id, lambda r: (True, r.is_starred))

    async def toggle_star(self, message_id: int) -> Result:
        return await self._flip(message_id, lambda r: (r.is_read, not r.is_starred))

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------
    async def _record(self, message_id: int) -> Optional[MessageRecord]:
        try:
            return await asyncio.to_thread(self.ctx.ledger.get, message_id)
        except BmailError as e:
            log.warning(f"[PIPELINE] skipping email {message_id}: {e}")
            return None

    async def _open(self, record: MessageRecord, private_key: str) -> MailItem:
        try:
            raw = await asyncio.to_thread(self.ctx.content.fetch_json, record.content_id)
            payload = await asyncio.to_thread(decrypt_payload, raw, private_key)
        except BmailError as e:
            log.warning(f"[PIPELINE] email {record.id} unreadable: {e.code}: {e}")
            return MailItem(record=record, payload=None, decryption_error=str(e))
        return MailItem(record=record, payload=payload)

    async def _list(self, address: str, keep: Callable[[MessageRecord], bool]) -> Result:
        try:
            private_key = await self.ctx.keystore.get_private_key(self.ctx.identity)
            ids = await asyncio.to_thread(self.ctx.ledger.list_by_address, address)
        except BmailError as e:
            log.warning(f"[PIPELINE] listing for {address} failed: {e}")
            return _failure(e)

        records = await asyncio.gather(*(self._record(i) for i in ids))
        selected = [r for r in records if r is not None and keep(r)]
        items = list(await asyncio.gather(*(self._open(r, private_key) for r in selected)))
        # completion order is arbitrary; newest first
        items.sort(key=lambda it: (it.record.created_at, it.record.id), reverse=True)
        return {"success": True, "messages": items}

    async def list_inbox(self, address: str) -> Result:
        return await self._list(address, lambda r: same_address(r.recipient, address) and not r.is_draft)

    async def list_sent(self, address: str) -> Result:
        return await self._list(address, lambda r: same_address(r.sender, address) and not r.is_draft)

    async def list_drafts(self, address: str) -> Result:
        return await self._list(address, lambda r: same_address(r.sender, address) and r.is_draft)

    async def get_message(self, message_id: int) -> Result:
        try:
            record = await asyncio.to_thread(self.ctx.ledger.get, message_id)
            private_key = await self.ctx.keystore.get_private_key(self.ctx.identity)
        except BmailError as e:
            return _failure(e)
        return {"success": True, "message": await self._open(record, private_key)}
