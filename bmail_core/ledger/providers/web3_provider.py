# bmail_core/ledger/providers/web3_provider.py
from __future__ import annotations
from typing import Any, Callable, Iterable, List, Optional
import requests
from eth_account import Account
from web3 import Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception
from web3.logs import DISCARD

from bmail_core.config import BmailConfig
from bmail_core.constants import ZERO_ADDRESS, DEFAULT_LEDGER_TIMEOUT
from bmail_core.errors import (
    LedgerRejected, LedgerUnavailable, NotAuthorized, InvalidTransition, NotFound,
)
from bmail_core.ledger.abi import EMAIL_STORAGE_ABI, SEND_EVENTS, DRAFT_EVENTS
from bmail_core.ledger.models import MessageRecord, same_address
from bmail_core.ledger.provider import LedgerProvider
from bmail_core.logger import get_logger
from bmail_core.utils import RetryPolicy

log = get_logger("bmail.ledger.web3")

_TRANSIENT = (requests.RequestException, ConnectionError, TimeoutError)


class Web3Ledger(LedgerProvider):
    """
    EmailStorage contract client.

    • Writes: send transaction → wait for receipt (bounded) → parse event
    • Reads: direct eth_call, retried under the configured RetryPolicy
    • Signs locally when an account key is configured, otherwise relies on
      the node's unlocked account
    """
    name = "web3"

    def __init__(self, w3, contract, account: str, private_key: Optional[str] = None,
                 retry: Optional[RetryPolicy] = None, receipt_timeout: float = DEFAULT_LEDGER_TIMEOUT):
        self.w3 = w3
        self.contract = contract
        self.account = account
        self.private_key = private_key
        self.retry = retry or RetryPolicy()
        self.receipt_timeout = receipt_timeout

    @classmethod
    def from_config(cls, config: BmailConfig) -> "Web3Ledger":
        if not config.contract_address:
            raise ValueError("BMAIL_CONTRACT_ADDRESS is not set")
        w3 = Web3(Web3.HTTPProvider(config.rpc_url, request_kwargs={"timeout": config.http_timeout}))
        contract = w3.eth.contract(
            address=Web3.to_checksum_address(config.contract_address),
            abi=EMAIL_STORAGE_ABI,
        )
        account = config.account
        if config.account_key:
            account = Account.from_key(config.account_key).address
        if not account:
            raise ValueError("BMAIL_ACCOUNT or BMAIL_ACCOUNT_KEY must be set")
        log.info(f"[WEB3] contract={config.contract_address} account={account} rpc={config.rpc_url}")
        return cls(
            w3, contract, account,
            private_key=config.account_key,
            retry=config.retry_policy,
            receipt_timeout=config.ledger_timeout,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    @staticmethod
    def _rejected(e: ContractLogicError) -> LedgerRejected:
        reason = str(e)
        if "Not authorized" in reason:
            return NotAuthorized(reason)
        return LedgerRejected(reason)

    def _transact(self, call):
        try:
            if self.private_key:
                tx = call.build_transaction({
                    "from": self.account,
                    "nonce": self.w3.eth.get_transaction_count(self.account),
                })
                signed = self.w3.eth.account.sign_transaction(tx, self.private_key)
                tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
            else:
                tx_hash = call.transact({"from": self.account})
            receipt = self.w3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.receipt_timeout)
        except ContractLogicError as e:
            raise self._rejected(e) from e
        except TimeExhausted as e:
            raise LedgerUnavailable(f"No receipt within {self.receipt_timeout}s: {e}") from e
        except _TRANSIENT as e:
            raise LedgerUnavailable(f"Ledger node unreachable: {e}") from e
        except Web3Exception as e:
            # node-side refusals: insufficient funds, nonce too low, unknown account
            raise LedgerRejected(f"Ledger node refused the transaction: {e}") from e

        if receipt["status"] == 0:
            raise LedgerRejected(f"Transaction {receipt['transactionHash']!r} reverted")
        return receipt

    def _id_from_receipt(self, receipt, recipient: str, event_names: Iterable[str]) -> Optional[int]:
        """Id of the email created by a final receipt, or None if it cannot be determined."""
        for name in event_names:
            try:
                events = getattr(self.contract.events, name)().process_receipt(receipt, errors=DISCARD)
            except (ValueError, Web3Exception) as e:
                log.debug(f"[WEB3] could not decode {name}: {e}")
                continue
            for ev in events:
                return int(ev["args"]["emailId"])

        # Best effort only: a concurrent send to the same recipient can win this race.
        tx_hash = receipt.get("transactionHash")
        log.warning(f"[WEB3] no email event in receipt {tx_hash!r}, falling back to latest id for recipient")
        try:
            ids = self.list_by_address(recipient)
        except (LedgerUnavailable, LedgerRejected) as e:
            log.warning(f"[WEB3] tx {tx_hash!r} recorded but id lookup failed: {e}")
            return None
        if not ids:
            log.warning(f"[WEB3] tx {tx_hash!r} recorded but recipient has no ids yet")
            return None
        return max(ids)

    def _create(self, sender: str, recipient: str, content_id: str, fn_name: str, events) -> Optional[int]:
        if not recipient or same_address(recipient, ZERO_ADDRESS):
            raise LedgerRejected("Invalid recipient address")
        if not same_address(sender, self.account):
            raise NotAuthorized("Sender does not match the calling account")
        try:
            checksummed = Web3.to_checksum_address(recipient)
        except ValueError as e:
            raise LedgerRejected("Invalid recipient address") from e
        call = getattr(self.contract.functions, fn_name)(checksummed, content_id)
        receipt = self._transact(call)
        message_id = self._id_from_receipt(receipt, recipient, events)
        log.info(f"[WEB3] {fn_name} id={message_id} cid={content_id}")
        return message_id

    def append(self, sender: str, recipient: str, content_id: str) -> Optional[int]:
        return self._create(sender, recipient, content_id, "sendEmail", SEND_EVENTS)

    def save_draft(self, sender: str, recipient: str, content_id: str) -> Optional[int]:
        return self._create(sender, recipient, content_id, "saveDraft", DRAFT_EVENTS)

    def update_status(self, message_id: int, is_read: bool, is_starred: bool, is_draft: bool) -> None:
        if is_draft and not self.get(message_id).is_draft:
            raise InvalidTransition(f"Email {message_id} has been sent and cannot become a draft")
        call = self.contract.functions.updateEmailStatus(int(message_id), bool(is_read), bool(is_starred), bool(is_draft))
        self._transact(call)

    def update_draft(self, message_id: int, content_id: str) -> None:
        rec = self.get(message_id)
        if not rec.is_draft:
            raise InvalidTransition(f"Email {message_id} is not a draft")
        self._transact(self.contract.functions.updateDraft(int(message_id), content_id))

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def _read(self, fn: Callable[[], Any]) -> Any:
        try:
            return self.retry.run(fn, retry_on=_TRANSIENT)
        except _TRANSIENT as e:
            raise LedgerUnavailable(f"Ledger node unreachable: {e}") from e
        except ContractLogicError:
            raise
        except Web3Exception as e:
            raise LedgerUnavailable(f"Ledger read failed: {e}") from e

    def get(self, message_id: int) -> MessageRecord:
        try:
            row = self._read(lambda: self.contract.functions.getEmail(int(message_id)).call())
        except ContractLogicError as e:
            raise NotFound(f"Email {message_id} does not exist: {e}") from e
        rec = MessageRecord.from_contract(message_id, row)
        if same_address(rec.sender, ZERO_ADDRESS):
            raise NotFound(f"Email {message_id} does not exist")
        return rec

    def list_by_address(self, address: str) -> List[int]:
        try:
            checksummed = Web3.to_checksum_address(address)
        except (ValueError, TypeError) as e:
            raise LedgerRejected(f"Invalid address: {address!r}") from e
        try:
            ids = self._read(lambda: self.contract.functions.getUserEmails(checksummed).call())
        except ContractLogicError as e:
            raise LedgerRejected(f"getUserEmails reverted: {e}") from e
        return [int(i) for i in ids]

    def healthz(self) -> dict:
        address = self.contract.address
        try:
            code = self._read(lambda: self.w3.eth.get_code(address))
        except LedgerUnavailable as e:
            return {"status": "error", "ledger": self.name, "contract": address, "error": str(e)}
        deployed = len(code) > 0
        return {
            "status": "ok" if deployed else "error",
            "ledger": self.name,
            "contract": address,
            "deployed": deployed,
        }
