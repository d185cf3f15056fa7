"""
bmail_core.errors
-----------------
Error taxonomy shared by every component.

`retryable` marks network/service failures that may be retried with
backoff; everything else is terminal or user-correctable. Only idempotent
reads are ever retried, regardless of this flag.
"""

from __future__ import annotations
from typing import Optional


class BmailError(Exception):
    retryable: bool = False

    @property
    def code(self) -> str:
        return type(self).__name__


# --- crypto / keys ---

class CryptoFailure(BmailError):
    pass


class KeyNotFound(BmailError):
    pass


class KeyStoreUnavailable(BmailError):
    pass


class KeyMismatch(BmailError):
    pass


class TamperedCiphertext(BmailError):
    pass


class MalformedEnvelope(BmailError):
    pass


# --- directory ---

class RecipientUnknown(BmailError):
    pass


# --- content store ---

class StorageUnavailable(BmailError):
    retryable = True


class ContentUnavailable(BmailError):
    retryable = True

    def __init__(self, message: str, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.last_error = last_error


# --- ledger ---

class LedgerUnavailable(BmailError):
    retryable = True


class LedgerRejected(BmailError):
    pass


class NotAuthorized(LedgerRejected):
    pass


class InvalidTransition(LedgerRejected):
    pass


class NotFound(BmailError):
    pass
