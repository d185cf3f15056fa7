# bmail_core/storage/provider.py
from __future__ import annotations
from typing import Optional

from bmail_core.storage.models import KeyRecord


class KeyBackend:
    """
    Interface for a local key store.

    Backends may raise on any call; KeyStore treats every backend as
    unreliable and layers them.
    """
    name: str = "base"

    def put_private_key(self, identity: str, pem: str) -> None: ...
    def get_private_key(self, identity: str) -> Optional[KeyRecord]: ...
    def put_public_key(self, identity: str, pem: str) -> None: ...
    def get_public_key(self, identity: str) -> Optional[KeyRecord]: ...

    def close(self) -> None:
        return
