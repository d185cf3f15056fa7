# bmail_core/storage/models.py
from __future__ import annotations
from dataclasses import dataclass, field

from bmail_core.utils import now_ts


@dataclass
class KeyRecord:
    """
    Storage-level representation of a locally held key.

    Used for both private keys (kind="private") and cached public keys
    (kind="public"), by any backend (SQLite, JSON file, memory).
    """
    identity: str
    pem: str
    kind: str = "private"   # private | public
    updated_at: str = field(default_factory=now_ts)
