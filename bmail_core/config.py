"""
bmail_core.config
-----------------
Runtime configuration, read from the environment once per session.

Every field can also be overridden from a plain dict, which is how tests and
embedding applications configure the core without touching os.environ.
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional
import os

from .constants import (
    DEFAULT_PINATA_URL, DEFAULT_IPFS_GATEWAYS, DEFAULT_DIRECTORY_URL,
    DEFAULT_HTTP_TIMEOUT, DEFAULT_LEDGER_TIMEOUT,
)
from .utils import RetryPolicy

_ENV = {
    "contract_address": "BMAIL_CONTRACT_ADDRESS",
    "staking_contract_address": "BMAIL_STAKING_CONTRACT_ADDRESS",
    "rpc_url": "BMAIL_RPC_URL",
    "account": "BMAIL_ACCOUNT",
    "account_key": "BMAIL_ACCOUNT_KEY",
    "ledger_provider": "BMAIL_LEDGER_PROVIDER",
    "ledger_timeout": "BMAIL_LEDGER_TIMEOUT",
    "ledger_retries": "BMAIL_LEDGER_RETRIES",
    "ledger_retry_delay": "BMAIL_LEDGER_RETRY_DELAY",
    "content_store": "BMAIL_CONTENT_STORE",
    "pinata_jwt": "PINATA_JWT",
    "pinata_url": "BMAIL_PINATA_URL",
    "ipfs_gateways": "BMAIL_IPFS_GATEWAYS",
    "http_timeout": "BMAIL_HTTP_TIMEOUT",
    "directory_url": "BMAIL_DIRECTORY_URL",
    "keystore_provider": "BMAIL_KEYSTORE_PROVIDER",
    "keystore_path": "BMAIL_KEYSTORE_PATH",
    "keystore_fallback_path": "BMAIL_KEYSTORE_FALLBACK_PATH",
}


def _split_list(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


@dataclass
class BmailConfig:
    # ledger
    contract_address: Optional[str] = None
    staking_contract_address: Optional[str] = None
    rpc_url: str = "http://127.0.0.1:8545"
    account: Optional[str] = None
    account_key: Optional[str] = None
    ledger_provider: str = "web3"          # web3 | memory
    ledger_timeout: float = DEFAULT_LEDGER_TIMEOUT
    ledger_retries: int = 3
    ledger_retry_delay: float = 0.5

    # content store
    content_store: str = "ipfs"            # ipfs | memory
    pinata_jwt: Optional[str] = None
    pinata_url: str = DEFAULT_PINATA_URL
    ipfs_gateways: List[str] = field(default_factory=lambda: list(DEFAULT_IPFS_GATEWAYS))
    http_timeout: float = DEFAULT_HTTP_TIMEOUT

    # directory
    directory_url: str = DEFAULT_DIRECTORY_URL

    # key store
    keystore_provider: str = "sqlite"      # sqlite | memory
    keystore_path: str = "db/bmail_keys.db"
    keystore_fallback_path: str = "db/bmail_keys.json"

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(attempts=self.ledger_retries, delay=self.ledger_retry_delay)

    @classmethod
    def from_env(cls, overrides: Optional[Dict[str, Any]] = None) -> "BmailConfig":
        overrides = overrides or {}
        cfg = cls()
        defaults = cls()
        for f in fields(cls):
            if f.name in overrides:
                value = overrides[f.name]
            else:
                raw = os.getenv(_ENV[f.name])
                if raw is None or raw == "":
                    continue
                value = raw
            setattr(cfg, f.name, _coerce(f.name, getattr(defaults, f.name), value))
        return cfg

    def missing_settings(self) -> List[str]:
        """Environment variables required by the selected providers but unset."""
        missing = []
        if self.ledger_provider == "web3":
            if not self.contract_address:
                missing.append(_ENV["contract_address"])
            if not self.account and not self.account_key:
                missing.append(_ENV["account"])
        if self.content_store == "ipfs" and not self.pinata_jwt:
            missing.append(_ENV["pinata_jwt"])
        return missing


def _coerce(name: str, default: Any, value: Any) -> Any:
    if isinstance(default, list):
        return _split_list(value) if isinstance(value, str) else list(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    if name.endswith("_provider") or name == "content_store":
        return str(value).lower()
    return value
