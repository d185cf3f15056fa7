# bmail_core/context.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Optional

from .config import BmailConfig
from .content import ContentStore, content_store_factory
from .directory import DirectoryClient
from .keystore import KeyStore
from .ledger import LedgerProvider, load_ledger_provider
from .storage import load_key_backends


@dataclass
class MailContext:
    """
    Everything one signed-in session needs, built once and passed explicitly.

    identity is the user's directory identity (their email); address is the
    wallet address the ledger knows them by.
    """
    identity: str
    address: str
    keystore: KeyStore
    directory: Any
    content: ContentStore
    ledger: LedgerProvider
    config: BmailConfig = field(default_factory=BmailConfig)

    @classmethod
    def from_config(cls, identity: str, address: Optional[str] = None,
                    config: Optional[BmailConfig] = None, directory=None) -> "MailContext":
        config = config or BmailConfig.from_env()
        directory = directory or DirectoryClient(config.directory_url, timeout=config.http_timeout)
        primary, fallback = load_key_backends(config)
        ledger = load_ledger_provider(config, account=address)
        return cls(
            identity=identity,
            address=address or ledger.account,
            keystore=KeyStore(primary, fallback, directory=directory),
            directory=directory,
            content=content_store_factory(config),
            ledger=ledger,
            config=config,
        )

    def healthz(self) -> dict:
        """Combined health of the ledger and the content store."""
        ledger = self.ledger.healthz()
        content = self.content.healthz()
        ok = ledger.get("status") == "ok" and content.get("status") == "ok"
        return {"status": "ok" if ok else "error", "ledger": ledger, "content": content}

    def close(self) -> None:
        self.keystore.close()
        self.ledger.close()
