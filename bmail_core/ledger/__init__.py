# bmail_core/ledger/__init__.py
from bmail_core.config import BmailConfig
from bmail_core.ledger.models import MessageRecord
from bmail_core.ledger.provider import LedgerProvider
from bmail_core.ledger.providers.memory_provider import InMemoryLedger, LedgerBook
from bmail_core.ledger.providers.web3_provider import Web3Ledger


def load_ledger_provider(config: BmailConfig = None, account: str = None) -> LedgerProvider:
    """
    provider (BMAIL_LEDGER_PROVIDER):
      - "web3"   → EmailStorage contract over JSON-RPC
      - "memory" → in-process ledger (account defaults to BMAIL_ACCOUNT)
    """
    config = config or BmailConfig.from_env()
    provider = config.ledger_provider

    if provider == "web3":
        return Web3Ledger.from_config(config)

    if provider == "memory":
        return InMemoryLedger(account or config.account or "")

    raise ValueError(f"Unknown ledger provider: {provider}")


__all__ = [
    "MessageRecord",
    "LedgerProvider",
    "InMemoryLedger",
    "LedgerBook",
    "Web3Ledger",
    "load_ledger_provider",
]
