# bmail_core/storage/__init__.py

from .models import KeyRecord
from .provider import KeyBackend
from .providers.memory_provider import InMemoryKeyStorage
from .providers.sqlite_provider import SQLiteKeyStorage
from .providers.file_provider import FileKeyStorage
from typing import Tuple
from bmail_core.config import BmailConfig


def load_key_backends(config=None) -> Tuple[KeyBackend, KeyBackend]:
    """
    Factory resolver for the (primary, fallback) key store pair.

        - sqlite (default): SQLite primary, JSON file fallback
        - memory: two independent in-memory stores
    """
    config = config or BmailConfig.from_env()
    provider = config.keystore_provider

    if provider == "memory":
        return InMemoryKeyStorage(), InMemoryKeyStorage()

    if provider == "sqlite":
        return SQLiteKeyStorage(config.keystore_path), FileKeyStorage(config.keystore_fallback_path)

    raise ValueError(f"Unknown key store provider: {provider}")


__all__ = [
    "KeyRecord",
    "KeyBackend",
    "InMemoryKeyStorage",
    "SQLiteKeyStorage",
    "FileKeyStorage",
    "load_key_backends",
]
