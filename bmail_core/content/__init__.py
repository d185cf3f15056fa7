# bmail_core/content/__init__.py
from bmail_core.config import BmailConfig
from bmail_core.content.content_base import ContentStore
from bmail_core.content.content_ipfs import IPFSContentStore
from bmail_core.content.content_local import InMemoryContentStore


def content_store_factory(config: BmailConfig = None) -> ContentStore:
    """
    mode (BMAIL_CONTENT_STORE):
      - "ipfs"   → Pinata pinning + public gateways
      - "memory" → process-local store
    """
    config = config or BmailConfig.from_env()
    mode = config.content_store

    if mode == "ipfs":
        return IPFSContentStore(
            jwt=config.pinata_jwt,
            pinata_url=config.pinata_url,
            gateways=config.ipfs_gateways,
            timeout=config.http_timeout,
        )

    if mode == "memory":
        return InMemoryContentStore()

    raise ValueError(f"Unknown content store: {mode}")


__all__ = ["ContentStore", "IPFSContentStore", "InMemoryContentStore", "content_store_factory"]
