from bmail_core.content.content_base import ContentStore, Content
from bmail_core.errors import ContentUnavailable
from bmail_core.logger import get_logger
from bmail_core.utils import sha256

log = get_logger("bmail.content.local")


class InMemoryContentStore(ContentStore):
    """Process-local content store. Identifiers are derived from a SHA-256 of the bytes."""
    name = "memory"

    def __init__(self):
        self.blobs = {}

    def upload(self, data: Content) -> str:
        content = self.to_bytes(data)
        cid = "bafk" + sha256(content)
        self.blobs[cid] = content
        log.debug(f"[LOCAL PUT] cid={cid} bytes={len(content)}")
        return cid

    def fetch(self, content_id: str) -> bytes:
        try:
            return self.blobs[content_id]
        except KeyError:
            raise ContentUnavailable(f"Content {content_id} not found") from None
