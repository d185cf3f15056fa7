# bmail_core/content/content_ipfs.py
import requests
from typing import List, Optional
from bmail_core.constants import DEFAULT_PINATA_URL, DEFAULT_IPFS_GATEWAYS, DEFAULT_HTTP_TIMEOUT
from bmail_core.content.content_base import ContentStore, Content
from bmail_core.errors import StorageUnavailable, ContentUnavailable
from bmail_core.logger import get_logger

log = get_logger("bmail.content.ipfs")


class IPFSContentStore(ContentStore):
    """
    IPFS content store: pins through the Pinata API, reads through gateways.

    Features:
    - Bearer JWT authentication for uploads (PINATA_JWT).
    - Ordered gateway failover for reads; the first 2xx response wins.
    """
    name = "ipfs"

    def __init__(self, jwt: Optional[str], pinata_url: str = DEFAULT_PINATA_URL,
                 gateways: Optional[List[str]] = None, timeout: float = DEFAULT_HTTP_TIMEOUT,
                 session=None):
        self.jwt = jwt
        self.pinata_url = pinata_url
        self.gateways = [g.rstrip("/") for g in (gateways or DEFAULT_IPFS_GATEWAYS)]
        self.timeout = timeout
        self.session = session or requests.Session()

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------
    def upload(self, data: Content) -> str:
        if not self.jwt:
            raise StorageUnavailable("Pinata JWT is not configured")

        content = self.to_bytes(data)
        headers = {"Authorization": f"Bearer {self.jwt}"}
        files = {"file": ("envelope.json", content, "application/json")}

        log.info(f"[IPFS PUT] → {self.pinata_url} | bytes={len(content)}")
        try:
            res = self.session.post(self.pinata_url, files=files, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise StorageUnavailable(f"IPFS upload failed: {e}") from e

        if not res.ok:
            log.error(f"[IPFS PUT] {res.status_code}: {res.text}")
            raise StorageUnavailable(f"Pinata API error {res.status_code}: {res.text}")

        try:
            cid = res.json()["IpfsHash"]
        except (ValueError, KeyError, TypeError) as e:
            raise StorageUnavailable("Pinata response did not include IpfsHash") from e

        log.info(f"[IPFS PUT] pinned cid={cid}")
        return cid

    # ------------------------------------------------------------------
    # Fetch
    # ------------------------------------------------------------------
    def fetch(self, content_id: str) -> bytes:
        if not content_id:
            raise ContentUnavailable("Empty content id")

        last_error: Optional[BaseException] = None
        for gateway in self.gateways:
            url = f"{gateway}/{content_id}"
            try:
                res = self.session.get(url, timeout=self.timeout)
            except requests.RequestException as e:
                log.warning(f"[IPFS GET] {url} failed: {e}")
                last_error = e
                continue
            if res.ok:
                log.debug(f"[IPFS GET] {url} {res.status_code}")
                return res.content
            log.warning(f"[IPFS GET] {url} returned {res.status_code}")
            last_error = StorageUnavailable(f"{url} returned {res.status_code}")

        raise ContentUnavailable(
            f"Content {content_id} unavailable from {len(self.gateways)} gateways: {last_error}",
            last_error=last_error,
        )

    def healthz(self) -> dict:
        return {
            "status": "ok" if self.jwt else "error",
            "content_store": self.name,
            "pinata_jwt": bool(self.jwt),
            "gateways": len(self.gateways),
        }
