# bmail_core/directory.py
import requests
from typing import Dict, Optional
from bmail_core.constants import DEFAULT_HTTP_TIMEOUT
from bmail_core.errors import StorageUnavailable
from bmail_core.logger import get_logger

log = get_logger("bmail.directory")


class DirectoryClient:
    """
    HTTP client for the identity directory.

    GET <base>/publicKey?identity=<id> -> {"publicKey": ...} or 404
    GET <base>/address?identity=<id>   -> {"address": ...} or 404

    A 404 (or an empty field) is a miss and returns None. Transport errors and
    other non-2xx statuses raise StorageUnavailable.
    """
    def __init__(self, base_url: str, timeout: float = DEFAULT_HTTP_TIMEOUT, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _lookup(self, path: str, identity: str, *fields: str) -> Optional[str]:
        url = f"{self.base_url}/{path}"
        log.debug(f"[DIRECTORY] → {url} | identity={identity}")
        try:
            res = self.session.get(url, params={"identity": identity}, timeout=self.timeout)
        except requests.RequestException as e:
            raise StorageUnavailable(f"Directory lookup failed: {e}") from e

        if res.status_code == 404:
            log.info(f"[DIRECTORY] {path} miss for {identity}")
            return None
        if not res.ok:
            raise StorageUnavailable(f"Directory returned {res.status_code}: {res.text}")

        try:
            data = res.json()
        except ValueError as e:
            raise StorageUnavailable("Directory returned a non-JSON body") from e
        for name in fields:
            if data.get(name):
                return data[name]
        return None

    def lookup_public_key(self, identity: str) -> Optional[str]:
        return self._lookup("publicKey", identity, "publicKey")

    def lookup_address(self, identity: str) -> Optional[str]:
        return self._lookup("address", identity, "address", "ethAddress")


class StaticDirectory:
    """In-process directory backed by dicts (local development and tests)."""

    def __init__(self, public_keys: Optional[Dict[str, str]] = None,
                 addresses: Optional[Dict[str, str]] = None):
        self.public_keys = dict(public_keys or {})
        self.addresses = dict(addresses or {})

    def register(self, identity: str, public_key: str, address: str) -> None:
        self.public_keys[identity] = public_key
        self.addresses[identity] = address

    def lookup_public_key(self, identity: str) -> Optional[str]:
        return self.public_keys.get(identity)

    def lookup_address(self, identity: str) -> Optional[str]:
        return self.addresses.get(identity)
