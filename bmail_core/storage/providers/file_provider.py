from __future__ import annotations
from typing import Dict, Optional
import json, os, threading
from bmail_core.constants import PRIVATE_KEY_PREFIX, PUBLIC_KEY_PREFIX
from bmail_core.storage.models import KeyRecord
from bmail_core.storage.provider import KeyBackend


class FileKeyStorage(KeyBackend):
    """
    Simple key-value fallback store: one flat JSON object on disk.

    Keys are "bmail_private_key_<identity>" and "bmail_pubk_<identity>".
    Writes go to a temp file and are renamed into place.
    """
    name = "file"

    def __init__(self, path="db/bmail_keys.json"):
        self.path = path
        dir_path = os.path.dirname(path) or "."
        os.makedirs(dir_path, exist_ok=True)
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} does not hold a JSON object")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, sort_keys=True)
        os.replace(tmp, self.path)

    def _set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._write(data)

    def _get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read().get(key)

    def put_private_key(self, identity: str, pem: str) -> None:
        self._set(PRIVATE_KEY_PREFIX + identity, pem)

    def get_private_key(self, identity: str) -> Optional[KeyRecord]:
        pem = self._get(PRIVATE_KEY_PREFIX + identity)
        return KeyRecord(identity, pem, kind="private") if pem else None

    def put_public_key(self, identity: str, pem: str) -> None:
        self._set(PUBLIC_KEY_PREFIX + identity, pem)

    def get_public_key(self, identity: str) -> Optional[KeyRecord]:
        pem = self._get(PUBLIC_KEY_PREFIX + identity)
        return KeyRecord(identity, pem, kind="public") if pem else None
