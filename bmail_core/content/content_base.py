from __future__ import annotations
from typing import Any, Dict, Union
import json

from bmail_core.envelope import EnvelopeV2

Content = Union[bytes, str, Dict[str, Any], EnvelopeV2]


class ContentStore:
    """
    Content-addressed blob store.

    upload() returns the identifier assigned by the store; fetch() returns the
    exact bytes uploaded under that identifier.
    """
    name: str = "base"

    def upload(self, data: Content) -> str:
        raise NotImplementedError

    def fetch(self, content_id: str) -> bytes:
        raise NotImplementedError

    def fetch_json(self, content_id: str) -> Union[Dict[str, Any], str]:
        """Fetch and parse as JSON, returning the raw text if it is not JSON."""
        text = self.fetch(content_id).decode("utf-8", errors="replace")
        try:
            return json.loads(text)
        except ValueError:
            return text

    def healthz(self) -> dict:
        return {"status": "ok", "content_store": self.name}

    # ---------------------------
    # Helpers for adapters
    # ---------------------------
    @staticmethod
    def to_bytes(data: Content) -> bytes:
        if isinstance(data, bytes):
            return data
        if isinstance(data, EnvelopeV2):
            return data.to_json_bytes()
        if isinstance(data, str):
            return data.encode("utf-8")
        return json.dumps(data, ensure_ascii=False).encode("utf-8")
