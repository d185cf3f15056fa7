from typing import Optional
from bmail_core.storage.models import KeyRecord
from bmail_core.storage.provider import KeyBackend

class InMemoryKeyStorage(KeyBackend):
    name = "memory"

    def __init__(self):
        self.private_keys = {}
        self.public_keys = {}

    def put_private_key(self, identity: str, pem: str):
        self.private_keys[identity] = KeyRecord(identity, pem, kind="private")

    def get_private_key(self, identity: str) -> Optional[KeyRecord]:
        return self.private_keys.get(identity)

    def put_public_key(self, identity: str, pem: str):
        self.public_keys[identity] = KeyRecord(identity, pem, kind="public")

    def get_public_key(self, identity: str) -> Optional[KeyRecord]:
        return self.public_keys.get(identity)
