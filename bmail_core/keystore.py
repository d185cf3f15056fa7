"""
bmail_core.keystore
-------------------
Client-side key management.

Private keys are written to two local backends (a structured primary and a
simple key-value fallback) so that losing either one does not lose the key.
Reads try the primary first and fall back on a miss or an error. Public keys
are not secret: they are cached locally and resolved through the directory
on a cache miss. A directory outage on a miss raises StorageUnavailable, which
is distinct from an identity the directory does not know (None).
"""

from __future__ import annotations
import asyncio
from typing import Optional

from .crypto import KeyPair, generate_key_pair, load_public_key, normalize_private_key
from .errors import KeyNotFound, KeyStoreUnavailable, StorageUnavailable
from .logger import get_logger
from .storage import KeyBackend

log = get_logger("bmail.keystore")


class KeyStore:
    def __init__(self, primary: KeyBackend, fallback: KeyBackend, directory=None):
        self.primary = primary
        self.fallback = fallback
        self.directory = directory

    async def generate_key_pair(self) -> KeyPair:
        return await asyncio.to_thread(generate_key_pair)

    async def create_identity(self, identity: str) -> KeyPair:
        """Generate a key pair for a new account and keep both halves locally."""
        pair = await self.generate_key_pair()
        await self.store_private_key(identity, pair.private_key)
        await self.store_public_key(identity, pair.public_key)
        log.info(f"[KEYSTORE] created key pair for {identity}")
        return pair

    # ------------------------------------------------------------------
    # Private keys
    # ------------------------------------------------------------------
    def _store_private_key(self, identity: str, pem: str) -> None:
        stored = []
        for backend in (self.primary, self.fallback):
            try:
                backend.put_private_key(identity, pem)
                stored.append(backend.name)
            except Exception as e:
                log.warning(f"[KEYSTORE] {backend.name} store failed for {identity}: {e}")
        if not stored:
            raise KeyStoreUnavailable(f"Private key for {identity} could not be stored in any backend")
        log.debug(f"[KEYSTORE] private key for {identity} stored in {stored}")

    async def store_private_key(self, identity: str, private_key: str) -> None:
        pem = normalize_private_key(private_key)
        await asyncio.to_thread(self._store_private_key, identity, pem)

    def _get_private_key(self, identity: str) -> str:
        for backend in (self.primary, self.fallback):
            try:
                rec = backend.get_private_key(identity)
            except Exception as e:
                log.warning(f"[KEYSTORE] {backend.name} read failed for {identity}: {e}")
                continue
            if rec and rec.pem:
                return rec.pem
        raise KeyNotFound(f"No private key for {identity} on this device")

    async def get_private_key(self, identity: str) -> str:
        return await asyncio.to_thread(self._get_private_key, identity)

    # ------------------------------------------------------------------
    # Public keys
    # ------------------------------------------------------------------
    def _cached_public_key(self, identity: str) -> Optional[str]:
        for backend in (self.primary, self.fallback):
            try:
                rec = backend.get_public_key(identity)
            except Exception as e:
                log.warning(f"[KEYSTORE] {backend.name} public key read failed: {e}")
                continue
            if rec and rec.pem:
                return rec.pem
        return None

    def _store_public_key(self, identity: str, pem: str) -> None:
        for backend in (self.primary, self.fallback):
            try:
                backend.put_public_key(identity, pem)
            except Exception as e:
                log.warning(f"[KEYSTORE] {backend.name} public key cache failed: {e}")

    async def store_public_key(self, identity: str, public_key: str) -> None:
        load_public_key(public_key)
        await asyncio.to_thread(self._store_public_key, identity, public_key)

    def _resolve_public_key(self, identity: str) -> Optional[str]:
        cached = self._cached_public_key(identity)
        if cached:
            return cached
        if self.directory is None:
            return None
        try:
            remote = self.directory.lookup_public_key(identity)
        except StorageUnavailable as e:
            log.warning(f"[KEYSTORE] directory lookup failed for {identity}: {e}")
            raise
        if remote:
            self._store_public_key(identity, remote)
        return remote

    async def resolve_public_key(self, identity: str) -> Optional[str]:
        return await asyncio.to_thread(self._resolve_public_key, identity)

    def close(self) -> None:
        self.primary.close()
        self.fallback.close()
