from __future__ import annotations
from typing import Optional
import sqlite3, os, threading
from bmail_core.storage.provider import KeyBackend
from bmail_core.storage.models import KeyRecord
from bmail_core.utils import now_ts


class SQLiteKeyStorage(KeyBackend):
    """Structured primary key store."""
    name = "sqlite"

    def __init__(self, path="db/bmail_keys.db"):
        # If no directory, default to current working directory
        dir_path = os.path.dirname(path) or "."
        os.makedirs(dir_path, exist_ok=True)
        # calls arrive from asyncio.to_thread workers
        self.db = sqlite3.connect(path, check_same_thread=False)
        self._lock = threading.Lock()

        self._init()

    def _init(self) -> None:
        c = self.db.cursor()

        c.execute("""CREATE TABLE IF NOT EXISTS private_keys(
            identity TEXT PRIMARY KEY,
            private_key TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )""")
        c.execute("""CREATE TABLE IF NOT EXISTS public_keys(
            identity TEXT PRIMARY KEY,
            public_key TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )""")

        self.db.commit()

    def put_private_key(self, identity: str, pem: str) -> None:
        with self._lock:
            self.db.execute(
                "INSERT INTO private_keys(identity,private_key,updated_at) VALUES(?,?,?) "
                "ON CONFLICT(identity) DO UPDATE SET private_key=excluded.private_key, "
                "updated_at=excluded.updated_at",
                (identity, pem, now_ts())
            )
            self.db.commit()

    def get_private_key(self, identity: str) -> Optional[KeyRecord]:
        with self._lock:
            cur = self.db.execute(
                "SELECT identity,private_key,updated_at FROM private_keys WHERE identity=?", (identity,))
            row = cur.fetchone()
        if not row: return None
        return KeyRecord(identity=row[0], pem=row[1], kind="private", updated_at=row[2])

    def put_public_key(self, identity: str, pem: str) -> None:
        with self._lock:
            self.db.execute(
                "INSERT INTO public_keys(identity,public_key,updated_at) VALUES(?,?,?) "
                "ON CONFLICT(identity) DO UPDATE SET public_key=excluded.public_key, "
                "updated_at=excluded.updated_at",
                (identity, pem, now_ts())
            )
            self.db.commit()

    def get_public_key(self, identity: str) -> Optional[KeyRecord]:
        with self._lock:
            cur = self.db.execute(
                "SELECT identity,public_key,updated_at FROM public_keys WHERE identity=?", (identity,))
            row = cur.fetchone()
        if not row: return None
        return KeyRecord(identity=row[0], pem=row[1], kind="public", updated_at=row[2])

    def close(self):
        self.db.close()
