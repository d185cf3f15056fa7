"""
bmail_core.utils
----------------
Small helpers for base64, timestamps, canonical JSON and the bounded
retry policy used for idempotent reads.
"""

from __future__ import annotations
import base64, json, time, hashlib
from dataclasses import dataclass
from typing import Any, Callable, Dict, Tuple, Type, TypeVar

T = TypeVar("T")


def b64e(b: bytes) -> str:
    return base64.b64encode(b).decode("ascii")

def b64d(s: str) -> bytes:
    return base64.b64decode(s.encode("ascii"), validate=True)

def now_ts() -> str:
    # RFC3339 / ISO 8601 in UTC, second precision
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())

def unix_now() -> int:
    return int(time.time())

def canonical_json(obj: Dict[str, Any]) -> bytes:
    # Deterministic, minimal JSON for payload encryption
    return json.dumps(obj, separators=(",", ":"), sort_keys=True, ensure_ascii=False).encode("utf-8")

def sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@dataclass
class RetryPolicy:
    """
    Bounded retry for idempotent operations (ledger reads).

    attempts counts the first call, so attempts=1 means no retry. The delay
    before retry n is delay * backoff ** (n - 1).
    """
    attempts: int = 3
    delay: float = 0.5
    backoff: float = 2.0

    def run(self, fn: Callable[[], T], retry_on: Tuple[Type[BaseException], ...],
            sleep: Callable[[float], None] = time.sleep) -> T:
        wait = self.delay
        for attempt in range(1, max(self.attempts, 1) + 1):
            try:
                return fn()
            except retry_on:
                if attempt >= self.attempts:
                    raise
                sleep(wait)
                wait *= self.backoff
        raise RuntimeError("unreachable")
