"""
bmail_core.envelope
-------------------
Encrypted containers for message bodies.

Two variants exist:

- EnvelopeV2: the current hybrid format (RSA-wrapped AES-256-GCM key,
  IV, tag and ciphertext). Always carries an explicit version tag.
- EnvelopeV1: legacy direct-RSA ciphertext with no symmetric layer. It is
  only ever parsed from previously stored data, never produced.

parse_envelope() honours the version tag when present and falls back to
inspecting the field set for untagged data.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Union
import json

from .constants import ENVELOPE_VERSION, LEGACY_ENVELOPE_VERSION, ENVELOPE_ALG
from .errors import MalformedEnvelope

_V2_FIELDS = ("wrappedKey", "iv", "authTag", "ciphertext")


def _bad_fields(data: Dict[str, Any], names) -> list:
    # stored blobs are untrusted: every field must be a non-empty string
    return [k for k in names if not isinstance(data.get(k), str) or not data.get(k)]


@dataclass(frozen=True)
class EnvelopeV2:
    wrapped_key: str   # base64, RSA-OAEP-wrapped AES key
    iv: str            # base64, 12 bytes
    auth_tag: str      # base64, 16 bytes
    ciphertext: str    # base64
    alg: str = ENVELOPE_ALG
    version: int = ENVELOPE_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "alg": self.alg,
            "wrappedKey": self.wrapped_key,
            "iv": self.iv,
            "authTag": self.auth_tag,
            "ciphertext": self.ciphertext,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True)

    def to_json_bytes(self) -> bytes:
        return self.to_json().encode("utf-8")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnvelopeV2":
        bad = _bad_fields(data, _V2_FIELDS)
        if bad:
            raise MalformedEnvelope(f"Envelope fields missing or not strings: {', '.join(bad)}")
        alg = data.get("alg", ENVELOPE_ALG)
        if not isinstance(alg, str):
            raise MalformedEnvelope("Envelope alg is not a string")
        return cls(
            wrapped_key=data["wrappedKey"],
            iv=data["iv"],
            auth_tag=data["authTag"],
            ciphertext=data["ciphertext"],
            alg=alg,
            version=ENVELOPE_VERSION,
        )


@dataclass(frozen=True)
class EnvelopeV1:
    ciphertext: str    # base64 RSA ciphertext
    version: int = LEGACY_ENVELOPE_VERSION

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnvelopeV1":
        if _bad_fields(data, ("ciphertext",)):
            raise MalformedEnvelope("Legacy envelope ciphertext missing or not a string")
        return cls(ciphertext=data["ciphertext"])


Envelope = Union[EnvelopeV1, EnvelopeV2]


def parse_envelope(raw: Union[bytes, str, Dict[str, Any], Envelope]) -> Envelope:
    if isinstance(raw, (EnvelopeV1, EnvelopeV2)):
        return raw

    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedEnvelope("Envelope is not UTF-8 text") from e

    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            raise MalformedEnvelope("Empty envelope")
        try:
            raw = json.loads(text)
        except ValueError:
            # Untagged legacy data: a bare base64 RSA ciphertext
            return EnvelopeV1(ciphertext=text)
        if isinstance(raw, str):
            return EnvelopeV1(ciphertext=raw)

    if not isinstance(raw, dict):
        raise MalformedEnvelope(f"Unsupported envelope type: {type(raw).__name__}")

    version = raw.get("version")
    if version is not None:
        if version == ENVELOPE_VERSION:
            return EnvelopeV2.from_dict(raw)
        if version == LEGACY_ENVELOPE_VERSION:
            return EnvelopeV1.from_dict(raw)
        raise MalformedEnvelope(f"Unknown envelope version: {version!r}")

    # untagged: sniff the field set
    if all(k in raw for k in _V2_FIELDS):
        return EnvelopeV2.from_dict(raw)
    if set(raw) == {"ciphertext"}:
        return EnvelopeV1.from_dict(raw)
    raise MalformedEnvelope(f"Unrecognised envelope fields: {sorted(raw)}")
