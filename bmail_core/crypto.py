"""
bmail_core.crypto
-----------------
Key generation and hybrid encryption for message bodies:

- RSA-2048 key pairs, PEM encoded (PKCS#8 private, SubjectPublicKeyInfo public)
- RSA-OAEP (MGF1-SHA256, SHA256) to wrap a per-message AES-256 key
- AES-256-GCM for the payload itself, tag carried separately in the envelope

New envelopes only ever use OAEP-SHA256. PKCS#1 v1.5 appears solely on the
read-only legacy path, since pre-hybrid messages were produced with it.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Tuple, Optional, Dict, Any, Union
import json, os
from cryptography.exceptions import InvalidTag, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa, padding
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from .constants import (
    RSA_KEY_SIZE, RSA_PUBLIC_EXPONENT, AES_KEY_BYTES, GCM_IV_BYTES, GCM_TAG_BYTES, ENVELOPE_ALG,
)
from .envelope import Envelope, EnvelopeV1, EnvelopeV2, parse_envelope
from .errors import CryptoFailure, KeyMismatch, TamperedCiphertext, MalformedEnvelope
from .utils import b64e, b64d, canonical_json


@dataclass(frozen=True)
class KeyPair:
    public_key: str   # PEM
    private_key: str  # PEM, never leaves the local key store


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA256()),
        algorithm=hashes.SHA256(),
        label=None,
    )

# --------- RSA key pairs ----------
def generate_key_pair(key_size: int = RSA_KEY_SIZE) -> KeyPair:
    try:
        sk = rsa.generate_private_key(public_exponent=RSA_PUBLIC_EXPONENT, key_size=key_size)
    except (ValueError, UnsupportedAlgorithm) as e:
        raise CryptoFailure(f"RSA key generation failed: {e}") from e
    priv_pem = sk.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    pub_pem = sk.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return KeyPair(public_key=pub_pem.decode("ascii"), private_key=priv_pem.decode("ascii"))

def load_public_key(pem: str) -> rsa.RSAPublicKey:
    try:
        key = serialization.load_pem_public_key(pem.encode("ascii"))
    except (ValueError, TypeError, UnsupportedAlgorithm, UnicodeEncodeError) as e:
        raise CryptoFailure(f"Invalid public key: {e}") from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise CryptoFailure("Public key is not an RSA key")
    return key

def load_private_key(pem: str) -> rsa.RSAPrivateKey:
    try:
        key = serialization.load_pem_private_key(pem.encode("ascii"), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm, UnicodeEncodeError) as e:
        raise CryptoFailure(f"Invalid private key: {e}") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise CryptoFailure("Private key is not an RSA key")
    return key

def normalize_private_key(pem: str) -> str:
    """Re-serialize a private key PEM (PKCS#1 or PKCS#8) as PKCS#8."""
    sk = load_private_key(pem)
    return sk.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")

# --------- RSA key wrapping ----------
def wrap_key(public_key_pem: str, key: bytes) -> bytes:
    pk = load_public_key(public_key_pem)
    try:
        return pk.encrypt(key, _oaep())
    except ValueError as e:
        raise CryptoFailure(f"RSA wrap failed: {e}") from e

def unwrap_key(private_key_pem: str, wrapped: bytes) -> bytes:
    sk = load_private_key(private_key_pem)
    try:
        key = sk.decrypt(wrapped, _oaep())
    except ValueError as e:
        raise KeyMismatch("Message key could not be unwrapped with this private key") from e
    if len(key) != AES_KEY_BYTES:
        raise KeyMismatch("Unwrapped message key has the wrong length")
    return key

# --------- AES-GCM ----------
def aead_encrypt(key: bytes, plaintext: bytes, aad: Optional[bytes] = None) -> Tuple[bytes, bytes, bytes]:
    aes = AESGCM(key)
    iv = os.urandom(GCM_IV_BYTES)
    ct = aes.encrypt(iv, plaintext, aad)
    # cryptography appends the tag; the envelope keeps it separate
    return iv, ct[:-GCM_TAG_BYTES], ct[-GCM_TAG_BYTES:]

def aead_decrypt(key: bytes, iv: bytes, ciphertext: bytes, tag: bytes, aad: Optional[bytes] = None) -> bytes:
    aes = AESGCM(key)
    try:
        return aes.decrypt(iv, ciphertext + tag, aad)
    except InvalidTag as e:
        raise TamperedCiphertext("Authentication tag did not verify") from e

# --------- Hybrid envelope ----------
def _aad(alg: str) -> bytes:
    return canonical_json({"alg": alg})

def encrypt_payload(payload: Dict[str, Any], public_key_pem: str) -> EnvelopeV2:
    key = AESGCM.generate_key(bit_length=AES_KEY_BYTES * 8)
    iv, ct, tag = aead_encrypt(key, canonical_json(payload), aad=_aad(ENVELOPE_ALG))
    wrapped = wrap_key(public_key_pem, key)
    return EnvelopeV2(
        wrapped_key=b64e(wrapped),
        iv=b64e(iv),
        auth_tag=b64e(tag),
        ciphertext=b64e(ct),
    )

def _b64_field(env_field: str, name: str) -> bytes:
    try:
        return b64d(env_field)
    except ValueError as e:
        raise MalformedEnvelope(f"Envelope field {name} is not valid base64") from e

def decrypt_payload(envelope: Union[Envelope, Dict[str, Any], str, bytes], private_key_pem: str) -> Dict[str, Any]:
    env = parse_envelope(envelope)
    if isinstance(env, EnvelopeV1):
        return decrypt_legacy(env, private_key_pem)

    if env.alg != ENVELOPE_ALG:
        raise MalformedEnvelope(f"Unsupported envelope algorithm: {env.alg}")
    iv = _b64_field(env.iv, "iv")
    tag = _b64_field(env.auth_tag, "authTag")
    if len(iv) != GCM_IV_BYTES or len(tag) != GCM_TAG_BYTES:
        raise TamperedCiphertext("Envelope IV or tag has the wrong length")

    key = unwrap_key(private_key_pem, _b64_field(env.wrapped_key, "wrappedKey"))
    pt = aead_decrypt(key, iv, _b64_field(env.ciphertext, "ciphertext"), tag, aad=_aad(env.alg))
    try:
        payload = json.loads(pt.decode("utf-8"))
    except ValueError as e:
        raise MalformedEnvelope("Decrypted payload is not JSON") from e
    if not isinstance(payload, dict):
        raise MalformedEnvelope("Decrypted payload is not an object")
    return payload

def decrypt_legacy(env: EnvelopeV1, private_key_pem: str) -> Dict[str, Any]:
    """Read-only path for pre-hybrid messages (RSA PKCS#1 v1.5 directly over the payload)."""
    sk = load_private_key(private_key_pem)
    try:
        pt = sk.decrypt(_b64_field(env.ciphertext, "ciphertext"), padding.PKCS1v15())
    except ValueError as e:
        raise KeyMismatch("Legacy message could not be decrypted with this private key") from e
    text = pt.decode("utf-8", errors="replace")
    try:
        parsed = json.loads(text)
    except ValueError:
        return {"body": text}
    if isinstance(parsed, dict):
        return parsed
    return {"body": text}
