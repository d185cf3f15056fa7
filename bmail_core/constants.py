# bmail_core/constants.py

RSA_KEY_SIZE = 2048
RSA_PUBLIC_EXPONENT = 65537

AES_KEY_BYTES = 32   # AES-256
GCM_IV_BYTES = 12
GCM_TAG_BYTES = 16

ENVELOPE_VERSION = 2
LEGACY_ENVELOPE_VERSION = 1
ENVELOPE_ALG = "RSA-OAEP-256+A256GCM"

DEFAULT_PINATA_URL = "https://api.pinata.cloud/pinning/pinFileToIPFS"
DEFAULT_IPFS_GATEWAYS = [
    "https://gateway.pinata.cloud/ipfs",
    "https://ipfs.io/ipfs",
    "https://cloudflare-ipfs.com/ipfs",
    "https://dweb.link/ipfs",
]
DEFAULT_DIRECTORY_URL = "http://localhost:3000/api/users"

DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_LEDGER_TIMEOUT = 120.0

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

# Fallback key-value store key prefixes
PRIVATE_KEY_PREFIX = "bmail_private_key_"
PUBLIC_KEY_PREFIX = "bmail_pubk_"
