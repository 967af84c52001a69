"""
crosslock/core/hashing.py

Hash and secret primitives.

Every commitment in the protocol (order_hash, hashlock, Merkle nodes,
auction-data hash, derived addresses) is SHA-256 over a big-endian byte
concatenation. Field order is a wire contract.
"""

import hashlib
import hmac
import secrets
from typing import Tuple

from crosslock.core.arith import check_width

HASH_BYTES = 32
ZERO_HASH  = b"\x00" * HASH_BYTES


def hashv(*parts: bytes) -> bytes:
    """SHA-256 over the concatenation of parts."""
    h = hashlib.sha256()
    for part in parts:
        h.update(part)
    return h.digest()


def hash_secret(secret: bytes) -> bytes:
    """H(secret): the hashlock a secret opens."""
    return hashv(secret)


def verify_secret(secret: bytes, hashlock: bytes) -> bool:
    """
    True if H(secret) == hashlock.

    Constant-time comparison. Returns False for malformed input, never raises.
    """
    if not isinstance(secret, (bytes, bytearray)) or not isinstance(hashlock, (bytes, bytearray)):
        return False
    return hmac.compare_digest(hash_secret(bytes(secret)), bytes(hashlock))


def generate_secret() -> Tuple[bytes, bytes]:
    """
    Generate a random 32-byte secret and its hashlock.

    Returns:
        (secret, hashlock)
    """
    secret = secrets.token_bytes(HASH_BYTES)
    return secret, hash_secret(secret)


def key_bytes(name: str) -> bytes:
    """
    Fixed-width encoding of a principal, entity address or token id.

    Identities are plain strings throughout the package; when they enter a
    hash they are encoded as SHA-256 of their UTF-8 bytes.
    """
    return hashv(name.encode("utf-8"))


# ── Big-endian field encoders ─────────────────────────────────

def be(value: int, bits: int) -> bytes:
    check_width(value, bits)
    return value.to_bytes(bits // 8, "big")


def be16(value: int) -> bytes:
    return be(value, 16)


def be24(value: int) -> bytes:
    return be(value, 24)


def be32(value: int) -> bytes:
    return be(value, 32)


def be64(value: int) -> bytes:
    return be(value, 64)


def be256(value: int) -> bytes:
    return be(value, 256)


def flag(value: bool) -> bytes:
    return b"\x01" if value else b"\x00"
