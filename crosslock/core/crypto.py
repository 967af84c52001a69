"""
crosslock/core/crypto.py

Ed25519 signing for the settlement journal.

Key contracts:
    public_key_hex          : @property → 64-char lowercase hex
    sign(data)              : bytes → base64url str, no padding
    verify_detached(...)    : @staticmethod, verifies with only a pubkey hex string

Key storage and rotation are the embedding application's concern; this class
only wraps an in-memory key.
"""

import base64

from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat


class Ed25519Signer:
    """
    Journal signer.

        Ed25519Signer.generate()                          → new random key
        Ed25519Signer.from_private_bytes(seed)            → from raw 32-byte seed
        Ed25519Signer.verify_detached(data, sig, hex)     → @staticmethod

        signer.public_key_hex   (@property) → 64-char lowercase hex
        signer.sign(data)                   → base64url str (no padding)
        signer.verify(data, sig)            → bool
    """

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key: Ed25519PrivateKey = private_key
        self._public_key_hex: str = (
            private_key.public_key()
            .public_bytes(Encoding.Raw, PublicFormat.Raw)
            .hex()
        )

    @classmethod
    def generate(cls) -> "Ed25519Signer":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_private_bytes(cls, seed: bytes) -> "Ed25519Signer":
        """Raises ValueError if seed is not exactly 32 bytes."""
        if len(seed) != 32:
            raise ValueError(f"Ed25519 seed must be 32 bytes, got {len(seed)}")
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    @property
    def public_key_hex(self) -> str:
        return self._public_key_hex

    def sign(self, data: bytes) -> str:
        raw_sig = self._private_key.sign(data)
        return base64.urlsafe_b64encode(raw_sig).rstrip(b"=").decode("ascii")

    def verify(self, data: bytes, signature_b64: str) -> bool:
        return Ed25519Signer.verify_detached(data, signature_b64, self._public_key_hex)

    @staticmethod
    def verify_detached(data: bytes, signature_b64: str, public_key_hex: str) -> bool:
        """
        Verify an Ed25519 signature with only the signer's public key.

        Returns False for any failure (wrong key, bad encoding, wrong length,
        corrupted signature). Never raises.
        """
        try:
            if not isinstance(public_key_hex, str) or len(public_key_hex) != 64:
                return False

            pub = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))

            padding    = 4 - len(signature_b64) % 4
            padded_sig = signature_b64 + "=" * (padding % 4)
            raw_sig    = base64.urlsafe_b64decode(padded_sig)
            if len(raw_sig) != 64:
                return False

            pub.verify(raw_sig, data)
            return True

        except Exception:
            return False

    def __repr__(self) -> str:
        return f"Ed25519Signer(public_key_hex={self._public_key_hex[:16]}...)"
