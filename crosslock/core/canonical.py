"""
crosslock: Canonical JSON Encoding (RFC 8785, JCS)

Every journal hash and signature is computed over this encoding.
Settlement commitments (order_hash, hashlock, addresses) are binary and live
in crosslock/core/hashing.py; this module is for the journal only.

RFC 8785: https://www.rfc-editor.org/rfc/rfc8785
"""

import hashlib

import jcs


def canonicalize(obj: dict) -> bytes:
    """
    Encode a dict to RFC 8785 canonical JSON bytes.

    Values must be JSON primitives. Convert bytes to hex before calling
    (see to_json_value).
    """
    return jcs.canonicalize(obj)


def canonical_hash(obj: dict) -> str:
    """Lowercase hex SHA-256 of the RFC 8785 canonical form."""
    return hashlib.sha256(canonicalize(obj)).hexdigest()


def to_json_value(value):
    """
    Recursively convert settlement values into JSON primitives.

    bytes → lowercase hex, enums → their value, tuples → lists.
    Integers stay integers; 256-bit amounts above 2**53 are rendered as
    decimal strings so that every JCS implementation agrees on them.
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, bool) or value is None or isinstance(value, str):
        return value
    if isinstance(value, int):
        return value if abs(value) <= 2 ** 53 else str(value)
    if hasattr(value, "value") and not isinstance(value, (list, tuple, dict)):
        return to_json_value(value.value)
    if isinstance(value, dict):
        return {str(k): to_json_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json_value(v) for v in value]
    raise TypeError(f"cannot canonicalize {type(value).__name__}")
