"""
Cryptographic hashing utilities.

Provides the hash primitives used by the Color ID derivation, so that
every component digests bytes with the same algorithms and encodings.

IMPORTANT DESIGN RULE:
- Canonicalization MUST occur outside this module.
- This module hashes bytes, and bytes only.
"""

import hashlib
from typing import Union

from Crypto.Hash import RIPEMD160


BytesLike = Union[bytes, bytearray]


def _require_bytes(data: BytesLike, fn_name: str) -> None:
    if not isinstance(data, (bytes, bytearray)):
        raise TypeError(
            f"{fn_name} expects bytes, got {type(data).__name__}"
        )


def sha256(data: BytesLike) -> bytes:
    """Single SHA-256 digest."""
    _require_bytes(data, "sha256")
    return hashlib.sha256(data).digest()


def double_sha256(data: BytesLike) -> bytes:
    """SHA-256 applied twice, as used for script hashes."""
    _require_bytes(data, "double_sha256")
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def ripemd160(data: BytesLike) -> bytes:
    """
    RIPEMD-160 digest.

    Provided by PyCryptodome; OpenSSL 3 builds of hashlib no longer ship
    RIPEMD-160 by default.
    """
    _require_bytes(data, "ripemd160")
    return RIPEMD160.new(bytes(data)).digest()


def hash160(data: BytesLike) -> bytes:
    """RIPEMD160(SHA256(data)), the public key hash of a P2PKH script."""
    _require_bytes(data, "hash160")
    return ripemd160(sha256(data))
