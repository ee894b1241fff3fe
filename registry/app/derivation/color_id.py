"""
Color ID derivation from a tweaked public key.

    script   = OP_DUP OP_HASH160 <RIPEMD160(SHA256(P'))> OP_EQUALVERIFY OP_CHECKSIG
    color_id = class_prefix || hex(SHA256(SHA256(script)))
"""

from __future__ import annotations

from registry.app.schemas.identifiers import ColorId
from registry.app.schemas.metadata import TokenType
from registry.app.utils.hashing import double_sha256, hash160


OP_DUP = 0x76
OP_HASH160 = 0xA9
OP_EQUALVERIFY = 0x88
OP_CHECKSIG = 0xAC

COMPRESSED_PUBKEY_SIZE = 33


def p2pkh_script(pubkey: bytes) -> bytes:
    """25-byte pay-to-public-key-hash locking script for `pubkey`."""
    if len(pubkey) != COMPRESSED_PUBKEY_SIZE:
        raise ValueError(
            f"Expected a {COMPRESSED_PUBKEY_SIZE}-byte compressed public key, "
            f"got {len(pubkey)} bytes"
        )
    return (
        bytes([OP_DUP, OP_HASH160, 20])
        + hash160(pubkey)
        + bytes([OP_EQUALVERIFY, OP_CHECKSIG])
    )


def color_id_from_script(script: bytes, token_type: TokenType) -> ColorId:
    return ColorId.from_digest(token_type, double_sha256(script))


def derive_color_id(tweaked_pubkey: bytes, token_type: TokenType) -> ColorId:
    return color_id_from_script(p2pkh_script(tweaked_pubkey), token_type)
