"""
Pay-to-Contract (P2C) key derivation.

    tweak = SHA256(P || c)            (big-endian scalar)
    P'    = P + tweak * G

Curve arithmetic is delegated to libsecp256k1 through coincurve. The
tweak range is checked here before the library call, so a ValueError
from `PublicKey.add` can only mean the sum is the point at infinity.
"""

from __future__ import annotations

from coincurve import PublicKey

from registry.app.errors import CurveError
from registry.app.schemas.identifiers import PaymentBase
from registry.app.utils.hashing import sha256


# Order n of the secp256k1 group
SECP256K1_ORDER = int(
    "FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16
)

COMMITMENT_SIZE = 32


def p2c_tweak(payment_base: bytes, commitment: bytes) -> bytes:
    """SHA256(P || c), the 32-byte tweak scalar."""
    if len(commitment) != COMMITMENT_SIZE:
        raise ValueError(
            f"Commitment must be {COMMITMENT_SIZE} bytes, got {len(commitment)}"
        )
    return sha256(payment_base + commitment)


def derive_tweaked_pubkey(payment_base: PaymentBase, commitment: bytes) -> bytes:
    """
    Return the compressed encoding of P + SHA256(P || c) * G.

    Raises CurveError if P is not on the curve, the tweak is zero or not
    below the group order, or the result is the point at infinity.
    """
    base_bytes = payment_base.to_bytes()

    try:
        base_point = PublicKey(base_bytes)
    except ValueError as exc:
        raise CurveError(
            "Payment base is not a valid point on secp256k1",
            diagnostics={"payment_base": payment_base.hex},
        ) from exc

    tweak = p2c_tweak(base_bytes, commitment)
    scalar = int.from_bytes(tweak, "big")

    if scalar == 0 or scalar >= SECP256K1_ORDER:
        raise CurveError(
            "P2C tweak scalar is outside the range [1, n-1]",
            diagnostics={
                "payment_base": payment_base.hex,
                "commitment": commitment.hex(),
                "tweak": tweak.hex(),
            },
        )

    try:
        tweaked = base_point.add(tweak)
    except ValueError as exc:
        raise CurveError(
            "P2C tweak produced the point at infinity",
            diagnostics={
                "payment_base": payment_base.hex,
                "commitment": commitment.hex(),
                "tweak": tweak.hex(),
            },
        ) from exc

    return tweaked.format(compressed=True)
