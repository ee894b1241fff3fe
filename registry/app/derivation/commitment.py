"""
Commitment builder.

The commitment is the 32-byte value tweaked into the payment base:

- reissuable (c1): SHA-256 of the canonical metadata bytes
- non-reissuable (c2) / NFT (c3): SHA-256 of the serialized outpoint
  (reversed txid || uint32-LE index)
"""

from __future__ import annotations

from typing import Union

from registry.app.derivation.canonical import metadata_digest
from registry.app.schemas.derivation import OutPointBoundRequest, ReissuableRequest
from registry.app.schemas.identifiers import OutPoint
from registry.app.utils.hashing import sha256


def outpoint_commitment(outpoint: OutPoint) -> bytes:
    return sha256(outpoint.serialize())


def build_commitment(
    request: Union[ReissuableRequest, OutPointBoundRequest],
) -> bytes:
    if isinstance(request, ReissuableRequest):
        return metadata_digest(request.metadata)
    if isinstance(request, OutPointBoundRequest):
        return outpoint_commitment(request.outpoint)
    raise TypeError(f"Unsupported derivation request: {type(request).__name__}")
