"""
End-to-end Color ID derivation.

Pure and synchronous: the same request always yields the same
Derivation. Used by issuers to compute the Color ID for a token before
registering it; the coordinator runs the same steps one stage at a time.
"""

from __future__ import annotations

from typing import Union

from pydantic import BaseModel, ConfigDict

from registry.app.derivation.canonical import metadata_digest
from registry.app.derivation.color_id import color_id_from_script, p2pkh_script
from registry.app.derivation.commitment import build_commitment
from registry.app.derivation.p2c import derive_tweaked_pubkey
from registry.app.schemas.derivation import OutPointBoundRequest, ReissuableRequest
from registry.app.schemas.metadata import TokenType


class Derivation(BaseModel):
    """All values produced by one derivation, hex-encoded."""

    token_type: TokenType
    color_id: str
    metadata_digest: str
    commitment: str
    tweaked_pubkey: str
    script: str

    model_config = ConfigDict(frozen=True)


def derive(request: Union[ReissuableRequest, OutPointBoundRequest]) -> Derivation:
    commitment = build_commitment(request)
    tweaked = derive_tweaked_pubkey(request.payment_base, commitment)
    script = p2pkh_script(tweaked)
    color_id = color_id_from_script(script, request.token_type)

    return Derivation(
        token_type=request.token_type,
        color_id=color_id.value,
        metadata_digest=metadata_digest(request.metadata).hex(),
        commitment=commitment.hex(),
        tweaked_pubkey=tweaked.hex(),
        script=script.hex(),
    )
