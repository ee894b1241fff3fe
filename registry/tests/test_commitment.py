import hashlib

import pytest

from registry.app.checks.metadata_validation import validate_metadata
from registry.app.derivation.canonical import metadata_digest
from registry.app.derivation.commitment import build_commitment, outpoint_commitment
from registry.app.errors import SchemaError
from registry.app.schemas.derivation import (
    OutPointBoundRequest,
    ReissuableRequest,
    build_derivation_request,
)
from registry.app.schemas.identifiers import OutPoint, PaymentBase
from registry.app.schemas.metadata import TokenType

from registry.tests.fixtures.tokens import (
    GENERATOR_PUBKEY,
    SAMPLE_TXID,
    minimal_metadata,
    nft_metadata,
)


_PAYMENT_BASE = PaymentBase.parse(GENERATOR_PUBKEY)


def test_reissuable_commitment_is_metadata_digest():
    metadata = validate_metadata(minimal_metadata(), token_type=TokenType.REISSUABLE)
    request = build_derivation_request(metadata=metadata, payment_base=_PAYMENT_BASE)

    assert isinstance(request, ReissuableRequest)
    assert build_commitment(request) == metadata_digest(metadata)


def test_outpoint_commitment_bytes():
    outpoint = OutPoint.parse(SAMPLE_TXID, 2)
    expected = hashlib.sha256(
        bytes.fromhex(SAMPLE_TXID)[::-1] + (2).to_bytes(4, "little")
    ).digest()

    assert outpoint_commitment(outpoint) == expected


def test_outpoint_bound_commitment_ignores_metadata():
    outpoint = OutPoint.parse(SAMPLE_TXID, 0)

    first = validate_metadata(nft_metadata(), token_type=TokenType.NFT)
    second = validate_metadata(
        minimal_metadata(symbol="OTHER"), token_type=TokenType.NFT
    )

    a = build_derivation_request(
        metadata=first, payment_base=_PAYMENT_BASE, outpoint=outpoint
    )
    b = build_derivation_request(
        metadata=second, payment_base=_PAYMENT_BASE, outpoint=outpoint
    )

    assert isinstance(a, OutPointBoundRequest)
    assert build_commitment(a) == build_commitment(b) == outpoint_commitment(outpoint)


def test_outpoint_index_changes_commitment():
    assert outpoint_commitment(OutPoint.parse(SAMPLE_TXID, 0)) != outpoint_commitment(
        OutPoint.parse(SAMPLE_TXID, 1)
    )


def test_outpoint_rejected_for_reissuable():
    metadata = validate_metadata(minimal_metadata(), token_type=TokenType.REISSUABLE)

    with pytest.raises(SchemaError) as exc_info:
        build_derivation_request(
            metadata=metadata,
            payment_base=_PAYMENT_BASE,
            outpoint=OutPoint.parse(SAMPLE_TXID, 0),
        )

    assert exc_info.value.violations[0].rule == "outpoint_forbidden"


@pytest.mark.parametrize("token_type", [TokenType.NON_REISSUABLE, TokenType.NFT])
def test_outpoint_required_for_outpoint_bound(token_type):
    metadata = validate_metadata(minimal_metadata(), token_type=token_type)

    with pytest.raises(SchemaError) as exc_info:
        build_derivation_request(metadata=metadata, payment_base=_PAYMENT_BASE)

    assert exc_info.value.violations[0].rule == "outpoint_required"
