from __future__ import annotations

import pytest

from registry.app.config import RegistryConfig
from registry.app.coordinator.coordinator import VerificationCoordinator
from registry.app.errors import (
    CurveError,
    FormatError,
    MismatchError,
    SchemaError,
)
from registry.app.schemas.metadata import TokenType
from registry.app.schemas.verification_result import (
    ChainCheckStatus,
    VerificationOutcome,
    VerificationRequest,
    VerificationStage,
)

from registry.tests.fixtures.claims import flip_last_hex_digit, honest_request
from registry.tests.fixtures.tokens import (
    DOUBLE_GENERATOR_PUBKEY,
    GENERATOR_PUBKEY,
    OFF_CURVE_PUBKEY,
    SAMPLE_TXID,
    full_metadata,
    minimal_metadata,
)

pytestmark = pytest.mark.anyio


def _coordinator() -> VerificationCoordinator:
    return VerificationCoordinator(RegistryConfig())


# ---------------------------------------------------------------------------
# MATCHED / MISMATCHED
# ---------------------------------------------------------------------------

async def test_honest_reissuable_claim_matches():
    request = honest_request(full_metadata(), TokenType.REISSUABLE, GENERATOR_PUBKEY)

    result = await _coordinator().verify(request, verification_id="test-001")

    assert result.matched is True
    assert result.outcome is VerificationOutcome.MATCHED
    assert result.verification_id == "test-001"
    assert result.derived_color_id == result.claimed_color_id
    assert result.commitment == result.metadata_digest
    assert result.chain_check.status is ChainCheckStatus.NOT_APPLICABLE
    assert result.stages == [
        VerificationStage.START,
        VerificationStage.VALIDATED,
        VerificationStage.COMMITMENT_BUILT,
        VerificationStage.KEY_DERIVED,
        VerificationStage.ID_DERIVED,
        VerificationStage.COMPARED,
        VerificationStage.DONE,
    ]
    result.raise_for_mismatch()


async def test_uppercase_claim_is_canonicalized():
    request = honest_request(minimal_metadata(), TokenType.REISSUABLE, GENERATOR_PUBKEY)
    upper = request.model_copy(
        update={"claimed_color_id": request.claimed_color_id.upper()}
    )

    result = await _coordinator().verify(upper)

    assert result.matched is True


async def test_altered_metadata_mismatches():
    request = honest_request(full_metadata(), TokenType.REISSUABLE, GENERATOR_PUBKEY)
    tampered = full_metadata()
    tampered["description"] = "This is a test token!"

    result = await _coordinator().verify(
        request.model_copy(update={"metadata": tampered})
    )

    assert result.matched is False
    assert result.outcome is VerificationOutcome.MISMATCHED
    assert result.claimed_color_id != result.derived_color_id
    assert result.stages[-1] is VerificationStage.DONE

    with pytest.raises(MismatchError) as exc_info:
        result.raise_for_mismatch()

    assert exc_info.value.diagnostics["derived_color_id"] == result.derived_color_id


async def test_wrong_payment_base_mismatches():
    request = honest_request(minimal_metadata(), TokenType.REISSUABLE, GENERATOR_PUBKEY)

    result = await _coordinator().verify(
        request.model_copy(update={"payment_base": DOUBLE_GENERATOR_PUBKEY})
    )

    assert result.matched is False


async def test_flipped_digit_mismatches():
    request = honest_request(minimal_metadata(), TokenType.REISSUABLE, GENERATOR_PUBKEY)

    result = await _coordinator().verify(
        request.model_copy(
            update={"claimed_color_id": flip_last_hex_digit(request.claimed_color_id)}
        )
    )

    assert result.matched is False


async def test_extra_metadata_fields_do_not_affect_verdict():
    request = honest_request(minimal_metadata(), TokenType.REISSUABLE, GENERATOR_PUBKEY)
    with_extra = {**minimal_metadata(), "note": "stored but not digested"}

    result = await _coordinator().verify(
        request.model_copy(update={"metadata": with_extra})
    )

    assert result.matched is True
    assert result.metadata.extra_fields() == {"note": "stored but not digested"}


async def test_repeated_verification_is_deterministic():
    coordinator = _coordinator()
    request = honest_request(full_metadata(), TokenType.REISSUABLE, GENERATOR_PUBKEY)

    first = await coordinator.verify(request)
    second = await coordinator.verify(request)

    assert first.derived_color_id == second.derived_color_id
    assert first.tweaked_pubkey == second.tweaked_pubkey


async def test_outpoint_bound_without_cross_check_is_not_executed():
    request = honest_request(
        minimal_metadata(), TokenType.NFT, GENERATOR_PUBKEY, txid=SAMPLE_TXID
    )

    result = await _coordinator().verify(request)

    assert result.matched is True
    assert result.chain_check.executed is False
    assert result.chain_check.status is ChainCheckStatus.NOT_EXECUTED
    assert result.outpoint.txid == SAMPLE_TXID


# ---------------------------------------------------------------------------
# Errors carry stage and diagnostics
# ---------------------------------------------------------------------------

async def test_malformed_color_id_fails_validation():
    request = VerificationRequest(
        claimed_color_id="c9" + "00" * 32,
        payment_base=GENERATOR_PUBKEY,
        metadata=minimal_metadata(),
    )

    with pytest.raises(FormatError) as exc_info:
        await _coordinator().verify(request)

    assert exc_info.value.stage == VerificationStage.VALIDATED.value


async def test_schema_violation_reports_claim():
    request = honest_request(minimal_metadata(), TokenType.REISSUABLE, GENERATOR_PUBKEY)

    with pytest.raises(SchemaError) as exc_info:
        await _coordinator().verify(
            request.model_copy(update={"metadata": {"name": "Test"}})
        )

    error = exc_info.value
    assert error.stage == VerificationStage.VALIDATED.value
    assert error.diagnostics["claimed_color_id"] == request.claimed_color_id
    assert error.diagnostics["token_type"] == "reissuable"


async def test_outpoint_supplied_for_c1_is_rejected():
    request = honest_request(minimal_metadata(), TokenType.REISSUABLE, GENERATOR_PUBKEY)
    with_outpoint = VerificationRequest(
        claimed_color_id=request.claimed_color_id,
        payment_base=request.payment_base,
        metadata=request.metadata,
        outpoint={"txid": SAMPLE_TXID, "index": 0},
    )

    with pytest.raises(SchemaError) as exc_info:
        await _coordinator().verify(with_outpoint)

    assert exc_info.value.violations[0].rule == "outpoint_forbidden"


async def test_missing_outpoint_for_c2_is_rejected():
    request = VerificationRequest(
        claimed_color_id="c2" + "00" * 32,
        payment_base=GENERATOR_PUBKEY,
        metadata=minimal_metadata(),
    )

    with pytest.raises(SchemaError) as exc_info:
        await _coordinator().verify(request)

    assert exc_info.value.violations[0].rule == "outpoint_required"


async def test_off_curve_payment_base_fails_key_derivation():
    request = VerificationRequest(
        claimed_color_id="c1" + "00" * 32,
        payment_base=OFF_CURVE_PUBKEY,
        metadata=minimal_metadata(),
    )

    with pytest.raises(CurveError) as exc_info:
        await _coordinator().verify(request)

    error = exc_info.value
    assert error.stage == VerificationStage.KEY_DERIVED.value
    assert "commitment" in error.diagnostics
    assert "metadata_digest" in error.diagnostics


async def test_unknown_network_is_format_error():
    request = honest_request(
        minimal_metadata(), TokenType.REISSUABLE, GENERATOR_PUBKEY, network="mainnet"
    )

    with pytest.raises(FormatError) as exc_info:
        await _coordinator().verify(request)

    assert exc_info.value.diagnostics["network"] == "mainnet"


async def test_non_finite_nft_attribute_fails_validation():
    request = VerificationRequest(
        claimed_color_id="c3" + "00" * 32,
        payment_base=GENERATOR_PUBKEY,
        metadata={"name": "Test", "symbol": "TST", "attributes": "[1e999]"},
        outpoint={"txid": SAMPLE_TXID, "index": 0},
    )

    with pytest.raises(SchemaError) as exc_info:
        await _coordinator().verify(request)

    error = exc_info.value
    assert error.stage == VerificationStage.VALIDATED.value
    assert error.violations[0].rule == "non_finite"
    assert error.diagnostics["claimed_color_id"] == "c3" + "00" * 32
