"""
Verification request and result schemas.

The VerificationResult is the single immutable verdict produced per
verification call. It carries every intermediate value so that a
mismatch can be diagnosed without re-running the computation. It is
never persisted by the verification core.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from registry.app.errors import MismatchError
from registry.app.schemas.identifiers import OutPoint
from registry.app.schemas.metadata import TokenMetadata, TokenType


# ---------------------------------------------------------------------------
# Enumerations (FROZEN CONTRACTS)
# ---------------------------------------------------------------------------

class VerificationStage(str, Enum):
    """Orchestration states, in execution order."""

    START = "start"
    VALIDATED = "validated"
    COMMITMENT_BUILT = "commitment_built"
    KEY_DERIVED = "key_derived"
    ID_DERIVED = "id_derived"
    COMPARED = "compared"
    CHAIN_CHECKED = "chain_checked"
    DONE = "done"
    ERROR = "error"


class VerificationOutcome(str, Enum):
    MATCHED = "matched"
    MISMATCHED = "mismatched"


class ChainCheckStatus(str, Enum):
    """
    Outcome of the on-chain script comparison.

    NOT_APPLICABLE: reissuable tokens have no outpoint to check.
    NOT_EXECUTED: cross-check disabled, or the Color ID already mismatched.
    """

    NOT_APPLICABLE = "not_applicable"
    NOT_EXECUTED = "not_executed"
    MATCHED = "matched"
    SCRIPT_MISMATCH = "script_mismatch"
    OUTPUT_NOT_FOUND = "output_not_found"


_EXECUTED_STATUSES = {
    ChainCheckStatus.MATCHED,
    ChainCheckStatus.SCRIPT_MISMATCH,
    ChainCheckStatus.OUTPUT_NOT_FOUND,
}


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------

class OutPointInput(BaseModel):
    txid: str
    index: int

    model_config = ConfigDict(frozen=True, extra="forbid")


class VerificationRequest(BaseModel):
    """
    Caller-supplied claim.

    Identifier strings are kept raw here; the coordinator parses them so
    that format failures are attributed to the validation stage.
    """

    claimed_color_id: str = Field(..., description="Color ID to verify")
    payment_base: str = Field(
        ..., description="Compressed payment public key (hex)"
    )
    metadata: Dict[str, Any] = Field(
        ..., description="Raw metadata fields (strings or parsed JSON)"
    )
    outpoint: Optional[OutPointInput] = Field(
        None, description="Required for c2 / c3 tokens only"
    )
    network: Optional[str] = Field(
        None,
        description="Network id or label; required for chain cross-checks",
    )

    model_config = ConfigDict(frozen=True, extra="forbid")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class ChainCheckResult(BaseModel):
    executed: bool
    status: ChainCheckStatus
    expected_script: Optional[str] = Field(
        None, description="P2PKH script implied by the derivation (hex)"
    )
    actual_script: Optional[str] = Field(
        None, description="Script recorded at the outpoint (hex)"
    )
    detail: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def enforce_chain_check_invariants(self):
        if self.executed != (self.status in _EXECUTED_STATUSES):
            raise ValueError(
                f"executed={self.executed} is inconsistent with "
                f"status '{self.status.value}'"
            )
        if self.status is ChainCheckStatus.SCRIPT_MISMATCH and (
            self.expected_script is None or self.actual_script is None
        ):
            raise ValueError(
                "Both scripts must be present on a script mismatch"
            )
        return self

    @property
    def failed(self) -> bool:
        return self.status in {
            ChainCheckStatus.SCRIPT_MISMATCH,
            ChainCheckStatus.OUTPUT_NOT_FOUND,
        }

    @classmethod
    def not_applicable(cls) -> "ChainCheckResult":
        return cls(executed=False, status=ChainCheckStatus.NOT_APPLICABLE)

    @classmethod
    def not_executed(
        cls, detail: str, expected_script: Optional[str] = None
    ) -> "ChainCheckResult":
        return cls(
            executed=False,
            status=ChainCheckStatus.NOT_EXECUTED,
            expected_script=expected_script,
            detail=detail,
        )


class VerificationResult(BaseModel):
    """
    Final verdict of one verification call.

    THIS SCHEMA IS A PUBLIC, FROZEN CONTRACT.
    """

    verification_id: str

    matched: bool
    outcome: VerificationOutcome

    token_type: TokenType
    claimed_color_id: str
    derived_color_id: str

    metadata_digest: str = Field(
        ..., description="SHA-256 of the canonical metadata bytes (hex)"
    )
    commitment: str = Field(
        ..., description="32-byte value tweaked into the payment base (hex)"
    )
    payment_base: str
    tweaked_pubkey: Optional[str] = Field(
        None, description="Compressed P2C-tweaked public key (hex)"
    )
    expected_script: str = Field(
        ..., description="P2PKH script of the tweaked key (hex)"
    )

    outpoint: Optional[OutPoint] = None
    network_id: Optional[str] = None

    chain_check: ChainCheckResult
    stages: List[VerificationStage] = Field(default_factory=list)

    metadata: TokenMetadata

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def enforce_verdict_invariants(self):
        if self.matched != (self.outcome is VerificationOutcome.MATCHED):
            raise ValueError("matched and outcome disagree")
        if self.matched:
            if self.claimed_color_id != self.derived_color_id:
                raise ValueError(
                    "matched=True requires identical claimed and derived IDs"
                )
            if self.chain_check.failed:
                raise ValueError(
                    "matched=True is not allowed after a failed chain check"
                )
        if not self.derived_color_id.startswith(self.token_type.prefix):
            raise ValueError("Derived Color ID prefix does not match class")
        return self

    @property
    def color_id_matched(self) -> bool:
        return self.claimed_color_id == self.derived_color_id

    def raise_for_mismatch(self) -> None:
        """Raise MismatchError unless the verdict is MATCHED."""
        if self.matched:
            return

        diagnostics: Dict[str, Any] = {
            "claimed_color_id": self.claimed_color_id,
            "derived_color_id": self.derived_color_id,
            "metadata_digest": self.metadata_digest,
            "tweaked_pubkey": self.tweaked_pubkey,
        }
        if self.chain_check.executed:
            diagnostics["expected_script"] = self.chain_check.expected_script
            diagnostics["actual_script"] = self.chain_check.actual_script

        if not self.color_id_matched:
            message = (
                f"Derived Color ID {self.derived_color_id} does not match "
                f"claimed {self.claimed_color_id}"
            )
        else:
            message = (
                "On-chain output script check failed: "
                f"{self.chain_check.status.value}"
            )

        raise MismatchError(
            message,
            stage=VerificationStage.DONE.value,
            diagnostics=diagnostics,
        )
