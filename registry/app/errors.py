"""
Verification error taxonomy.

Every failure raised by the verification core is a VerificationError.
Errors carry the orchestration stage at which they occurred and the
diagnostic values computed up to that point, so callers can display
"claimed vs. derived" information without re-running the computation.

Recoverable:
- SchemaError: metadata violates the schema (all violations listed)
- FormatError: Color ID / payment base / txid / network are malformed
- NetworkError: the chain lookup failed or timed out (not retried)

Fatal to the current request:
- CurveError: invalid point, invalid tweak scalar, point at infinity

Expected terminal outcome:
- MismatchError: the recomputed identifier or script differs from the
  claim. The coordinator reports this as matched=False; the exception is
  only raised by VerificationResult.raise_for_mismatch().
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Violation(BaseModel):
    """A single violated metadata rule."""

    field: str = Field(..., description="Dotted path of the offending field")
    rule: str = Field(..., description="Stable rule identifier")
    message: str = Field(..., description="Human-readable explanation")

    model_config = ConfigDict(frozen=True)


class VerificationError(RuntimeError):
    """Base class for all verification failures."""

    code = "verification_error"

    def __init__(
        self,
        message: str,
        *,
        stage: Optional[str] = None,
        diagnostics: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage
        self.diagnostics: Dict[str, Any] = dict(diagnostics or {})

    def with_context(
        self, *, stage: str, diagnostics: Dict[str, Any]
    ) -> "VerificationError":
        """
        Attach the failing stage and the diagnostics computed so far.

        Values already recorded on the error take precedence over the
        orchestrator's snapshot.
        """
        if self.stage is None:
            self.stage = stage
        merged = dict(diagnostics)
        merged.update(self.diagnostics)
        self.diagnostics = merged
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.code,
            "message": self.message,
            "stage": self.stage,
            "diagnostics": self.diagnostics,
        }


class SchemaError(VerificationError):
    """Metadata failed one or more schema rules."""

    code = "schema_error"

    def __init__(
        self,
        violations: List[Violation],
        *,
        stage: Optional[str] = None,
        diagnostics: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.violations = list(violations)
        summary = "; ".join(v.message for v in self.violations)
        super().__init__(
            f"Metadata validation failed: {summary}",
            stage=stage,
            diagnostics=diagnostics,
        )

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["violations"] = [v.model_dump() for v in self.violations]
        return payload


class FormatError(VerificationError):
    """An identifier or request field is malformed."""

    code = "format_error"


class CurveError(VerificationError):
    """Elliptic-curve input or output is invalid."""

    code = "curve_error"


class MismatchError(VerificationError):
    """A recomputed value differs from the claimed one."""

    code = "mismatch_error"


class NetworkError(VerificationError):
    """The chain lookup failed, timed out, or returned garbage."""

    code = "network_error"


class OutputNotFound(VerificationError):
    """The referenced transaction or output index does not exist."""

    code = "output_not_found"


class ConfigurationError(VerificationError):
    """The service is not configured for the requested operation."""

    code = "configuration_error"
