"""
Color ID verification coordinator.

IMPORTANT:
The coordinator is a DUMB AUTHORITY.

It MUST NOT:
- retry or backtrack
- persist anything (storage is the caller's job once MATCHED)
- swallow errors

Its sole responsibilities are:
- enforcing execution order
- attributing failures to the stage that produced them
- aggregating intermediate values into the final VerificationResult

Execution order:
    START -> VALIDATED -> COMMITMENT_BUILT -> KEY_DERIVED -> ID_DERIVED
          -> COMPARED -> (CHAIN_CHECKED) -> DONE(MATCHED | MISMATCHED)

ERROR is reachable from every stage.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from uuid import uuid4

from registry.app.chain.explorer import ExplorerOutputScriptFetcher
from registry.app.checks.metadata_validation import validate_metadata
from registry.app.config import NetworkInfo, RegistryConfig
from registry.app.coordinator.chain_cross_check import ChainCrossCheck
from registry.app.derivation.canonical import metadata_digest
from registry.app.derivation.color_id import color_id_from_script, p2pkh_script
from registry.app.derivation.commitment import build_commitment
from registry.app.derivation.p2c import derive_tweaked_pubkey
from registry.app.errors import FormatError, VerificationError
from registry.app.events import (
    NullEventEmitter,
    VerificationEvent,
    VerificationEventEmitter,
    VerificationEventType,
)
from registry.app.schemas.derivation import (
    OutPointBoundRequest,
    build_derivation_request,
)
from registry.app.schemas.identifiers import ColorId, OutPoint, PaymentBase
from registry.app.schemas.verification_result import (
    ChainCheckResult,
    VerificationOutcome,
    VerificationRequest,
    VerificationResult,
    VerificationStage,
)

logger = logging.getLogger(__name__)


class VerificationCoordinator:
    """
    Central verification coordinator.

    Stateless across calls: every verify() builds its values from the
    request and the immutable configuration it was constructed with.
    """

    def __init__(
        self,
        config: RegistryConfig,
        chain_cross_check: Optional[ChainCrossCheck] = None,
    ) -> None:
        """
        Direct constructor.

        Intended for tests and explicit wiring. When chain_cross_check is
        None, outpoint-bound tokens are verified by Color ID only and the
        result records the chain check as NOT_EXECUTED.
        """
        self._config = config
        self._chain_cross_check = chain_cross_check

    # ------------------------------------------------------------------
    # Integration constructor (composition root)
    # ------------------------------------------------------------------

    @classmethod
    def from_config(cls, config: RegistryConfig) -> "VerificationCoordinator":
        chain_cross_check = None

        if config.ENABLE_CHAIN_CROSS_CHECK:
            chain_cross_check = ChainCrossCheck(
                ExplorerOutputScriptFetcher(
                    timeout_seconds=config.CHAIN_API_TIMEOUT_SECONDS,
                )
            )

        return cls(config=config, chain_cross_check=chain_cross_check)

    @property
    def config(self) -> RegistryConfig:
        return self._config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def verify(
        self,
        request: VerificationRequest,
        *,
        verification_id: Optional[str] = None,
        emitter: Optional[VerificationEventEmitter] = None,
    ) -> VerificationResult:
        """
        Recompute the Color ID for `request` and compare it with the claim.

        Returns a VerificationResult for both MATCHED and MISMATCHED
        outcomes. Raises a VerificationError (with stage and diagnostics
        attached) for schema, format, curve, network and configuration
        failures.
        """
        emitter = emitter or NullEventEmitter()
        verification_id = verification_id or str(uuid4())

        stages: List[VerificationStage] = [VerificationStage.START]
        diagnostics: Dict[str, Any] = {
            "claimed_color_id": request.claimed_color_id,
        }
        attempting = VerificationStage.VALIDATED

        async def emit(
            event_type: VerificationEventType,
            details: Optional[Dict[str, Any]] = None,
        ) -> None:
            await emitter.emit(
                VerificationEvent(
                    verification_id=verification_id,
                    event_type=event_type,
                    details=details,
                )
            )

        await emit(VerificationEventType.VERIFICATION_STARTED)

        try:
            # ----------------------------------------------------------
            # 1. Validation (identifiers, metadata, derivation path)
            # ----------------------------------------------------------
            claimed = ColorId.parse(request.claimed_color_id)
            token_type = claimed.token_type
            diagnostics["claimed_color_id"] = claimed.value
            diagnostics["token_type"] = token_type.value

            payment_base = PaymentBase.parse(request.payment_base)
            diagnostics["payment_base"] = payment_base.hex

            outpoint: Optional[OutPoint] = None
            if request.outpoint is not None:
                outpoint = OutPoint.parse(
                    request.outpoint.txid, request.outpoint.index
                )
                diagnostics["outpoint"] = str(outpoint)

            network = self._resolve_network(request.network)
            if network is not None:
                diagnostics["network_id"] = network.id

            metadata = validate_metadata(
                request.metadata,
                token_type=token_type,
                limits=self._config.LIMITS,
            )
            derivation = build_derivation_request(
                metadata=metadata,
                payment_base=payment_base,
                outpoint=outpoint,
            )

            digest = metadata_digest(metadata)
            diagnostics["metadata_digest"] = digest.hex()

            if (
                isinstance(derivation, OutPointBoundRequest)
                and self._chain_cross_check is not None
                and network is None
            ):
                raise FormatError(
                    "A network is required to cross-check "
                    f"{token_type.prefix} tokens on chain"
                )

            stages.append(VerificationStage.VALIDATED)
            await emit(
                VerificationEventType.METADATA_VALIDATED,
                {"token_type": token_type.value, "metadata_digest": digest.hex()},
            )

            # ----------------------------------------------------------
            # 2. Commitment
            # ----------------------------------------------------------
            attempting = VerificationStage.COMMITMENT_BUILT
            commitment = build_commitment(derivation)
            diagnostics["commitment"] = commitment.hex()

            stages.append(VerificationStage.COMMITMENT_BUILT)
            await emit(
                VerificationEventType.COMMITMENT_BUILT,
                {"commitment": commitment.hex()},
            )

            # ----------------------------------------------------------
            # 3. P2C key derivation
            # ----------------------------------------------------------
            attempting = VerificationStage.KEY_DERIVED
            tweaked_pubkey = derive_tweaked_pubkey(payment_base, commitment)
            diagnostics["tweaked_pubkey"] = tweaked_pubkey.hex()

            stages.append(VerificationStage.KEY_DERIVED)
            await emit(
                VerificationEventType.KEY_DERIVED,
                {"tweaked_pubkey": tweaked_pubkey.hex()},
            )

            # ----------------------------------------------------------
            # 4. Color ID derivation
            # ----------------------------------------------------------
            attempting = VerificationStage.ID_DERIVED
            expected_script = p2pkh_script(tweaked_pubkey)
            derived = color_id_from_script(expected_script, token_type)
            diagnostics["expected_script"] = expected_script.hex()
            diagnostics["derived_color_id"] = derived.value

            stages.append(VerificationStage.ID_DERIVED)
            await emit(
                VerificationEventType.COLOR_ID_DERIVED,
                {"derived_color_id": derived.value},
            )

            # ----------------------------------------------------------
            # 5. Comparison
            # ----------------------------------------------------------
            attempting = VerificationStage.COMPARED
            id_matched = derived.value == claimed.value

            if not id_matched:
                logger.warning(
                    "verification %s: Color ID mismatch claimed=%s derived=%s",
                    verification_id,
                    claimed.value,
                    derived.value,
                )

            stages.append(VerificationStage.COMPARED)
            await emit(
                VerificationEventType.COLOR_ID_COMPARED,
                {"matched": id_matched},
            )

            # ----------------------------------------------------------
            # 6. Chain cross-check (outpoint-bound tokens only)
            # ----------------------------------------------------------
            if not isinstance(derivation, OutPointBoundRequest):
                chain_check = ChainCheckResult.not_applicable()
            elif self._chain_cross_check is None:
                chain_check = ChainCheckResult.not_executed(
                    "Chain cross-check is not enabled",
                    expected_script=expected_script.hex(),
                )
            elif not id_matched:
                chain_check = ChainCheckResult.not_executed(
                    "Skipped because the Color ID did not match",
                    expected_script=expected_script.hex(),
                )
            else:
                attempting = VerificationStage.CHAIN_CHECKED
                await emit(VerificationEventType.CHAIN_CHECK_STARTED)

                chain_check = await self._chain_cross_check.run(
                    network=network,
                    outpoint=derivation.outpoint,
                    expected_script=expected_script,
                )
                diagnostics["actual_script"] = chain_check.actual_script

                stages.append(VerificationStage.CHAIN_CHECKED)
                await emit(
                    VerificationEventType.CHAIN_CHECK_COMPLETED,
                    {
                        "status": chain_check.status.value,
                        "expected_script": chain_check.expected_script,
                        "actual_script": chain_check.actual_script,
                    },
                )

            # ----------------------------------------------------------
            # Final disposition
            # ----------------------------------------------------------
            matched = id_matched and not chain_check.failed
            stages.append(VerificationStage.DONE)

            result = VerificationResult(
                verification_id=verification_id,
                matched=matched,
                outcome=(
                    VerificationOutcome.MATCHED
                    if matched
                    else VerificationOutcome.MISMATCHED
                ),
                token_type=token_type,
                claimed_color_id=claimed.value,
                derived_color_id=derived.value,
                metadata_digest=digest.hex(),
                commitment=commitment.hex(),
                payment_base=payment_base.hex,
                tweaked_pubkey=tweaked_pubkey.hex(),
                expected_script=expected_script.hex(),
                outpoint=outpoint,
                network_id=network.id if network is not None else None,
                chain_check=chain_check,
                stages=stages,
                metadata=metadata,
            )

            logger.info(
                "verification %s: %s (%s)",
                verification_id,
                result.outcome.value,
                claimed.value,
            )

            await emit(
                VerificationEventType.VERIFICATION_COMPLETED,
                {
                    "outcome": result.outcome.value,
                    "result": result.model_dump(mode="json"),
                },
            )

            return result

        except VerificationError as exc:
            exc.with_context(stage=attempting.value, diagnostics=diagnostics)
            stages.append(VerificationStage.ERROR)

            logger.warning(
                "verification %s failed at %s: %s",
                verification_id,
                exc.stage,
                exc.message,
            )

            await emit(
                VerificationEventType.VERIFICATION_FAILED,
                exc.to_dict(),
            )
            raise

        except Exception as exc:
            await emit(
                VerificationEventType.VERIFICATION_FAILED,
                {
                    "error": str(exc),
                    "exception_type": type(exc).__name__,
                    "stage": attempting.value,
                },
            )
            raise

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _resolve_network(self, value: Optional[str]) -> Optional[NetworkInfo]:
        if value is None or not value.strip():
            return None

        network = self._config.resolve_network(value)
        if network is None:
            raise FormatError(
                f"Unknown network {value!r}",
                diagnostics={
                    "network": value,
                    "known_networks": [n.id for n in self._config.NETWORKS],
                },
            )
        return network
