"""
Chain cross-check for outpoint-bound tokens.

Compares, byte for byte, the P2PKH script implied by the derivation with
the script the explorer reports at the outpoint. A missing output is a
failed check. Network failures are not converted into a verdict; they
propagate as NetworkError.
"""

from __future__ import annotations

import logging

from registry.app.chain.explorer import OutputScriptFetcher
from registry.app.config import NetworkInfo
from registry.app.errors import OutputNotFound
from registry.app.schemas.identifiers import OutPoint
from registry.app.schemas.verification_result import (
    ChainCheckResult,
    ChainCheckStatus,
)

logger = logging.getLogger(__name__)


class ChainCrossCheck:
    """Single-request, no-retry script comparison."""

    def __init__(self, fetcher: OutputScriptFetcher) -> None:
        self._fetcher = fetcher

    async def run(
        self,
        *,
        network: NetworkInfo,
        outpoint: OutPoint,
        expected_script: bytes,
    ) -> ChainCheckResult:
        try:
            actual_script = await self._fetcher.fetch_output_script(
                network, outpoint
            )
        except OutputNotFound as exc:
            logger.warning("chain check: output %s not found: %s", outpoint, exc)
            return ChainCheckResult(
                executed=True,
                status=ChainCheckStatus.OUTPUT_NOT_FOUND,
                expected_script=expected_script.hex(),
                actual_script=None,
                detail=str(exc),
            )

        if actual_script != expected_script:
            logger.warning(
                "chain check: script mismatch at %s expected=%s actual=%s",
                outpoint,
                expected_script.hex(),
                actual_script.hex(),
            )
            return ChainCheckResult(
                executed=True,
                status=ChainCheckStatus.SCRIPT_MISMATCH,
                expected_script=expected_script.hex(),
                actual_script=actual_script.hex(),
                detail="On-chain script differs from the derived script",
            )

        logger.info("chain check: script at %s matches", outpoint)
        return ChainCheckResult(
            executed=True,
            status=ChainCheckStatus.MATCHED,
            expected_script=expected_script.hex(),
            actual_script=actual_script.hex(),
        )
