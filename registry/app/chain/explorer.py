"""
Block explorer read API.

Fetches the locking script recorded at an outpoint. This is the only
network boundary of the verification core.

Contract:
- exactly one GET per call, no implicit retry
- a single bounded wait (CHAIN_API_TIMEOUT_SECONDS)
- 404 or an out-of-range output index -> OutputNotFound
- timeouts, connection failures, non-2xx and malformed bodies -> NetworkError

The explorer is expected to serve Esplora-style transactions:

    GET {api_base_url}/tx/{txid}
    {"vout": [{"scriptpubkey": "76a914...88ac", ...}, ...]}

Bitcoin Core style `{"scriptPubKey": {"hex": ...}}` outputs are also
accepted.
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import httpx

from registry.app.config import NetworkInfo
from registry.app.errors import ConfigurationError, NetworkError, OutputNotFound
from registry.app.schemas.identifiers import OutPoint

logger = logging.getLogger(__name__)


class OutputScriptFetcher(Protocol):
    """Read-only chain query consumed by the chain cross-check."""

    async def fetch_output_script(
        self, network: NetworkInfo, outpoint: OutPoint
    ) -> bytes:
        ...


def _script_hex(output: Any) -> Optional[str]:
    if not isinstance(output, dict):
        return None
    value = output.get("scriptpubkey")
    if isinstance(value, str):
        return value
    legacy = output.get("scriptPubKey")
    if isinstance(legacy, dict) and isinstance(legacy.get("hex"), str):
        return legacy["hex"]
    return None


class ExplorerOutputScriptFetcher:
    """
    httpx-based OutputScriptFetcher.

    A shared AsyncClient may be injected to reuse connections (and by
    tests, via httpx.MockTransport). Without one, a client is scoped to
    each call.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._timeout = httpx.Timeout(timeout_seconds)
        self._client = client

    async def fetch_output_script(
        self, network: NetworkInfo, outpoint: OutPoint
    ) -> bytes:
        if not network.api_base_url:
            raise ConfigurationError(
                f"No explorer API configured for network {network.id} "
                f"({network.name})",
                diagnostics={"network_id": network.id},
            )

        url = f"{network.api_base_url.rstrip('/')}/tx/{outpoint.txid}"
        diagnostics = {"network_id": network.id, "outpoint": str(outpoint)}

        logger.info("explorer: GET %s (output %s)", url, outpoint.index)

        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(url)
        except httpx.TimeoutException as exc:
            logger.warning("explorer: timeout fetching %s: %s", url, exc)
            raise NetworkError(
                f"Timed out fetching transaction {outpoint.txid}",
                diagnostics=diagnostics,
            ) from exc
        except httpx.RequestError as exc:
            logger.warning("explorer: connection error for %s: %s", url, exc)
            raise NetworkError(
                f"Failed to reach explorer for transaction {outpoint.txid}: {exc}",
                diagnostics=diagnostics,
            ) from exc

        if response.status_code == 404:
            raise OutputNotFound(
                f"Transaction {outpoint.txid} not found on network {network.id}",
                diagnostics=diagnostics,
            )

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "explorer: HTTP %s for %s", exc.response.status_code, url
            )
            raise NetworkError(
                f"Explorer returned HTTP {exc.response.status_code}",
                diagnostics=diagnostics,
            ) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise NetworkError(
                "Explorer returned a non-JSON response",
                diagnostics=diagnostics,
            ) from exc

        outputs = payload.get("vout") if isinstance(payload, dict) else None
        if not isinstance(outputs, list):
            raise NetworkError(
                "Explorer response has no output list",
                diagnostics=diagnostics,
            )

        if outpoint.index >= len(outputs):
            raise OutputNotFound(
                f"Transaction {outpoint.txid} has {len(outputs)} outputs; "
                f"index {outpoint.index} does not exist",
                diagnostics=diagnostics,
            )

        script_hex = _script_hex(outputs[outpoint.index])
        if script_hex is None:
            raise NetworkError(
                "Explorer output carries no script",
                diagnostics=diagnostics,
            )

        try:
            return bytes.fromhex(script_hex)
        except ValueError as exc:
            raise NetworkError(
                "Explorer returned a malformed script",
                diagnostics={**diagnostics, "actual_script": script_hex},
            ) from exc
