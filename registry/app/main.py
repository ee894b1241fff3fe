"""
FastAPI entrypoint for the Color ID verification service.

This module defines the public HTTP interface. It accepts a claimed
Color ID together with its metadata and payment base (and outpoint for
c2 / c3 tokens), invokes the coordinator, and returns the
VerificationResult.

The service is stateless: nothing is written anywhere. Persisting a
MATCHED registration is the caller's responsibility.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, List, Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from registry.app.checks.metadata_validation import validate_metadata
from registry.app.config import NetworkInfo, RegistryConfig
from registry.app.coordinator.coordinator import VerificationCoordinator
from registry.app.derivation.derive import Derivation, derive
from registry.app.errors import (
    ConfigurationError,
    NetworkError,
    VerificationError,
)
from registry.app.events import MemoryQueueEventEmitter
from registry.app.schemas.derivation import build_derivation_request
from registry.app.schemas.identifiers import OutPoint, PaymentBase
from registry.app.schemas.metadata import TokenType
from registry.app.schemas.verification_result import (
    OutPointInput,
    VerificationRequest,
    VerificationResult,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Presentation helpers (presentation-only)
# ---------------------------------------------------------------------------

def pretty_json(data: Any) -> str:
    """
    Pretty-print JSON for human-readable output.

    PRESENTATION ONLY: never used for digests.
    """
    return json.dumps(
        data,
        ensure_ascii=False,
        allow_nan=False,
        indent=2,
        separators=(", ", ": "),
    )


class PrettyJSONResponse(Response):
    """Pretty-printed JSON response for human-readable console output."""

    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        return pretty_json(content).encode("utf-8")


class DeriveRequest(BaseModel):
    """Issuer-side request: compute the Color ID for new metadata."""

    token_type: TokenType
    payment_base: str
    metadata: dict
    outpoint: Optional[OutPointInput] = None

    model_config = ConfigDict(frozen=True, extra="forbid")


class NetworkListing(BaseModel):
    networks: List[NetworkInfo] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Application setup
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Token Registry Verifier",
    description="Deterministic Color ID verification for colored-coin tokens",
    version="0.1.0",
)


@app.on_event("startup")
def startup_event() -> None:
    """
    Application startup hook.

    Configuration is loaded once and treated as immutable for the
    lifetime of the process.
    """
    config = RegistryConfig.from_env()

    if config.ENABLE_CHAIN_CROSS_CHECK:
        missing = [n.id for n in config.NETWORKS if not n.api_base_url]
        if missing:
            logger.error(
                "Chain cross-check enabled but no explorer URL for networks %s",
                missing,
            )

    app.state.config = config
    app.state.coordinator = VerificationCoordinator.from_config(config)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

def _status_for(exc: VerificationError) -> int:
    if isinstance(exc, NetworkError):
        return 502
    if isinstance(exc, ConfigurationError):
        return 500
    return 422


@app.exception_handler(VerificationError)
async def verification_error_handler(
    request: Request, exc: VerificationError
) -> JSONResponse:
    return JSONResponse(status_code=_status_for(exc), content=exc.to_dict())


# ---------------------------------------------------------------------------
# API Routes
# ---------------------------------------------------------------------------

@app.post(
    "/verify",
    response_model=VerificationResult,
    response_class=PrettyJSONResponse,
    summary="Verify a claimed Color ID",
)
async def verify_color_id(body: VerificationRequest) -> VerificationResult:
    coordinator: VerificationCoordinator = app.state.coordinator
    return await coordinator.verify(body, verification_id=str(uuid4()))


@app.post(
    "/verify/stream",
    summary="Verify a claimed Color ID (streaming progress)",
)
async def verify_color_id_stream(body: VerificationRequest):
    """
    Verify while streaming stage events as Server-Sent Events.

    The final verification_completed event carries the result; a
    verification_failed event carries the structured error.
    """
    coordinator: VerificationCoordinator = app.state.coordinator
    verification_id = str(uuid4())
    emitter = MemoryQueueEventEmitter()

    async def run_verification_task() -> None:
        try:
            await coordinator.verify(
                body,
                verification_id=verification_id,
                emitter=emitter,
            )
        except Exception as exc:
            # Coordinator already emitted VERIFICATION_FAILED
            logger.debug("stream %s ended with %s", verification_id, exc)

    asyncio.create_task(run_verification_task())

    async def event_stream():
        try:
            async for event in emitter.stream():
                yield event.to_sse_payload()
        except asyncio.CancelledError:
            # Client disconnected; verification finishes on its own
            pass

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@app.post(
    "/derive",
    response_model=Derivation,
    response_class=PrettyJSONResponse,
    summary="Compute the Color ID for token metadata",
)
def derive_color_id(body: DeriveRequest) -> Derivation:
    config: RegistryConfig = app.state.config

    payment_base = PaymentBase.parse(body.payment_base)
    outpoint = (
        OutPoint.parse(body.outpoint.txid, body.outpoint.index)
        if body.outpoint is not None
        else None
    )
    metadata = validate_metadata(
        body.metadata, token_type=body.token_type, limits=config.LIMITS
    )
    request = build_derivation_request(
        metadata=metadata, payment_base=payment_base, outpoint=outpoint
    )
    return derive(request)


@app.get(
    "/networks",
    response_model=NetworkListing,
    summary="Networks accepted by this registry",
)
def list_networks() -> NetworkListing:
    config: RegistryConfig = app.state.config
    return NetworkListing(networks=list(config.NETWORKS))


# ---------------------------------------------------------------------------
# Health Check
# ---------------------------------------------------------------------------

@app.get(
    "/health",
    summary="Service health check",
)
def health_check() -> JSONResponse:
    """Simple health check endpoint."""
    return JSONResponse(
        content={
            "status": "ok",
            "service": "registry",
        }
    )
