from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field


# ----------------------------------------------------------------------
# Event types
# ----------------------------------------------------------------------
class VerificationEventType(str, Enum):
    """
    One entry per coordinator stage transition, bracketed by a
    started event and exactly one terminal event.

    Values are part of the SSE wire format; renaming one breaks clients.
    """

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    VERIFICATION_STARTED = "verification_started"
    VERIFICATION_COMPLETED = "verification_completed"
    VERIFICATION_FAILED = "verification_failed"

    # ------------------------------------------------------------------
    # Stage transitions
    # ------------------------------------------------------------------
    METADATA_VALIDATED = "metadata_validated"
    COMMITMENT_BUILT = "commitment_built"
    KEY_DERIVED = "key_derived"
    COLOR_ID_DERIVED = "color_id_derived"
    COLOR_ID_COMPARED = "color_id_compared"

    # ------------------------------------------------------------------
    # Chain cross-check
    # ------------------------------------------------------------------
    CHAIN_CHECK_STARTED = "chain_check_started"
    CHAIN_CHECK_COMPLETED = "chain_check_completed"


TERMINAL_EVENT_TYPES = frozenset(
    {
        VerificationEventType.VERIFICATION_COMPLETED,
        VerificationEventType.VERIFICATION_FAILED,
    }
)


# ----------------------------------------------------------------------
# Event record
# ----------------------------------------------------------------------
class VerificationEvent(BaseModel):
    """
    Snapshot of one stage transition.

    The VerificationResult is the verdict; an event only reports that a
    stage finished and which intermediate values it produced.
    """

    event_id: UUID = Field(default_factory=uuid4)
    verification_id: str = Field(..., description="The verification identifier")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: VerificationEventType

    # Stage outputs such as digests and scripts
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )

    def to_sse_payload(self) -> str:
        """Render as a single Server-Sent Events message."""
        data = json.dumps(self.model_dump(mode="json"), ensure_ascii=False)
        return f"event: {self.event_type.value}\ndata: {data}\n\n"
