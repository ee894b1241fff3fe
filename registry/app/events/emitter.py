from __future__ import annotations

from typing import Protocol

from registry.app.events.models import VerificationEvent


class VerificationEventEmitter(Protocol):
    """
    Sink for stage-transition events of a single verification.

    The coordinator awaits emit() inline between stages, so an
    implementation must return promptly and must never raise into the
    verification. Events describe progress; they never steer it.
    """

    async def emit(self, event: VerificationEvent) -> None:
        ...


class NullEventEmitter:
    """Discards every event. Default when no one is listening."""

    async def emit(self, event: VerificationEvent) -> None:
        return
