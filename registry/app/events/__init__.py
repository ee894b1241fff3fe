"""Stage-transition events streamed to verification clients."""

from .emitter import NullEventEmitter, VerificationEventEmitter
from .memory_emitter import MemoryQueueEventEmitter
from .models import TERMINAL_EVENT_TYPES, VerificationEvent, VerificationEventType

__all__ = [
    "MemoryQueueEventEmitter",
    "NullEventEmitter",
    "TERMINAL_EVENT_TYPES",
    "VerificationEvent",
    "VerificationEventEmitter",
    "VerificationEventType",
]
