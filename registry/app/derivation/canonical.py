"""
Canonical serialization of token metadata.

Produces exactly one byte sequence per semantic metadata record:

- only schema-defined fields that are present (extras are excluded,
  absent fields are omitted rather than serialized as null)
- keys sorted lexicographically at every nesting level, including
  `issuer` and objects inside `attributes`
- integral floats emitted as integers (1.0 -> 1), non-finite numbers
  rejected
- UTF-8, no insignificant whitespace

The digest of these bytes is the commitment for reissuable tokens.
"""

from __future__ import annotations

import json
import math
from typing import Any, Mapping

from registry.app.schemas.metadata import TokenMetadata
from registry.app.utils.hashing import sha256


# Integers beyond 2**53 cannot round-trip through IEEE-754 doubles
_MAX_SAFE_INTEGER = 2**53


def _normalize(value: Any) -> Any:
    """Reduce a JSON value to its canonical Python representation."""
    if isinstance(value, Mapping):
        normalized = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(
                    f"Canonical JSON object keys must be strings, got "
                    f"{type(key).__name__}"
                )
            normalized[key] = _normalize(item)
        return normalized

    if isinstance(value, (list, tuple)):
        return [_normalize(item) for item in value]

    if isinstance(value, bool) or value is None or isinstance(value, str):
        return value

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError("Non-finite numbers have no canonical form")
        if value.is_integer() and abs(value) < _MAX_SAFE_INTEGER:
            return int(value)
        return value

    raise TypeError(
        f"Value of type {type(value).__name__} is not JSON-serializable"
    )


def canonical_json_bytes(payload: Mapping[str, Any]) -> bytes:
    """Canonical bytes for an arbitrary JSON object."""
    return json.dumps(
        _normalize(payload),
        ensure_ascii=False,
        allow_nan=False,
        separators=(",", ":"),
        sort_keys=True,
    ).encode("utf-8")


def canonical_bytes(metadata: TokenMetadata) -> bytes:
    """Canonical bytes of the schema-defined fields of `metadata`."""
    return canonical_json_bytes(metadata.schema_fields())


def metadata_digest(metadata: TokenMetadata) -> bytes:
    """SHA-256 of the canonical metadata bytes."""
    return sha256(canonical_bytes(metadata))
