"""
Token metadata schema (TIP-0020).

Defines the validated, immutable metadata record registered for a
colored-coin token. Instances are produced by the metadata validator;
constructing one directly bypasses the collected-error reporting but
still enforces the structural invariants below.
"""

from __future__ import annotations

import copy
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


METADATA_VERSION = "1.0"


# ---------------------------------------------------------------------------
# Token classes (FROZEN CONTRACT)
# ---------------------------------------------------------------------------

class TokenType(str, Enum):
    """
    Token class encoded in the first two characters of a Color ID.

    Values use the spellings stored in registry files.
    """

    REISSUABLE = "reissuable"
    NON_REISSUABLE = "non-reissuable"
    NFT = "nft"

    @property
    def prefix(self) -> str:
        return _PREFIX_BY_TYPE[self]

    @property
    def is_outpoint_bound(self) -> bool:
        return self is not TokenType.REISSUABLE

    @classmethod
    def from_prefix(cls, prefix: str) -> "TokenType":
        try:
            return _TYPE_BY_PREFIX[prefix.lower()]
        except KeyError:
            raise ValueError(f"Unknown Color ID prefix: {prefix!r}") from None

    @classmethod
    def parse(cls, value: str) -> "TokenType":
        """Accept stored spellings and their underscore variants."""
        normalized = value.strip().lower().replace("_", "-")
        return cls(normalized)


_PREFIX_BY_TYPE = {
    TokenType.REISSUABLE: "c1",
    TokenType.NON_REISSUABLE: "c2",
    TokenType.NFT: "c3",
}

_TYPE_BY_PREFIX = {v: k for k, v in _PREFIX_BY_TYPE.items()}


NFT_ONLY_FIELDS = ("image", "animation_url", "external_url", "attributes")


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class IssuerInfo(BaseModel):
    """Optional issuer contact details."""

    name: Optional[str] = None
    url: Optional[str] = None
    email: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="forbid")

    def present_fields(self) -> Dict[str, str]:
        return {
            key: value
            for key, value in (
                ("name", self.name),
                ("url", self.url),
                ("email", self.email),
            )
            if value is not None
        }


class TokenMetadata(BaseModel):
    """
    Validated token metadata.

    Unknown top-level fields are kept as pydantic extras so they can be
    stored verbatim, but they are not part of the canonical form.
    """

    version: str = Field(METADATA_VERSION, description="Metadata format version")
    name: str = Field(..., description="Token name")
    symbol: str = Field(..., description="Ticker symbol")
    decimals: int = Field(0, ge=0, description="Display decimals")
    description: Optional[str] = None

    icon: Optional[str] = None
    website: Optional[str] = None
    terms: Optional[str] = None

    issuer: Optional[IssuerInfo] = None

    token_type: TokenType = Field(..., description="Token class")

    # NFT extensions (token_type == nft only)
    image: Optional[str] = None
    animation_url: Optional[str] = None
    external_url: Optional[str] = None
    attributes: Optional[List[Any]] = None

    model_config = ConfigDict(frozen=True, extra="allow")

    @model_validator(mode="after")
    def enforce_class_fields(self):
        if self.token_type is not TokenType.NFT:
            present = [f for f in NFT_ONLY_FIELDS if getattr(self, f) is not None]
            if present:
                raise ValueError(
                    f"NFT-only fields {present} are not allowed for "
                    f"token_type '{self.token_type.value}'"
                )
        return self

    # ------------------------------------------------------------------
    # Projections
    # ------------------------------------------------------------------

    def schema_fields(self) -> Dict[str, Any]:
        """
        Schema-defined fields that are present, as plain JSON values.

        Absent optional fields are omitted entirely, never emitted as null.
        Values inside `attributes` are copied as-is, nulls included.
        """
        payload: Dict[str, Any] = {
            "version": self.version,
            "name": self.name,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "token_type": self.token_type.value,
        }

        for key in ("description", "icon", "website", "terms"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value

        if self.issuer is not None:
            issuer = self.issuer.present_fields()
            if issuer:
                payload["issuer"] = issuer

        for key in ("image", "animation_url", "external_url"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = value

        if self.attributes is not None:
            payload["attributes"] = copy.deepcopy(self.attributes)

        return payload

    def extra_fields(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})

    def to_storage_dict(self) -> Dict[str, Any]:
        """Schema fields plus preserved extras, for the storage layer."""
        stored = self.extra_fields()
        stored.update(self.schema_fields())
        return stored
