"""
Identifier value types.

Color IDs, payment bases, and outpoints arrive as hex strings. Parsing
is strict and bit-exact; anything that does not match the published
formats is a FormatError, including surrounding whitespace. Parsed
values are canonicalized to lowercase.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field

from registry.app.errors import FormatError
from registry.app.schemas.metadata import TokenType


COLOR_ID_PATTERN = re.compile(r"c[123][0-9a-f]{64}", re.IGNORECASE)
PAYMENT_BASE_PATTERN = re.compile(r"(02|03)[0-9a-f]{64}", re.IGNORECASE)
TXID_PATTERN = re.compile(r"[0-9a-f]{64}", re.IGNORECASE)

MAX_OUTPUT_INDEX = 0xFFFFFFFF


def _require_str(value: object, what: str) -> str:
    if not isinstance(value, str):
        raise FormatError(
            f"{what} must be a string, got {type(value).__name__}",
            diagnostics={"value": repr(value)},
        )
    return value


class ColorId(BaseModel):
    """Type-prefixed token identifier: c1/c2/c3 + 64 hex characters."""

    value: str = Field(..., description="Lowercase 66-character Color ID")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def parse(cls, raw: object) -> "ColorId":
        value = _require_str(raw, "Color ID")
        if not COLOR_ID_PATTERN.fullmatch(value):
            raise FormatError(
                "Invalid Color ID format. Must be c1/c2/c3 prefix + "
                "64 hex characters",
                diagnostics={"claimed_color_id": value},
            )
        return cls(value=value.lower())

    @classmethod
    def from_digest(cls, token_type: TokenType, digest: bytes) -> "ColorId":
        if len(digest) != 32:
            raise ValueError("Color ID digest must be 32 bytes")
        return cls(value=token_type.prefix + digest.hex())

    @property
    def prefix(self) -> str:
        return self.value[:2]

    @property
    def token_type(self) -> TokenType:
        return TokenType.from_prefix(self.prefix)

    @property
    def digest_hex(self) -> str:
        return self.value[2:]

    def __str__(self) -> str:
        return self.value


class PaymentBase(BaseModel):
    """Compressed secp256k1 public key the commitment is tweaked into."""

    hex: str = Field(..., description="Lowercase 66-character hex")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def parse(cls, raw: object) -> "PaymentBase":
        value = _require_str(raw, "Payment base")
        if not PAYMENT_BASE_PATTERN.fullmatch(value):
            raise FormatError(
                "Invalid payment base. Must be a 33-byte compressed public "
                "key (02/03 prefix + 64 hex characters)",
                diagnostics={"payment_base": value},
            )
        return cls(hex=value.lower())

    def to_bytes(self) -> bytes:
        return bytes.fromhex(self.hex)


class OutPoint(BaseModel):
    """Reference to output `index` of transaction `txid`."""

    txid: str = Field(..., description="Transaction id in display (RPC) order")
    index: int = Field(..., description="Output index")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def parse(cls, txid: object, index: object) -> "OutPoint":
        txid_value = _require_str(txid, "Transaction id")
        if not TXID_PATTERN.fullmatch(txid_value):
            raise FormatError(
                "Invalid transaction id. Must be 64 hex characters",
                diagnostics={"txid": txid_value},
            )
        if (
            isinstance(index, bool)
            or not isinstance(index, int)
            or not 0 <= index <= MAX_OUTPUT_INDEX
        ):
            raise FormatError(
                "Invalid output index. Must be an integer in "
                f"[0, {MAX_OUTPUT_INDEX}]",
                diagnostics={"index": repr(index)},
            )
        return cls(txid=txid_value.lower(), index=index)

    def serialize(self) -> bytes:
        """Internal byte order txid (reversed) + uint32 little-endian index."""
        return bytes.fromhex(self.txid)[::-1] + self.index.to_bytes(4, "little")

    def __str__(self) -> str:
        return f"{self.txid}:{self.index}"
