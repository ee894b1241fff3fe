"""
Derivation request variants.

A derivation is either metadata-bound (reissuable tokens) or
outpoint-bound (non-reissuable tokens and NFTs). Each variant carries
exactly the data its path needs; consumers dispatch on the variant type
rather than on class codes.
"""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

from registry.app.errors import SchemaError, Violation
from registry.app.schemas.identifiers import OutPoint, PaymentBase
from registry.app.schemas.metadata import TokenMetadata, TokenType


class ReissuableRequest(BaseModel):
    """Commitment is the canonical metadata digest."""

    kind: Literal["reissuable"] = "reissuable"
    metadata: TokenMetadata
    payment_base: PaymentBase

    model_config = ConfigDict(frozen=True)

    @property
    def token_type(self) -> TokenType:
        return TokenType.REISSUABLE

    @model_validator(mode="after")
    def metadata_class_matches(self):
        if self.metadata.token_type is not TokenType.REISSUABLE:
            raise ValueError(
                "ReissuableRequest requires reissuable metadata, got "
                f"'{self.metadata.token_type.value}'"
            )
        return self


class OutPointBoundRequest(BaseModel):
    """Commitment is derived from the serialized outpoint."""

    kind: Literal["outpoint_bound"] = "outpoint_bound"
    metadata: TokenMetadata
    payment_base: PaymentBase
    outpoint: OutPoint
    token_type: TokenType

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def class_is_outpoint_bound(self):
        if not self.token_type.is_outpoint_bound:
            raise ValueError("OutPointBoundRequest cannot be reissuable")
        if self.metadata.token_type is not self.token_type:
            raise ValueError(
                "Metadata token_type does not match the request class"
            )
        return self


DerivationRequest = Annotated[
    Union[ReissuableRequest, OutPointBoundRequest],
    Field(discriminator="kind"),
]


def build_derivation_request(
    *,
    metadata: TokenMetadata,
    payment_base: PaymentBase,
    outpoint: Optional[OutPoint] = None,
) -> Union[ReissuableRequest, OutPointBoundRequest]:
    """
    Select the derivation path from the token class.

    An outpoint for a reissuable token, or a missing outpoint for an
    outpoint-bound token, is rejected rather than silently ignored.
    """
    token_type = metadata.token_type

    if token_type is TokenType.REISSUABLE:
        if outpoint is not None:
            raise SchemaError(
                [
                    Violation(
                        field="outpoint",
                        rule="outpoint_forbidden",
                        message=(
                            "An outpoint must not be supplied for a "
                            "reissuable (c1) token"
                        ),
                    )
                ],
                diagnostics={"outpoint": str(outpoint)},
            )
        return ReissuableRequest(metadata=metadata, payment_base=payment_base)

    if outpoint is None:
        raise SchemaError(
            [
                Violation(
                    field="outpoint",
                    rule="outpoint_required",
                    message=(
                        f"An outpoint is required for a {token_type.value} "
                        f"({token_type.prefix}) token"
                    ),
                )
            ]
        )

    return OutPointBoundRequest(
        metadata=metadata,
        payment_base=payment_base,
        outpoint=outpoint,
        token_type=token_type,
    )
