"""
Metadata validation.

Turns a raw field mapping (registration form values or parsed JSON) into
a validated TokenMetadata, or raises a SchemaError listing EVERY violated
rule. No rule short-circuits validation of unrelated fields.

Accepted input shapes:
- nested `issuer` object, or flat `issuer_name` / `issuer_url` /
  `issuer_email` form fields
- `decimals` as an int or a decimal string
- `attributes` as a list or a JSON-encoded string
- empty strings and the form placeholder `_No response_` mean "absent"

Unknown top-level fields are preserved verbatim and never digested.
"""

from __future__ import annotations

import json
import math
import re
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlsplit

from registry.app.config import MetadataLimits
from registry.app.errors import SchemaError, Violation
from registry.app.schemas.metadata import (
    METADATA_VERSION,
    NFT_ONLY_FIELDS,
    IssuerInfo,
    TokenMetadata,
    TokenType,
)


NO_RESPONSE = "_No response_"

EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
DECIMALS_PATTERN = re.compile(r"\d+")

URL_FIELDS = ("icon", "website", "terms")
NFT_URL_FIELDS = ("image", "animation_url", "external_url")

ISSUER_FLAT_FIELDS = {
    "issuer_name": "name",
    "issuer_url": "url",
    "issuer_email": "email",
}

SCHEMA_FIELDS = frozenset(
    {
        "version",
        "name",
        "symbol",
        "decimals",
        "description",
        "issuer",
        "token_type",
        *URL_FIELDS,
        *NFT_ONLY_FIELDS,
        *ISSUER_FLAT_FIELDS,
    }
)


# ------------------------------------------------------------------
# Field predicates
# ------------------------------------------------------------------


def is_absent(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        stripped = value.strip()
        return stripped == "" or stripped == NO_RESPONSE
    return False


def is_valid_https_url(value: Any) -> bool:
    """Absolute URL whose scheme is exactly https."""
    if not isinstance(value, str) or any(c.isspace() for c in value):
        return False
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme == "https" and bool(parts.hostname)


def is_valid_email(value: Any) -> bool:
    """Minimal local@domain.tld shape, not full RFC 5322."""
    return isinstance(value, str) and EMAIL_PATTERN.fullmatch(value) is not None


# ------------------------------------------------------------------
# Validator
# ------------------------------------------------------------------


class _Collector:
    def __init__(self) -> None:
        self.violations: List[Violation] = []

    def add(self, field: str, rule: str, message: str) -> None:
        self.violations.append(Violation(field=field, rule=rule, message=message))


def _check_bounded_text(
    errors: _Collector,
    field: str,
    label: str,
    value: Any,
    limit: int,
) -> Optional[str]:
    if not isinstance(value, str):
        errors.add(field, "type", f"{label} must be a string")
        return None
    if len(value) > limit:
        errors.add(
            field, "max_length", f"{label} must be {limit} characters or less"
        )
        return None
    return value


def _check_url(errors: _Collector, field: str, value: Any) -> Optional[str]:
    if not is_valid_https_url(value):
        errors.add(field, "https_url", f"{field} must be a valid HTTPS URL")
        return None
    return value


def _parse_decimals(errors: _Collector, value: Any, max_decimals: int) -> int:
    if isinstance(value, bool):
        parsed = None
    elif isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and DECIMALS_PATTERN.fullmatch(value.strip()):
        parsed = int(value.strip())
    else:
        parsed = None

    if parsed is None or not 0 <= parsed <= max_decimals:
        errors.add(
            "decimals",
            "range",
            f"Decimals must be an integer between 0 and {max_decimals}",
        )
        return 0
    return parsed


def _collect_issuer(
    errors: _Collector, fields: Mapping[str, Any]
) -> Optional[IssuerInfo]:
    issuer: Dict[str, Any] = {}

    nested = fields.get("issuer")
    if nested is not None:
        if not isinstance(nested, Mapping):
            errors.add("issuer", "type", "Issuer must be an object")
        else:
            for key, value in nested.items():
                if key not in ("name", "url", "email"):
                    errors.add(
                        f"issuer.{key}",
                        "unknown_field",
                        f"issuer.{key} is not a recognised issuer field",
                    )
                elif not is_absent(value):
                    issuer[key] = value

    for flat_key, key in ISSUER_FLAT_FIELDS.items():
        if flat_key not in fields:
            continue
        value = fields[flat_key]
        if key in issuer and issuer[key] != value:
            errors.add(
                f"issuer.{key}",
                "conflict",
                f"{flat_key} conflicts with issuer.{key}",
            )
            continue
        issuer[key] = value

    if not issuer:
        return None

    valid = True
    if "name" in issuer and not isinstance(issuer["name"], str):
        errors.add("issuer.name", "type", "Issuer name must be a string")
        valid = False
    if "url" in issuer and _check_url(errors, "issuer.url", issuer["url"]) is None:
        valid = False
    if "email" in issuer and not is_valid_email(issuer["email"]):
        errors.add("issuer.email", "email", "Invalid issuer email format")
        valid = False

    return IssuerInfo(**issuer) if valid else None


def _has_non_finite(value: Any) -> bool:
    if isinstance(value, float):
        return not math.isfinite(value)
    if isinstance(value, Mapping):
        return any(_has_non_finite(item) for item in value.values())
    if isinstance(value, (list, tuple)):
        return any(_has_non_finite(item) for item in value)
    return False


def _parse_attributes(errors: _Collector, value: Any) -> Optional[List[Any]]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            errors.add(
                "attributes", "json", "Invalid JSON format for attributes"
            )
            return None
    if not isinstance(value, list):
        errors.add("attributes", "array", "Attributes must be a JSON array")
        return None
    if _has_non_finite(value):
        errors.add(
            "attributes",
            "non_finite",
            "Attributes must not contain NaN or Infinity",
        )
        return None
    return value


def validate_metadata(
    raw: Mapping[str, Any],
    *,
    token_type: TokenType,
    limits: Optional[MetadataLimits] = None,
) -> TokenMetadata:
    """
    Validate raw metadata for a token of class `token_type`.

    The class comes from the Color ID prefix. A `token_type` field in
    the metadata itself must agree with it.
    """
    limits = limits or MetadataLimits()
    errors = _Collector()

    if not isinstance(raw, Mapping):
        errors.add("$", "type", "Metadata must be a JSON object")
        raise SchemaError(errors.violations)

    fields = {k: v for k, v in raw.items() if not is_absent(v)}
    values: Dict[str, Any] = {"token_type": token_type}

    # --------------------------------------------------------------
    # Envelope tags
    # --------------------------------------------------------------
    if "version" in fields and fields["version"] != METADATA_VERSION:
        errors.add(
            "version",
            "version",
            f"Unsupported metadata version; expected '{METADATA_VERSION}'",
        )

    if "token_type" in fields:
        declared = fields["token_type"]
        try:
            declared_type = TokenType.parse(declared) if isinstance(declared, str) else None
        except ValueError:
            declared_type = None

        if declared_type is None:
            errors.add(
                "token_type",
                "enum",
                "token_type must be one of reissuable, non_reissuable, nft",
            )
        elif declared_type is not token_type:
            errors.add(
                "token_type",
                "class_mismatch",
                f"token_type '{declared_type.value}' does not match the "
                f"Color ID class '{token_type.value}' ({token_type.prefix})",
            )

    # --------------------------------------------------------------
    # Required fields
    # --------------------------------------------------------------
    if "name" not in fields:
        errors.add("name", "required", "Token name is required")
    else:
        values["name"] = _check_bounded_text(
            errors, "name", "Token name", fields["name"], limits.name
        )

    if "symbol" not in fields:
        errors.add("symbol", "required", "Symbol is required")
    else:
        values["symbol"] = _check_bounded_text(
            errors, "symbol", "Symbol", fields["symbol"], limits.symbol
        )

    # --------------------------------------------------------------
    # Optional fields
    # --------------------------------------------------------------
    if "decimals" in fields:
        values["decimals"] = _parse_decimals(
            errors, fields["decimals"], limits.max_decimals
        )

    if "description" in fields:
        values["description"] = _check_bounded_text(
            errors,
            "description",
            "Description",
            fields["description"],
            limits.description,
        )

    for field in URL_FIELDS:
        if field in fields:
            values[field] = _check_url(errors, field, fields[field])

    values["issuer"] = _collect_issuer(errors, fields)

    # --------------------------------------------------------------
    # NFT extensions
    # --------------------------------------------------------------
    if token_type is TokenType.NFT:
        for field in NFT_URL_FIELDS:
            if field in fields:
                values[field] = _check_url(errors, field, fields[field])
        if "attributes" in fields:
            values["attributes"] = _parse_attributes(errors, fields["attributes"])
    else:
        for field in NFT_ONLY_FIELDS:
            if field in fields:
                errors.add(
                    field,
                    "nft_only",
                    f"{field} is only allowed for NFT (c3) tokens",
                )

    if errors.violations:
        raise SchemaError(errors.violations)

    extras = {k: v for k, v in fields.items() if k not in SCHEMA_FIELDS}
    values = {k: v for k, v in values.items() if v is not None}

    return TokenMetadata.model_validate({**extras, **values})
