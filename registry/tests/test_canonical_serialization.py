import json

import pytest

from registry.app.checks.metadata_validation import validate_metadata
from registry.app.derivation.canonical import (
    canonical_bytes,
    canonical_json_bytes,
    metadata_digest,
)
from registry.app.schemas.metadata import TokenType
from registry.app.utils.hashing import sha256

from registry.tests.fixtures.tokens import full_metadata, nft_metadata


def _validated(raw, token_type=TokenType.REISSUABLE):
    return validate_metadata(raw, token_type=token_type)


# ------------------------------------------------------------------
# Exact byte form
# ------------------------------------------------------------------

def test_minimal_reissuable_canonical_bytes():
    metadata = _validated({"name": "Test", "symbol": "TST"})

    assert canonical_bytes(metadata) == (
        b'{"decimals":0,"name":"Test","symbol":"TST",'
        b'"token_type":"reissuable","version":"1.0"}'
    )


def test_digest_is_sha256_of_canonical_bytes():
    metadata = _validated(full_metadata())
    assert metadata_digest(metadata) == sha256(canonical_bytes(metadata))


def test_non_ascii_is_emitted_as_utf8():
    metadata = _validated({"name": "トークン", "symbol": "JPY"})
    encoded = canonical_bytes(metadata)

    assert "トークン".encode("utf-8") in encoded
    assert b"\\u" not in encoded


def test_no_insignificant_whitespace():
    encoded = canonical_bytes(_validated(full_metadata()))
    decoded = json.loads(encoded)

    assert encoded == json.dumps(
        decoded, separators=(",", ":"), sort_keys=True, ensure_ascii=False
    ).encode("utf-8")


# ------------------------------------------------------------------
# Determinism
# ------------------------------------------------------------------

def test_top_level_key_order_does_not_matter():
    raw = full_metadata()
    reordered = dict(reversed(list(raw.items())))

    assert canonical_bytes(_validated(raw)) == canonical_bytes(_validated(reordered))


def test_issuer_key_order_does_not_matter():
    a = full_metadata()
    b = full_metadata()
    b["issuer"] = dict(reversed(list(a["issuer"].items())))

    assert metadata_digest(_validated(a)) == metadata_digest(_validated(b))


def test_attribute_object_key_order_does_not_matter():
    a = nft_metadata()
    b = nft_metadata()
    b["attributes"] = [
        {"value": "Blue", "trait_type": "Background"},
        {"value": 3, "trait_type": "Rarity"},
    ]

    assert metadata_digest(_validated(a, TokenType.NFT)) == metadata_digest(
        _validated(b, TokenType.NFT)
    )


def test_integral_float_normalizes_to_integer():
    a = nft_metadata()
    b = nft_metadata()
    b["attributes"][1]["value"] = 3.0

    assert canonical_bytes(_validated(a, TokenType.NFT)) == canonical_bytes(
        _validated(b, TokenType.NFT)
    )


def test_absent_optional_fields_are_omitted_not_null():
    metadata = _validated(
        {"name": "Test", "symbol": "TST", "description": "", "icon": None}
    )
    decoded = json.loads(canonical_bytes(metadata))

    assert "description" not in decoded
    assert "icon" not in decoded
    assert "issuer" not in decoded


def test_extra_fields_are_not_digested():
    plain = _validated({"name": "Test", "symbol": "TST"})
    with_extra = _validated({"name": "Test", "symbol": "TST", "color": "red"})

    assert with_extra.extra_fields() == {"color": "red"}
    assert metadata_digest(plain) == metadata_digest(with_extra)


def test_any_schema_field_change_changes_digest():
    base = _validated(full_metadata())

    changed = full_metadata()
    changed["description"] = "This is a test token."

    assert metadata_digest(base) != metadata_digest(_validated(changed))


def test_decimals_string_and_int_digest_identically():
    a = _validated({"name": "Test", "symbol": "TST", "decimals": 8})
    b = _validated({"name": "Test", "symbol": "TST", "decimals": "8"})

    assert metadata_digest(a) == metadata_digest(b)


# ------------------------------------------------------------------
# Raw JSON normalization
# ------------------------------------------------------------------

def test_nested_keys_are_sorted_at_every_level():
    encoded = canonical_json_bytes({"b": {"z": 1, "a": [{"y": 2, "x": 1}]}, "a": 0})
    assert encoded == b'{"a":0,"b":{"a":[{"x":1,"y":2}],"z":1}}'


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_numbers_are_rejected(value):
    with pytest.raises(ValueError):
        canonical_json_bytes({"x": value})


def test_non_string_keys_are_rejected():
    with pytest.raises(TypeError):
        canonical_json_bytes({1: "x"})
