"""
Property-based tests for payload digests.
"""

import hashlib

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from agentmesh.exceptions import IntegrityViolationError, InvalidArgumentError
from agentmesh.integrity import (
    DIGEST_SIZE,
    digest,
    digest_bytes,
    encode_body,
    require_digest,
    verify,
    verify_bytes,
)

scalar = st.one_of(
    st.booleans(),
    st.integers(min_value=-(2**53), max_value=2**53),
    st.text(max_size=30),
)

payloads = st.dictionaries(
    st.text(min_size=1, max_size=12), scalar, min_size=1, max_size=8
)


@given(body=payloads)
@settings(max_examples=100)
def test_digest_is_stable_across_key_order(body: dict) -> None:
    """
    Property 1: Digest stability

    Semantically equal bodies hash identically regardless of key order.
    """
    reordered = dict(sorted(body.items(), reverse=True))

    assert digest(body) == digest(reordered)
    assert digest(body) == digest(body)
    assert len(digest(body)) == DIGEST_SIZE


@given(body=payloads, data=st.data())
@settings(max_examples=100)
def test_changing_any_field_changes_digest(body: dict, data: st.DataObject) -> None:
    """
    Property 2: Digest sensitivity

    Changing the value of any single field changes the digest.
    """
    key = data.draw(st.sampled_from(sorted(body)))
    new_value = data.draw(scalar.filter(lambda v: v != body[key] or type(v) is not type(body[key])))
    altered = {**body, key: new_value}

    assert digest(altered) != digest(body)


@given(data=st.binary(min_size=1, max_size=256), index=st.integers(min_value=0))
@settings(max_examples=100)
def test_flipping_one_byte_changes_digest(data: bytes, index: int) -> None:
    index %= len(data)
    flipped = data[:index] + bytes([data[index] ^ 0x01]) + data[index + 1:]

    assert digest_bytes(flipped) != digest_bytes(data)
    assert not verify_bytes(flipped, digest_bytes(data))


def test_digest_is_sha256_of_canonical_json() -> None:
    body = {"b": 2, "a": [1, "x"]}

    assert encode_body(body) == b'{"a":[1,"x"],"b":2}'
    assert digest(body) == hashlib.sha256(b'{"a":[1,"x"],"b":2}').digest()


def test_verify_accepts_matching_and_rejects_other_bodies() -> None:
    body = {"action": "swap", "amount": 1000000000}
    expected = digest(body)

    assert verify({"amount": 1000000000, "action": "swap"}, expected)
    assert not verify({"action": "swap", "amount": 1000000001}, expected)


def test_verify_returns_false_for_unencodable_bodies() -> None:
    assert not verify({"x": object()}, bytes(32))
    assert not verify(None, bytes(32))


@pytest.mark.parametrize("body", [None, "", {}, []])
def test_empty_bodies_are_rejected(body: object) -> None:
    with pytest.raises(InvalidArgumentError):
        encode_body(body)


def test_non_json_bodies_are_invalid_arguments() -> None:
    with pytest.raises(InvalidArgumentError):
        encode_body({"x": {1, 2}})


def _nested(depth: int) -> list:
    body: list = []
    for _ in range(depth):
        body = [body]
    return body


def test_deeply_nested_bodies_are_invalid_arguments() -> None:
    body = _nested(5000)

    with pytest.raises(InvalidArgumentError):
        encode_body(body)
    assert not verify(body, bytes(32))


def test_require_digest_raises_integrity_violation_with_address() -> None:
    data = b'{"a":1}'

    require_digest(data, digest_bytes(data), "addr")

    with pytest.raises(IntegrityViolationError) as exc_info:
        require_digest(b'{"a":2}', digest_bytes(data), "addr")
    assert exc_info.value.code == "INTEGRITY_VIOLATION"
    assert exc_info.value.address == "addr"
