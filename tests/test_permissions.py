"""
Tests for the permission bitmask.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from agentmesh.exceptions import InvalidArgumentError
from agentmesh.permissions import (
    MAX_MASK,
    Permission,
    PermissionSet,
    describe,
    grant,
    has,
    revoke,
    validate_mask,
)

masks = st.integers(min_value=0, max_value=MAX_MASK)
flags = st.sampled_from(list(Permission))


def test_flag_values_are_fixed() -> None:
    assert Permission.CAN_SWAP == 1
    assert Permission.CAN_TRANSFER == 2
    assert Permission.CAN_VOTE == 4
    assert Permission.CAN_CREATE_INTENT == 8
    assert Permission.CAN_ACCEPT_INTENT == 16
    assert Permission.CAN_STAKE == 32
    assert Permission.CAN_LEND == 64


def test_flags_do_not_overlap() -> None:
    seen = 0
    for flag in Permission:
        assert flag & (flag - 1) == 0, f"{flag.name} is not a power of two"
        assert seen & flag == 0
        seen |= flag


@given(mask=masks, flag=flags)
@settings(max_examples=100)
def test_has_is_bitwise_and(mask: int, flag: Permission) -> None:
    assert has(mask, flag) == ((mask & flag) != 0)


@given(mask=masks, flag=flags)
@settings(max_examples=100)
def test_grant_then_revoke(mask: int, flag: Permission) -> None:
    granted = grant(mask, flag)
    revoked = revoke(granted, flag)

    assert has(granted, flag)
    assert not has(revoked, flag)
    assert revoked == mask & ~int(flag)


@given(mask=masks, flag=flags)
@settings(max_examples=100)
def test_permission_set_is_immutable(mask: int, flag: Permission) -> None:
    original = PermissionSet(mask)
    granted = original.grant(flag)

    assert original.mask == mask
    assert flag in granted
    assert int(granted.revoke(flag)) == mask & ~int(flag)


def test_describe_lists_flag_names() -> None:
    mask = Permission.CAN_ACCEPT_INTENT | Permission.CAN_SWAP

    assert describe(mask) == ["CAN_SWAP", "CAN_ACCEPT_INTENT"]
    assert PermissionSet(mask).names() == ["CAN_SWAP", "CAN_ACCEPT_INTENT"]


def test_of_combines_flags() -> None:
    perms = PermissionSet.of(Permission.CAN_SWAP, Permission.CAN_TRANSFER)

    assert perms.mask == 3
    assert not perms.has(Permission.CAN_VOTE)


@pytest.mark.parametrize("mask", [-1, MAX_MASK + 1, True, 1.5, "8"])
def test_invalid_masks_are_rejected(mask: object) -> None:
    with pytest.raises(InvalidArgumentError):
        validate_mask(mask)  # type: ignore[arg-type]


def test_unknown_high_bits_are_preserved() -> None:
    assert validate_mask(1 << 63) == 1 << 63
    assert describe(1 << 63) == []
