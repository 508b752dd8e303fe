"""Capability bitmask for agent permissions."""

import enum
from dataclasses import dataclass

from agentmesh.exceptions import InvalidArgumentError

MAX_MASK = 2**64 - 1


class Permission(enum.IntFlag):
    """Named capability flags. Bit positions 0-4 match the on-ledger program."""

    CAN_SWAP = 1 << 0
    CAN_TRANSFER = 1 << 1
    CAN_VOTE = 1 << 2
    CAN_CREATE_INTENT = 1 << 3
    CAN_ACCEPT_INTENT = 1 << 4
    CAN_STAKE = 1 << 5
    CAN_LEND = 1 << 6


def validate_mask(mask: int) -> int:
    """
    Check that ``mask`` fits an unsigned 64-bit field.

    Raises:
        InvalidArgumentError: If the mask is not an int in [0, 2**64)
    """
    if isinstance(mask, bool) or not isinstance(mask, int):
        raise InvalidArgumentError(f"Permission mask must be an int, got {type(mask).__name__}")
    if not 0 <= mask <= MAX_MASK:
        raise InvalidArgumentError(f"Permission mask out of range: {mask}")
    return int(mask)


def has(mask: int, flag: int) -> bool:
    """Return True if any bit of ``flag`` is set in ``mask``."""
    return (mask & flag) != 0


def grant(mask: int, *flags: int) -> int:
    """Return a new mask with ``flags`` set."""
    for flag in flags:
        mask |= flag
    return validate_mask(int(mask))


def revoke(mask: int, *flags: int) -> int:
    """Return a new mask with ``flags`` cleared."""
    for flag in flags:
        mask &= ~int(flag)
    return validate_mask(int(mask) & MAX_MASK)


def describe(mask: int) -> list[str]:
    """Names of the known flags set in ``mask``, lowest bit first."""
    return [flag.name for flag in Permission if has(mask, flag) and flag.name]


@dataclass(frozen=True)
class PermissionSet:
    """
    Immutable wrapper around a permission mask.

    ``grant`` and ``revoke`` return new instances, so a set shared between
    threads is never observed half-updated.
    """

    mask: int = 0

    def __post_init__(self) -> None:
        validate_mask(self.mask)

    @classmethod
    def of(cls, *flags: int) -> "PermissionSet":
        return cls(grant(0, *flags))

    def has(self, flag: int) -> bool:
        return has(self.mask, flag)

    def __contains__(self, flag: int) -> bool:
        return self.has(flag)

    def grant(self, *flags: int) -> "PermissionSet":
        return PermissionSet(grant(self.mask, *flags))

    def revoke(self, *flags: int) -> "PermissionSet":
        return PermissionSet(revoke(self.mask, *flags))

    def names(self) -> list[str]:
        return describe(self.mask)

    def __int__(self) -> int:
        return self.mask
