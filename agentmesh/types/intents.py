"""Intent records and the intent status machine."""

import dataclasses
import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from agentmesh.addresses import Address
from agentmesh.exceptions import InvalidArgumentError, InvalidStateError


class IntentStatus(enum.IntEnum):
    """Intent states. Values match the on-ledger ``u8`` encoding."""

    PENDING = 0
    ACCEPTED = 1
    COMPLETED = 2
    FAILED = 3

    @property
    def label(self) -> str:
        return self.name.lower()


# Allowed transitions: from_status -> set of valid to_statuses
_TRANSITIONS: dict[IntentStatus, set[IntentStatus]] = {
    IntentStatus.PENDING: {IntentStatus.ACCEPTED, IntentStatus.FAILED},
    IntentStatus.ACCEPTED: {IntentStatus.COMPLETED, IntentStatus.FAILED},
}

TERMINAL_STATUSES = frozenset({IntentStatus.COMPLETED, IntentStatus.FAILED})

# Fields fixed at creation; a transition that changes any of them is rejected
IMMUTABLE_FIELDS = (
    "address",
    "bump",
    "from_agent",
    "to_agent",
    "nonce",
    "payload_digest",
    "payload_locator",
    "payment_amount",
    "payment_asset",
    "created_at",
)


def check_transition(
    current: IntentStatus, target: IntentStatus, address: Address | None = None
) -> None:
    """
    Enforce the intent state machine.

    Raises:
        InvalidStateError: If ``current -> target`` is not allowed
    """
    allowed = _TRANSITIONS.get(current, set())
    if target not in allowed:
        raise InvalidStateError(
            f"{current.label} -> {target.label} is not allowed. "
            f"Valid transitions: {sorted(s.label for s in allowed)}",
            address,
        )


@dataclass(frozen=True)
class Intent:
    """A directed, payment-bearing request from one agent to another."""

    address: Address
    bump: int
    from_agent: Address
    to_agent: Address
    nonce: int
    status: IntentStatus
    payload_digest: bytes
    payload_locator: str
    payment_amount: int
    payment_asset: Address
    created_at: datetime
    updated_at: datetime
    result_digest: bytes | None = None
    result_locator: str | None = None
    payload: Any = None
    result: Any = None
    failure_reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def transition(
        self,
        to: IntentStatus,
        now: datetime,
        *,
        result_digest: bytes | None = None,
        result_locator: str | None = None,
        result: Any = None,
        failure_reason: str | None = None,
    ) -> "Intent":
        """
        Return a copy of this intent moved to ``to``.

        The result digest is required for, and only allowed on, the move to
        ``COMPLETED``.

        Raises:
            InvalidStateError: If the transition is not allowed
            InvalidArgumentError: If result fields do not fit the target status
        """
        check_transition(self.status, to, self.address)

        if to == IntentStatus.COMPLETED:
            if result_digest is None or len(result_digest) != 32:
                raise InvalidArgumentError(
                    "Completing an intent requires a 32-byte result digest", self.address
                )
        elif result_digest is not None or result_locator is not None:
            raise InvalidArgumentError(
                f"Result fields are only recorded on completion, not {to.label}",
                self.address,
            )

        return dataclasses.replace(
            self,
            status=to,
            updated_at=now,
            result_digest=result_digest,
            result_locator=result_locator,
            result=result,
            failure_reason=failure_reason if to == IntentStatus.FAILED else None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": str(self.address),
            "bump": self.bump,
            "fromAgent": str(self.from_agent),
            "toAgent": str(self.to_agent),
            "nonce": self.nonce,
            "status": self.status.label,
            "payloadHash": self.payload_digest.hex(),
            "payloadUri": self.payload_locator,
            "paymentAmount": self.payment_amount,
            "paymentMint": str(self.payment_asset),
            "resultHash": self.result_digest.hex() if self.result_digest else None,
            "resultUri": self.result_locator,
            "failureReason": self.failure_reason,
            "createdAt": self.created_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "updatedAt": self.updated_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
        }
