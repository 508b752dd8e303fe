"""
Owner envelopes.

Every owner-authorized change to an agent or model profile is carried by an
envelope naming the owner, the action and the exact change body. The owner
signs the canonical form of the whole envelope.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from agentmesh.addresses import Address


@dataclass
class OwnerEnvelope:
    """The canonical JSON structure an owner signs."""

    owner: Address
    action: str
    timestamp: datetime
    nonce: str
    body: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        """
        Convert envelope to dictionary for canonicalization.

        Returns:
            Dictionary with camelCase keys
        """
        return {
            "owner": str(self.owner),
            "action": self.action,
            "timestamp": self._format_timestamp(),
            "nonce": self.nonce,
            "body": self.body,
        }

    def _format_timestamp(self) -> str:
        ts = self.timestamp
        if ts.tzinfo is None:
            ts = ts.replace(tzinfo=timezone.utc)
        else:
            ts = ts.astimezone(timezone.utc)
        return ts.strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class EnvelopeBuilder:
    """
    Builder for OwnerEnvelope instances.

    Generates UUID v4 nonces and UTC timestamps.
    """

    owner: Address

    def build(self, action: str, body: dict[str, Any] | None = None) -> OwnerEnvelope:
        """
        Build a new envelope with a fresh nonce and the current time.

        Args:
            action: The action being authorized (e.g., "update_agent")
            body: Action-specific change body (defaults to empty dict)
        """
        return OwnerEnvelope(
            owner=self.owner,
            action=action,
            timestamp=datetime.now(timezone.utc),
            nonce=str(uuid.uuid4()),
            body=body if body is not None else {},
        )
