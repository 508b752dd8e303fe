"""Agent and model profile records."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from agentmesh.addresses import Address
from agentmesh.permissions import PermissionSet

MAX_METADATA_URI_LENGTH = 200
MAX_LABEL_LENGTH = 64
MAX_PROVIDER_URI_LENGTH = 200


def _iso(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass(frozen=True)
class Agent:
    """Identity record controlled by ``owner`` and acting through ``agent_wallet``."""

    address: Address
    bump: int
    owner: Address
    agent_wallet: Address
    model_profile: Address | None
    metadata_uri: str
    permissions: int
    created_at: datetime
    updated_at: datetime

    @property
    def permission_set(self) -> PermissionSet:
        return PermissionSet(self.permissions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": str(self.address),
            "bump": self.bump,
            "ownerWallet": str(self.owner),
            "agentWallet": str(self.agent_wallet),
            "modelProfile": str(self.model_profile) if self.model_profile else None,
            "metadataUri": self.metadata_uri,
            "permissions": self.permissions,
            "permissionNames": self.permission_set.names(),
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class ModelProfile:
    """LLM configuration: where to send prompts, what it costs, how much is allowed."""

    address: Address
    bump: int
    owner: Address
    profile_id: bytes
    label: str
    provider_uri: str
    price_per_1k_tokens: int  # micro-units per 1K tokens
    billing_wallet: Address
    max_tokens_per_day: int
    max_requests_per_min: int
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": str(self.address),
            "bump": self.bump,
            "ownerWallet": str(self.owner),
            "profileId": self.profile_id.hex(),
            "label": self.label,
            "providerUri": self.provider_uri,
            "pricing": self.price_per_1k_tokens,
            "billingWallet": str(self.billing_wallet),
            "maxTokensPerDay": self.max_tokens_per_day,
            "maxRequestsPerMin": self.max_requests_per_min,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


@dataclass(frozen=True)
class AgentUpdate:
    """
    A partial change to an agent. ``None`` fields are left untouched.

    ``clear_model_profile`` detaches the profile, since ``None`` already
    means "unchanged" for ``model_profile``.
    """

    agent_wallet: Address | None = None
    model_profile: Address | None = None
    clear_model_profile: bool = False
    metadata_uri: str | None = None
    permissions: int | None = None

    def is_empty(self) -> bool:
        return (
            self.agent_wallet is None
            and self.model_profile is None
            and not self.clear_model_profile
            and self.metadata_uri is None
            and self.permissions is None
        )

    def to_body(self, target: Address) -> dict[str, Any]:
        """The JSON body the owner signs to authorize this change."""
        body: dict[str, Any] = {"target": str(target)}
        if self.agent_wallet is not None:
            body["agentWallet"] = str(self.agent_wallet)
        if self.model_profile is not None:
            body["modelProfile"] = str(self.model_profile)
        if self.clear_model_profile:
            body["clearModelProfile"] = True
        if self.metadata_uri is not None:
            body["metadataUri"] = self.metadata_uri
        if self.permissions is not None:
            body["permissions"] = self.permissions
        return body


@dataclass(frozen=True)
class ModelProfileUpdate:
    """A partial change to a model profile. ``None`` fields are left untouched."""

    label: str | None = None
    provider_uri: str | None = None
    price_per_1k_tokens: int | None = None
    billing_wallet: Address | None = None
    max_tokens_per_day: int | None = None
    max_requests_per_min: int | None = None

    def changes(self) -> dict[str, Any]:
        """Changed fields keyed by attribute name."""
        return {
            name: getattr(self, name)
            for name in _PROFILE_UPDATE_KEYS
            if getattr(self, name) is not None
        }

    def to_body(self, target: Address) -> dict[str, Any]:
        """The JSON body the owner signs to authorize this change."""
        body: dict[str, Any] = {"target": str(target)}
        for name, value in self.changes().items():
            key = _PROFILE_UPDATE_KEYS[name]
            body[key] = str(value) if isinstance(value, Address) else value
        return body


# attribute name -> signed body key
_PROFILE_UPDATE_KEYS = {
    "label": "label",
    "provider_uri": "providerUri",
    "price_per_1k_tokens": "pricing",
    "billing_wallet": "billingWallet",
    "max_tokens_per_day": "maxTokensPerDay",
    "max_requests_per_min": "maxRequestsPerMin",
}
