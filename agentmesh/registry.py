"""
Agent and model profile registry.

Records live in the coordination store under their derived addresses.
Registration is open; every later change must be signed by the record owner.
"""

import dataclasses
import os
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from agentmesh.addresses import PROFILE_ID_SIZE, Address, AddressDeriver
from agentmesh.exceptions import InvalidArgumentError, InvalidStateError, NotFoundError
from agentmesh.logging import get_logger
from agentmesh.permissions import validate_mask
from agentmesh.signing import OwnerAuthorizer, SignedRequest
from agentmesh.store import RecordKind, Store
from agentmesh.types.agents import (
    MAX_LABEL_LENGTH,
    MAX_METADATA_URI_LENGTH,
    MAX_PROVIDER_URI_LENGTH,
    Agent,
    AgentUpdate,
    ModelProfile,
    ModelProfileUpdate,
)
from agentmesh.types.intents import IntentStatus

logger = get_logger("registry")

MAX_U64 = 2**64 - 1

DEFAULT_MAX_TOKENS_PER_DAY = 1_000_000
DEFAULT_MAX_REQUESTS_PER_MIN = 60


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_text(name: str, value: str, limit: int) -> None:
    if not isinstance(value, str):
        raise InvalidArgumentError(f"{name} must be a string")
    if len(value) > limit:
        raise InvalidArgumentError(f"{name} exceeds {limit} characters")


def _check_u64(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{name} must be an integer")
    if not 0 <= value <= MAX_U64:
        raise InvalidArgumentError(f"{name} out of range: {value}")


class Registry:
    """
    Registry of agents and model profiles.

    Args:
        store: Coordination store holding the records
        deriver: Address deriver for the deployment domain
        authorizer: Verifies owner signatures on updates
        clock: Returns the current UTC time (defaults to the system clock)
    """

    def __init__(
        self,
        store: Store,
        deriver: AddressDeriver,
        authorizer: OwnerAuthorizer | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.deriver = deriver
        self.authorizer = authorizer or OwnerAuthorizer()
        self._clock = clock or _utcnow

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    def register_agent(
        self,
        owner: Address,
        agent_wallet: Address | None = None,
        model_profile: Address | None = None,
        metadata_uri: str = "",
        permissions: int = 0,
    ) -> Agent:
        """
        Register the agent controlled by ``owner``.

        Args:
            owner: Owning identity; the agent address is derived from it
            agent_wallet: Acting identity (defaults to the owner)
            model_profile: Address of an existing model profile
            metadata_uri: Metadata locator, at most 200 characters
            permissions: Permission bitmask

        Returns:
            The stored Agent

        Raises:
            ConflictError: If the owner already has an agent
            NotFoundError: If ``model_profile`` does not exist
            InvalidArgumentError: On malformed input
        """
        owner = Address.coerce(owner)
        agent_wallet = Address.coerce(agent_wallet) if agent_wallet is not None else owner
        _check_text("metadata_uri", metadata_uri, MAX_METADATA_URI_LENGTH)
        permissions = validate_mask(permissions)
        if model_profile is not None:
            model_profile = self.get_profile(model_profile).address

        address, bump = self.deriver.agent_address(owner)
        now = self._clock()
        agent = Agent(
            address=address,
            bump=bump,
            owner=owner,
            agent_wallet=agent_wallet,
            model_profile=model_profile,
            metadata_uri=metadata_uri,
            permissions=permissions,
            created_at=now,
            updated_at=now,
        )
        self.store.put(RecordKind.AGENT, agent, create=True)
        logger.info(f"Registered agent {address} for owner {owner}")
        return agent

    def get_agent(self, address: Address) -> Agent:
        return self.store.get(RecordKind.AGENT, Address.coerce(address))

    def agent_of(self, owner: Address) -> Agent:
        """Return the agent controlled by ``owner``."""
        address, _ = self.deriver.agent_address(Address.coerce(owner))
        return self.get_agent(address)

    def list_agents(self, predicate: Callable[[Agent], bool] | None = None) -> list[Agent]:
        return self.store.list(RecordKind.AGENT, predicate)

    def put_agent(self, agent: Agent) -> None:
        """
        Replace the whole agent record. Callers read, modify, then put.

        Raises:
            InvalidStateError: If the acting wallet changes while an intent
                involving the agent has left PENDING
        """

        def mutate(current: Agent) -> Agent:
            if agent.agent_wallet != current.agent_wallet:
                self._check_wallet_unlocked(current.address)
            return agent

        try:
            self.store.update(RecordKind.AGENT, agent.address, mutate)
        except NotFoundError:
            self.store.put(RecordKind.AGENT, agent, create=True)

    def update_agent(
        self, address: Address, update: AgentUpdate, authorization: SignedRequest
    ) -> Agent:
        """
        Apply an owner-signed change to an agent.

        Raises:
            NotFoundError: If the agent or a referenced profile does not exist
            InvalidArgumentError: On an empty or malformed change
            AuthenticationError: If the signature does not authorize this change
            PermissionDeniedError: If the change is not signed by the owner
            InvalidStateError: If the acting wallet changes while an intent
                referencing the agent has left PENDING
        """
        address = Address.coerce(address)
        agent = self.get_agent(address)

        if update.is_empty():
            raise InvalidArgumentError("Empty agent update", address)
        if update.model_profile is not None and update.clear_model_profile:
            raise InvalidArgumentError(
                "Cannot set and clear the model profile at once", address
            )
        if update.metadata_uri is not None:
            _check_text("metadata_uri", update.metadata_uri, MAX_METADATA_URI_LENGTH)
        if update.permissions is not None:
            validate_mask(update.permissions)
        if update.model_profile is not None:
            self.get_profile(update.model_profile)

        self.authorizer.authorize(
            authorization, agent.owner, "update_agent", update.to_body(address)
        )

        def mutate(current: Agent) -> Agent:
            changes: dict[str, Any] = {"updated_at": self._clock()}
            if update.agent_wallet is not None and update.agent_wallet != current.agent_wallet:
                self._check_wallet_unlocked(current.address)
                changes["agent_wallet"] = update.agent_wallet
            if update.model_profile is not None:
                changes["model_profile"] = update.model_profile
            if update.clear_model_profile:
                changes["model_profile"] = None
            if update.metadata_uri is not None:
                changes["metadata_uri"] = update.metadata_uri
            if update.permissions is not None:
                changes["permissions"] = update.permissions
            return dataclasses.replace(current, **changes)

        updated = self.store.update(RecordKind.AGENT, address, mutate)
        logger.info(f"Updated agent {address}")
        return updated

    def _check_wallet_unlocked(self, address: Address) -> None:
        # runs inside the store update, so no intent can advance meanwhile
        locked = self.store.list(
            RecordKind.INTENT,
            lambda i: address in (i.from_agent, i.to_agent)
            and i.status != IntentStatus.PENDING,
        )
        if locked:
            raise InvalidStateError(
                f"Acting wallet is fixed: {len(locked)} intent(s) have left pending",
                address,
            )

    # ------------------------------------------------------------------
    # Model profiles
    # ------------------------------------------------------------------

    def create_model_profile(
        self,
        owner: Address,
        label: str,
        provider_uri: str,
        price_per_1k_tokens: int = 0,
        billing_wallet: Address | None = None,
        max_tokens_per_day: int = DEFAULT_MAX_TOKENS_PER_DAY,
        max_requests_per_min: int = DEFAULT_MAX_REQUESTS_PER_MIN,
        profile_id: bytes | None = None,
    ) -> ModelProfile:
        """
        Create a model profile owned by ``owner``.

        A cap of 0 disables that cap. The billing wallet defaults to the owner
        and the profile id to 16 random bytes.

        Raises:
            ConflictError: If the owner already has a profile with this id
            InvalidArgumentError: On malformed input
        """
        owner = Address.coerce(owner)
        billing_wallet = Address.coerce(billing_wallet) if billing_wallet is not None else owner
        _check_text("label", label, MAX_LABEL_LENGTH)
        _check_text("provider_uri", provider_uri, MAX_PROVIDER_URI_LENGTH)
        _check_u64("price_per_1k_tokens", price_per_1k_tokens)
        _check_u64("max_tokens_per_day", max_tokens_per_day)
        _check_u64("max_requests_per_min", max_requests_per_min)
        if profile_id is None:
            profile_id = os.urandom(PROFILE_ID_SIZE)

        address, bump = self.deriver.model_profile_address(owner, profile_id)
        now = self._clock()
        profile = ModelProfile(
            address=address,
            bump=bump,
            owner=owner,
            profile_id=profile_id,
            label=label,
            provider_uri=provider_uri,
            price_per_1k_tokens=price_per_1k_tokens,
            billing_wallet=billing_wallet,
            max_tokens_per_day=max_tokens_per_day,
            max_requests_per_min=max_requests_per_min,
            created_at=now,
            updated_at=now,
        )
        self.store.put(RecordKind.MODEL_PROFILE, profile, create=True)
        logger.info(f"Created model profile {address} ({label}) for owner {owner}")
        return profile

    def get_profile(self, address: Address) -> ModelProfile:
        return self.store.get(RecordKind.MODEL_PROFILE, Address.coerce(address))

    def list_profiles(
        self, predicate: Callable[[ModelProfile], bool] | None = None
    ) -> list[ModelProfile]:
        return self.store.list(RecordKind.MODEL_PROFILE, predicate)

    def put_profile(self, profile: ModelProfile) -> None:
        """Replace the whole profile record."""
        self.store.put(RecordKind.MODEL_PROFILE, profile)

    def update_model_profile(
        self, address: Address, update: ModelProfileUpdate, authorization: SignedRequest
    ) -> ModelProfile:
        """
        Apply an owner-signed change to a model profile.

        Raises:
            NotFoundError: If the profile does not exist
            InvalidArgumentError: On an empty or malformed change
            AuthenticationError: If the signature does not authorize this change
            PermissionDeniedError: If the change is not signed by the owner
        """
        address = Address.coerce(address)
        profile = self.get_profile(address)

        changes = update.changes()
        if not changes:
            raise InvalidArgumentError("Empty model profile update", address)
        if "label" in changes:
            _check_text("label", changes["label"], MAX_LABEL_LENGTH)
        if "provider_uri" in changes:
            _check_text("provider_uri", changes["provider_uri"], MAX_PROVIDER_URI_LENGTH)
        for name in ("price_per_1k_tokens", "max_tokens_per_day", "max_requests_per_min"):
            if name in changes:
                _check_u64(name, changes[name])
        if "billing_wallet" in changes:
            changes["billing_wallet"] = Address.coerce(changes["billing_wallet"])

        self.authorizer.authorize(
            authorization, profile.owner, "update_model_profile", update.to_body(address)
        )

        updated = self.store.update(
            RecordKind.MODEL_PROFILE,
            address,
            lambda current: dataclasses.replace(current, updated_at=self._clock(), **changes),
        )
        logger.info(f"Updated model profile {address}")
        return updated
