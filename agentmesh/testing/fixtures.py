"""
Pytest fixtures and builders for testing code that uses Agent Mesh.
"""

import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Generator

import pytest

from agentmesh.addresses import NATIVE_ASSET, Address, AddressDeriver
from agentmesh.config import MeshConfig
from agentmesh.mesh import AgentMesh
from agentmesh.permissions import Permission
from agentmesh.signers import Ed25519Signer
from agentmesh.testing.mock import MockBackend, MockVenue
from agentmesh.types.agents import Agent, ModelProfile
from agentmesh.types.intents import Intent, IntentStatus

SENDER_PERMISSIONS = Permission.CAN_CREATE_INTENT
WORKER_PERMISSIONS = Permission.CAN_ACCEPT_INTENT | Permission.CAN_SWAP


def random_address() -> Address:
    return Address(os.urandom(32))


# ============================================================================
# Builders
# ============================================================================


def create_mock_agent(permissions: int = 0, **kwargs: Any) -> Agent:
    """
    Create an Agent record without a registry.

    Args:
        permissions: Permission bitmask
        **kwargs: Fields to override
    """
    now = datetime.now(timezone.utc)
    owner = kwargs.pop("owner", None) or random_address()
    address, bump = AddressDeriver().agent_address(owner)
    defaults: dict[str, Any] = {
        "address": address,
        "bump": bump,
        "owner": owner,
        "agent_wallet": owner,
        "model_profile": None,
        "metadata_uri": "",
        "created_at": now,
        "updated_at": now,
    }
    defaults.update(kwargs)
    return Agent(permissions=int(permissions), **defaults)


def create_mock_profile(**kwargs: Any) -> ModelProfile:
    """Create a ModelProfile record without a registry."""
    now = datetime.now(timezone.utc)
    owner = kwargs.pop("owner", None) or random_address()
    profile_id = kwargs.pop("profile_id", None) or os.urandom(16)
    address, bump = AddressDeriver().model_profile_address(owner, profile_id)
    defaults: dict[str, Any] = {
        "address": address,
        "bump": bump,
        "owner": owner,
        "profile_id": profile_id,
        "label": "mock-model",
        "provider_uri": "mock://model",
        "price_per_1k_tokens": 0,
        "billing_wallet": owner,
        "max_tokens_per_day": 0,
        "max_requests_per_min": 0,
        "created_at": now,
        "updated_at": now,
    }
    defaults.update(kwargs)
    return ModelProfile(**defaults)


def create_mock_intent(**kwargs: Any) -> Intent:
    """Create a PENDING Intent record without a coordinator."""
    now = datetime.now(timezone.utc)
    from_agent = kwargs.pop("from_agent", None) or random_address()
    to_agent = kwargs.pop("to_agent", None) or random_address()
    nonce = kwargs.pop("nonce", 0)
    address, bump = AddressDeriver().intent_address(from_agent, to_agent, nonce)
    defaults: dict[str, Any] = {
        "address": address,
        "bump": bump,
        "status": IntentStatus.PENDING,
        "payload_digest": bytes(32),
        "payload_locator": "mem://blobs/" + "00" * 32,
        "payment_amount": 0,
        "payment_asset": NATIVE_ASSET,
        "created_at": now,
        "updated_at": now,
    }
    defaults.update(kwargs)
    return Intent(from_agent=from_agent, to_agent=to_agent, nonce=nonce, **defaults)


@dataclass
class MeshScenario:
    """A mesh with a sender agent, a worker agent and the worker's model profile."""

    mesh: AgentMesh
    backend: MockBackend
    venue: MockVenue
    sender: Agent
    worker: Agent
    profile: ModelProfile
    sender_signer: Ed25519Signer
    worker_signer: Ed25519Signer

    def send(self, payload: Any, **kwargs: Any) -> Intent:
        """Create an intent from the sender to the worker."""
        return self.mesh.coordinator.create_intent(
            self.sender.address, self.worker.address, payload, **kwargs
        )


def build_mesh_scenario(
    sender_permissions: int = SENDER_PERMISSIONS,
    worker_permissions: int = WORKER_PERMISSIONS,
    config: MeshConfig | None = None,
    **profile_kwargs: Any,
) -> MeshScenario:
    """
    Build a mesh wired to a MockBackend and MockVenue.

    Args:
        sender_permissions: Permissions of the sending agent
        worker_permissions: Permissions of the receiving agent
        config: Mesh configuration
        **profile_kwargs: Overrides for ``create_model_profile``
    """
    venue = MockVenue()
    mesh = AgentMesh(config=config, venue=venue)
    backend = MockBackend()

    sender_signer, sender_owner = Ed25519Signer.generate()
    worker_signer, worker_owner = Ed25519Signer.generate()

    profile_args: dict[str, Any] = {"label": "mock-model", "provider_uri": "mock://model"}
    profile_args.update(profile_kwargs)
    profile = mesh.registry.create_model_profile(worker_owner, **profile_args)
    mesh.register_backend(profile.address, backend)

    sender = mesh.registry.register_agent(sender_owner, permissions=sender_permissions)
    worker = mesh.registry.register_agent(
        worker_owner, model_profile=profile.address, permissions=worker_permissions
    )
    return MeshScenario(
        mesh=mesh,
        backend=backend,
        venue=venue,
        sender=sender,
        worker=worker,
        profile=profile,
        sender_signer=sender_signer,
        worker_signer=worker_signer,
    )


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def ed25519_signer() -> Ed25519Signer:
    """Provide a generated Ed25519 signer."""
    signer, _ = Ed25519Signer.generate()
    return signer


@pytest.fixture
def ed25519_keypair() -> tuple[Ed25519Signer, Address]:
    """Provide a generated signer and the identity it controls."""
    return Ed25519Signer.generate()


@pytest.fixture
def mesh() -> Generator[AgentMesh, None, None]:
    """Provide an empty in-memory AgentMesh."""
    instance = AgentMesh()
    yield instance
    instance.close()


@pytest.fixture
def mock_backend() -> Generator[MockBackend, None, None]:
    backend = MockBackend()
    yield backend
    backend.reset()


@pytest.fixture
def mock_venue() -> MockVenue:
    return MockVenue()


@pytest.fixture
def scenario() -> Generator[MeshScenario, None, None]:
    """
    Provide a wired mesh: sender (CAN_CREATE_INTENT), worker
    (CAN_ACCEPT_INTENT | CAN_SWAP) and the worker's mock-backed profile.

    Example:
        ```python
        def test_round_trip(scenario):
            intent = scenario.send({"prompt": "hello"})
            scenario.mesh.coordinator.accept_intent(intent.address, scenario.worker.address)
            done = scenario.mesh.coordinator.process_intent(intent.address)
            assert scenario.backend.call_count("invoke") == 1
        ```
    """
    built = build_mesh_scenario()
    yield built
    built.mesh.close()


@pytest.fixture
def sample_agent() -> Agent:
    return create_mock_agent(permissions=SENDER_PERMISSIONS)


@pytest.fixture
def sample_profile() -> ModelProfile:
    return create_mock_profile()


@pytest.fixture
def sample_intent() -> Intent:
    return create_mock_intent()


__all__ = [
    "ed25519_signer",
    "ed25519_keypair",
    "mesh",
    "mock_backend",
    "mock_venue",
    "scenario",
    "sample_agent",
    "sample_profile",
    "sample_intent",
    "MeshScenario",
    "build_mesh_scenario",
    "create_mock_agent",
    "create_mock_profile",
    "create_mock_intent",
    "random_address",
]
