"""Agent Mesh - intent coordination for autonomous agents."""

from agentmesh.actions import ActionExecutor, ActionVenue, SimulatedVenue
from agentmesh.addresses import NATIVE_ASSET, Address, AddressDeriver
from agentmesh.blobs import BlobStore, HTTPBlobStore, InMemoryBlobStore
from agentmesh.config import MeshConfig, RetryConfig
from agentmesh.coordinator import IntentCoordinator
from agentmesh.envelope import EnvelopeBuilder, OwnerEnvelope
from agentmesh.exceptions import (
    AuthenticationError,
    BackendError,
    BackendTimeoutError,
    BackendUnavailableError,
    ConfigurationError,
    ConflictError,
    IntegrityViolationError,
    InvalidArgumentError,
    InvalidStateError,
    MeshError,
    NoProviderConfiguredError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    StorageError,
    UnsupportedActionError,
)
from agentmesh.logging import configure_logging, get_logger
from agentmesh.mesh import AgentMesh
from agentmesh.permissions import Permission, PermissionSet
from agentmesh.poller import IntentPoller
from agentmesh.providers import (
    Backend,
    CallableBackend,
    OpenAICompatibleBackend,
    ProviderRouter,
)
from agentmesh.registry import Registry
from agentmesh.signers import Ed25519Signer, Signer
from agentmesh.signing import OwnerAuthorizer, SignedRequest, compute_nonce_hash, sign_request
from agentmesh.store import InMemoryStore, RecordKind, Store
from agentmesh.types import (
    Agent,
    AgentUpdate,
    Intent,
    IntentStatus,
    ModelProfile,
    ModelProfileUpdate,
)
from agentmesh.usage import UsageMeter

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Facade
    "AgentMesh",
    "MeshConfig",
    "RetryConfig",
    # Core
    "Address",
    "AddressDeriver",
    "NATIVE_ASSET",
    "Permission",
    "PermissionSet",
    "Registry",
    "IntentCoordinator",
    "IntentPoller",
    "UsageMeter",
    # Records
    "Agent",
    "AgentUpdate",
    "ModelProfile",
    "ModelProfileUpdate",
    "Intent",
    "IntentStatus",
    # Boundaries
    "Store",
    "InMemoryStore",
    "RecordKind",
    "BlobStore",
    "InMemoryBlobStore",
    "HTTPBlobStore",
    "Backend",
    "CallableBackend",
    "OpenAICompatibleBackend",
    "ProviderRouter",
    "ActionExecutor",
    "ActionVenue",
    "SimulatedVenue",
    # Owner authorization
    "Signer",
    "Ed25519Signer",
    "OwnerEnvelope",
    "EnvelopeBuilder",
    "OwnerAuthorizer",
    "SignedRequest",
    "sign_request",
    "compute_nonce_hash",
    # Exceptions
    "MeshError",
    "ConfigurationError",
    "PermissionDeniedError",
    "NotFoundError",
    "InvalidStateError",
    "InvalidArgumentError",
    "ConflictError",
    "IntegrityViolationError",
    "NoProviderConfiguredError",
    "UnsupportedActionError",
    "BackendError",
    "BackendUnavailableError",
    "BackendTimeoutError",
    "RateLimitedError",
    "AuthenticationError",
    "StorageError",
    # Logging
    "configure_logging",
    "get_logger",
]
