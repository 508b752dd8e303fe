"""
Agent Mesh facade.

Wires the store, registry, router, blob store and coordinator together from
one configuration.
"""

from typing import Any

from agentmesh.actions import ActionExecutor, ActionVenue
from agentmesh.addresses import Address, AddressDeriver
from agentmesh.blobs import BlobStore, HTTPBlobStore, InMemoryBlobStore
from agentmesh.config import MeshConfig
from agentmesh.coordinator import IntentCoordinator
from agentmesh.poller import IntentHandler, IntentPoller
from agentmesh.providers import Backend, OpenAICompatibleBackend, ProviderRouter
from agentmesh.registry import Registry
from agentmesh.signing import OwnerAuthorizer
from agentmesh.store import InMemoryStore, Store
from agentmesh.usage import UsageMeter


class AgentMesh:
    """
    Main entry point for running an agent mesh in-process.

    Example:
        ```python
        from agentmesh import AgentMesh, Permission
        from agentmesh.signers import Ed25519Signer

        with AgentMesh() as mesh:
            _, alice = Ed25519Signer.generate()
            _, bob = Ed25519Signer.generate()
            profile = mesh.registry.create_model_profile(bob, "gpt-4", "https://api.openai.com/v1")
            sender = mesh.registry.register_agent(
                alice, permissions=Permission.CAN_CREATE_INTENT
            )
            worker = mesh.registry.register_agent(
                bob, model_profile=profile.address, permissions=Permission.CAN_ACCEPT_INTENT
            )
            intent = mesh.coordinator.create_intent(sender.address, worker.address, {"prompt": "hi"})
        ```
    """

    def __init__(
        self,
        config: MeshConfig | None = None,
        store: Store | None = None,
        blobs: BlobStore | None = None,
        router: ProviderRouter | None = None,
        venue: ActionVenue | None = None,
    ) -> None:
        """
        Args:
            config: Mesh settings (default: ``MeshConfig()``)
            store: Coordination store (default: in-memory)
            blobs: Blob store (default: HTTP when ``config.blob_base_url`` is set,
                otherwise in-memory)
            router: Provider router (default: empty router)
            venue: Venue for privileged actions (default: simulated)
        """
        self.config = config or MeshConfig()
        self.store = store or InMemoryStore()
        if blobs is None:
            if self.config.blob_base_url:
                blobs = HTTPBlobStore(self.config.blob_base_url)
            else:
                blobs = InMemoryBlobStore()
        self.blobs = blobs

        self.deriver = AddressDeriver(self.config.domain)
        self.authorizer = OwnerAuthorizer(self.config.auth_max_skew)
        self.registry = Registry(self.store, self.deriver, self.authorizer)

        self.router = router or ProviderRouter()
        if self.config.llm_api_key:
            self.router.register_factory("http", self._openai_backend)
            self.router.register_factory("https", self._openai_backend)

        self.usage = UsageMeter()
        self.executor = ActionExecutor(venue)
        self.coordinator = IntentCoordinator(
            store=self.store,
            registry=self.registry,
            router=self.router,
            blobs=self.blobs,
            deriver=self.deriver,
            config=self.config,
            usage=self.usage,
            executor=self.executor,
        )

    @classmethod
    def from_env(cls, **kwargs: Any) -> "AgentMesh":
        """
        Create a mesh configured from ``AGENTMESH_*`` environment variables.

        Raises:
            ConfigurationError: If a variable holds a malformed value
        """
        return cls(config=MeshConfig.from_env(), **kwargs)

    def register_backend(self, profile_address: Address, backend: Backend) -> None:
        """Serve intents for agents using ``profile_address`` with ``backend``."""
        self.router.register(profile_address, backend)

    def poller(
        self, agent_address: Address, handler: IntentHandler | None = None
    ) -> IntentPoller:
        """Create a poller for ``agent_address`` at the configured interval."""
        return IntentPoller(
            self.coordinator, agent_address, handler=handler, interval=self.config.poll_interval
        )

    def _openai_backend(self, provider_uri: str) -> Backend:
        return OpenAICompatibleBackend(
            api_key=self.config.llm_api_key or "",
            base_url=provider_uri,
            model=self.config.llm_model,
            max_tokens=self.config.llm_max_tokens,
            timeout=self.config.backend_timeout,
        )

    def close(self) -> None:
        """Close backends, the blob store and the store."""
        self.router.close()
        self.blobs.close()
        self.store.close()

    def __enter__(self) -> "AgentMesh":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
