"""
End-to-end tests for Agent Mesh.

The in-process tests always run. ``TestLiveBackend`` talks to a real
OpenAI-compatible endpoint and only runs with AGENTMESH_INTEGRATION_TESTS=1
and AGENTMESH_LLM_API_KEY set.
"""

import os

import pytest

from agentmesh import AgentMesh, MeshConfig
from agentmesh.exceptions import InvalidArgumentError, PermissionDeniedError
from agentmesh.permissions import Permission
from agentmesh.signers import Ed25519Signer
from agentmesh.signing import sign_request
from agentmesh.testing import MockBackend, MockVenue
from agentmesh.types.agents import AgentUpdate
from agentmesh.types.intents import IntentStatus


class TestIntentLifecycle:
    """Create, accept and process an intent through the public facade."""

    def test_swap_request_completes(self) -> None:
        backend = MockBackend(default="ok")
        with AgentMesh() as mesh:
            _, alice = Ed25519Signer.generate()
            _, bob = Ed25519Signer.generate()
            profile = mesh.registry.create_model_profile(bob, "stub", "mock://stub")
            mesh.register_backend(profile.address, backend)
            sender = mesh.registry.register_agent(
                alice, permissions=Permission.CAN_CREATE_INTENT
            )
            worker = mesh.registry.register_agent(
                bob,
                model_profile=profile.address,
                permissions=Permission.CAN_ACCEPT_INTENT | Permission.CAN_SWAP,
            )

            intent = mesh.coordinator.create_intent(
                sender.address, worker.address, {"action": "swap", "amount": 1000000000}
            )
            mesh.coordinator.accept_intent(intent.address, worker.address)
            done = mesh.coordinator.process_intent(intent.address)

        assert done.status == IntentStatus.COMPLETED
        assert done.result_digest is not None
        assert len(done.result_digest) == 32
        assert backend.call_count("invoke") == 1
        assert backend.closed

    def test_negative_payment_is_rejected(self, scenario) -> None:
        with pytest.raises(InvalidArgumentError):
            scenario.send({"action": "swap"}, payment_amount=-1)
        assert scenario.mesh.coordinator.list_intents() == []

    def test_swap_without_permission_touches_nothing(self) -> None:
        venue = MockVenue()
        backend = MockBackend()
        with AgentMesh(venue=venue) as mesh:
            _, owner = Ed25519Signer.generate()
            profile = mesh.registry.create_model_profile(owner, "stub", "mock://stub")
            mesh.register_backend(profile.address, backend)
            agent = mesh.registry.register_agent(
                owner, model_profile=profile.address, permissions=Permission.CAN_TRANSFER
            )

            with pytest.raises(PermissionDeniedError):
                mesh.coordinator.execute_action(
                    agent.address,
                    "swap",
                    {"input_asset": "SOL", "output_asset": "USDC", "amount": 1},
                )

        assert backend.call_count("invoke") == 0
        assert venue.call_count("execute") == 0


class TestOwnerControlledAgents:
    def test_granting_swap_enables_action(self, scenario) -> None:
        params = {"input_asset": "SOL", "output_asset": "USDC", "amount": 10}
        with pytest.raises(PermissionDeniedError):
            scenario.mesh.coordinator.execute_action(scenario.sender.address, "swap", params)

        update = AgentUpdate(
            permissions=int(Permission.CAN_CREATE_INTENT | Permission.CAN_SWAP)
        )
        request = sign_request(
            scenario.sender_signer, "update_agent", update.to_body(scenario.sender.address)
        )
        scenario.mesh.registry.update_agent(scenario.sender.address, update, request)

        signature = scenario.mesh.coordinator.execute_action(
            scenario.sender.address, "swap", params
        )
        assert signature.startswith("mock-swap-signature-")

    def test_profile_switch_routes_to_new_backend(self, scenario) -> None:
        replacement = MockBackend(default="from replacement")
        profile = scenario.mesh.registry.create_model_profile(
            scenario.worker.owner, "replacement", "mock://replacement"
        )
        scenario.mesh.register_backend(profile.address, replacement)
        update = AgentUpdate(model_profile=profile.address)
        request = sign_request(
            scenario.worker_signer, "update_agent", update.to_body(scenario.worker.address)
        )
        scenario.mesh.registry.update_agent(scenario.worker.address, update, request)

        intent = scenario.send({"prompt": "hi"})
        scenario.mesh.coordinator.accept_intent(intent.address, scenario.worker.address)
        done = scenario.mesh.coordinator.process_intent(intent.address)

        assert done.result["output"] == "from replacement"
        assert not scenario.backend.was_called("invoke")


@pytest.mark.skipif(
    os.environ.get("AGENTMESH_INTEGRATION_TESTS") != "1"
    or not os.environ.get("AGENTMESH_LLM_API_KEY"),
    reason="Live backend tests require AGENTMESH_INTEGRATION_TESTS=1 and AGENTMESH_LLM_API_KEY",
)
class TestLiveBackend:
    def test_process_against_live_model(self) -> None:
        config = MeshConfig.from_env()
        with AgentMesh(config=config) as mesh:
            _, alice = Ed25519Signer.generate()
            _, bob = Ed25519Signer.generate()
            profile = mesh.registry.create_model_profile(bob, config.llm_model, config.llm_base_url)
            sender = mesh.registry.register_agent(alice, permissions=Permission.CAN_CREATE_INTENT)
            worker = mesh.registry.register_agent(
                bob, model_profile=profile.address, permissions=Permission.CAN_ACCEPT_INTENT
            )

            intent = mesh.coordinator.create_intent(
                sender.address, worker.address, {"prompt": "Reply with the single word: ready"}
            )
            mesh.coordinator.accept_intent(intent.address, worker.address)
            done = mesh.coordinator.process_intent(intent.address)

        assert done.status == IntentStatus.COMPLETED
        assert isinstance(done.result["output"], str)
