#!/usr/bin/env python3
"""
Agent Mesh - Complete Intent Workflow Example

This example runs two agents on one in-process mesh:
1. Register a model profile and two agents
2. Send an intent from the sender to the worker
3. Let the worker's poller accept and process it
4. Verify the result digest
5. Try a privileged action with and without permission

Without AGENTMESH_LLM_API_KEY a local stub answers the prompts; with it the
worker's profile points at AGENTMESH_LLM_BASE_URL.
"""

import asyncio
import logging
import os
import sys

from agentmesh import (
    AgentMesh,
    AgentUpdate,
    CallableBackend,
    Ed25519Signer,
    IntentStatus,
    MeshConfig,
    MeshError,
    Permission,
    configure_logging,
    sign_request,
)
from agentmesh.integrity import verify_bytes

SWAP = {"input_asset": "SOL", "output_asset": "USDC", "amount": 1_000_000_000}


def stub_model(prompt: str, options: dict) -> str:
    """Answer like a cautious trading assistant."""
    return f"Analyzed request ({len(prompt.split())} words): hold until volatility settles."


async def run_worker(mesh: AgentMesh, worker_address, intent_address) -> None:
    poller = mesh.poller(worker_address)
    await poller.start()
    try:
        for _ in range(100):
            if mesh.coordinator.get_intent(intent_address).is_terminal:
                return
            await asyncio.sleep(0.05)
    finally:
        await poller.stop()


def main() -> None:
    """Run the complete intent workflow example."""
    print("=== Agent Mesh Workflow Example ===\n")

    if os.environ.get("AGENTMESH_DEBUG"):
        configure_logging(level=logging.DEBUG)

    config = MeshConfig.from_env()
    config.poll_interval = 0.05

    with AgentMesh(config=config) as mesh:
        # Step 1: Identities
        print("1. Generating owner keypairs...")
        sender_signer, sender_owner = Ed25519Signer.generate()
        worker_signer, worker_owner = Ed25519Signer.generate()
        print(f"   Sender owner: {sender_owner}")
        print(f"   Worker owner: {worker_owner}")

        # Step 2: Model profile
        print("\n2. Creating the worker's model profile...")
        provider_uri = config.llm_base_url if config.llm_api_key else "stub://trading-assistant"
        profile = mesh.registry.create_model_profile(
            worker_owner,
            label=config.llm_model,
            provider_uri=provider_uri,
            price_per_1k_tokens=2_000,
            max_requests_per_min=10,
        )
        if not config.llm_api_key:
            mesh.register_backend(profile.address, CallableBackend(stub_model, name="stub"))
        print(f"   Profile: {profile.address} -> {profile.provider_uri}")

        # Step 3: Agents
        print("\n3. Registering agents...")
        sender = mesh.registry.register_agent(
            sender_owner, metadata_uri="ipfs://sender", permissions=Permission.CAN_CREATE_INTENT
        )
        worker = mesh.registry.register_agent(
            worker_owner,
            model_profile=profile.address,
            metadata_uri="ipfs://worker",
            permissions=Permission.CAN_ACCEPT_INTENT,
        )
        print(f"   Sender: {sender.address} {sender.permission_set.names()}")
        print(f"   Worker: {worker.address} {worker.permission_set.names()}")

        try:
            # Step 4: Intent
            print("\n4. Sending an intent...")
            intent = mesh.coordinator.create_intent(
                sender.address,
                worker.address,
                {"prompt": "Should I swap 1 SOL to USDC right now?", "action": "swap"},
                payment_amount=5_000,
            )
            print(f"   Intent: {intent.address} (nonce {intent.nonce}, {intent.status.label})")
            print(f"   Payload digest: {intent.payload_digest.hex()}")

            # Step 5: Worker poller
            print("\n5. Running the worker's poller...")
            asyncio.run(run_worker(mesh, worker.address, intent.address))
            done = mesh.coordinator.get_intent(intent.address)
            print(f"   Status: {done.status.label}")
            if done.status != IntentStatus.COMPLETED:
                print(f"   Failure: {done.failure_reason}")
                sys.exit(1)
            print(f"   Output: {done.result['output']}")
            print(f"   Usage: {done.result['usage']}")

            # Step 6: Result integrity
            print("\n6. Verifying the stored result...")
            stored = mesh.blobs.fetch(done.result_locator)
            assert verify_bytes(stored, done.result_digest)
            print(f"   Result digest: {done.result_digest.hex()} OK")

            # Step 7: Privileged action
            print("\n7. Executing a swap...")
            try:
                mesh.coordinator.execute_action(worker.address, "swap", SWAP)
            except MeshError as e:
                print(f"   Denied: [{e.code}] {e.message}")

            update = AgentUpdate(permissions=int(worker.permissions | Permission.CAN_SWAP))
            request = sign_request(worker_signer, "update_agent", update.to_body(worker.address))
            mesh.registry.update_agent(worker.address, update, request)
            signature = mesh.coordinator.execute_action(worker.address, "swap", SWAP)
            print(f"   Granted CAN_SWAP, swap signature: {signature}")

            print("\n=== Workflow Complete ===")
            print("\nSummary:")
            print(f"  Intent: {intent.address}")
            print(f"  From: {sender.address}")
            print(f"  To: {worker.address}")

        except MeshError as e:
            print(f"\nError: [{e.code}] {e.message}")
            sys.exit(1)


if __name__ == "__main__":
    main()
