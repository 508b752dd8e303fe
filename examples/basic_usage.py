#!/usr/bin/env python3
"""
Basic Agent Mesh usage example.

Walks through the building blocks without any network access: errors,
canonical digests, address derivation, permissions and owner signatures.
Run with: python examples/basic_usage.py
"""

import json

from agentmesh import ConfigurationError, MeshError, Permission, PermissionSet
from agentmesh.addresses import AddressDeriver
from agentmesh.canonicalize import canonicalize
from agentmesh.integrity import digest, verify
from agentmesh.signers import Ed25519Signer
from agentmesh.signing import OwnerAuthorizer, sign_request

print("=== Agent Mesh Basic Usage Example ===\n")

# 1. Exception hierarchy
print("1. Testing exception classes...")
try:
    raise ConfigurationError("Invalid AGENTMESH_POLL_INTERVAL: 'soon'")
except MeshError as e:
    print(f"   Caught MeshError: {e}")
    print(f"   Code: {e.code}, Message: {e.message}")

print("\n   OK: Exception classes working\n")

# 2. Canonical payloads and digests
print("2. Canonicalizing an intent payload...")
payload = {"amount": 1000000000, "action": "swap", "pair": {"out": "USDC", "in": "SOL"}}
canonical = canonicalize(payload)
print(f"   Input: {payload}")
print(f"   Canonical: {canonical}")
assert list(json.loads(canonical)) == sorted(payload), "Keys should be sorted"

payload_digest = digest(payload)
print(f"   Digest: {payload_digest.hex()}")
assert verify({"pair": {"in": "SOL", "out": "USDC"}, "action": "swap", "amount": 1000000000}, payload_digest)
assert not verify({**payload, "amount": 1000000001}, payload_digest)
print("\n   OK: Digest ignores key order and catches changed values\n")

# 3. Address derivation
print("3. Deriving record addresses...")
owner_signer, owner = Ed25519Signer.generate()
_, peer = Ed25519Signer.generate()
deriver = AddressDeriver("agentmesh")

agent_address, bump = deriver.agent_address(owner)
print(f"   Owner:  {owner}")
print(f"   Agent:  {agent_address} (bump {bump})")

forward, _ = deriver.intent_address(owner, peer, 0)
backward, _ = deriver.intent_address(peer, owner, 0)
print(f"   Intent owner->peer #0: {forward}")
print(f"   Intent peer->owner #0: {backward}")
assert forward != backward
assert deriver.agent_address(owner) == (agent_address, bump)
print("\n   OK: Addresses are deterministic and direction-sensitive\n")

# 4. Permissions
print("4. Working with permission masks...")
perms = PermissionSet.of(Permission.CAN_CREATE_INTENT, Permission.CAN_SWAP)
print(f"   Mask: {int(perms)} -> {perms.names()}")
perms = perms.revoke(Permission.CAN_SWAP).grant(Permission.CAN_ACCEPT_INTENT)
print(f"   Mask: {int(perms)} -> {perms.names()}")
assert Permission.CAN_SWAP not in perms
print("\n   OK: Permission masks working\n")

# 5. Owner signatures
print("5. Signing an owner request...")
body = {"target": str(agent_address), "permissions": int(perms)}
request = sign_request(owner_signer, "update_agent", body)
print(f"   Nonce: {request.envelope.nonce}")
print(f"   Signature: {request.signature[:24]}...")

authorizer = OwnerAuthorizer()
authorizer.authorize(request, owner, "update_agent", body)
print("   First use: authorized")
try:
    authorizer.authorize(request, owner, "update_agent", body)
except MeshError as e:
    print(f"   Second use: rejected with {e.code}")

print("\n=== All basic tests passed! ===")
