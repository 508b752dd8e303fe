"""
Pytest plugin for Agent Mesh testing fixtures.

To use these fixtures in your tests, add this to your conftest.py:

    pytest_plugins = ["agentmesh.testing.conftest"]
"""

from agentmesh.testing.fixtures import (
    ed25519_keypair,
    ed25519_signer,
    mesh,
    mock_backend,
    mock_venue,
    sample_agent,
    sample_intent,
    sample_profile,
    scenario,
)

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
]
