"""Agent Mesh testing utilities.

Mock backends, mock venues, record builders and pytest fixtures for testing
code that runs on an agent mesh.
"""

from agentmesh.testing.fixtures import (
    MeshScenario,
    build_mesh_scenario,
    create_mock_agent,
    create_mock_intent,
    create_mock_profile,
    random_address,
)
from agentmesh.testing.mock import MockBackend, MockCall, MockResponse, MockVenue

__all__ = [
    # Mocks
    "MockBackend",
    "MockVenue",
    "MockCall",
    "MockResponse",
    # Builders
    "MeshScenario",
    "build_mesh_scenario",
    "create_mock_agent",
    "create_mock_profile",
    "create_mock_intent",
    "random_address",
]
