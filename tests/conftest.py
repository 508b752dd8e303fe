pytest_plugins = ["agentmesh.testing.conftest"]
