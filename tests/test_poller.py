"""
Tests for the asynchronous intent poller.
"""

import asyncio

from agentmesh.exceptions import BackendUnavailableError
from agentmesh.poller import IntentPoller, default_handler
from agentmesh.testing import build_mesh_scenario
from agentmesh.types.intents import IntentStatus


def test_default_handler_accepts_and_processes(scenario) -> None:
    intent = scenario.send({"prompt": "hi"})

    done = default_handler(scenario.mesh.coordinator, intent)

    assert done.status == IntentStatus.COMPLETED


def test_default_handler_leaves_intent_when_agent_cannot_accept() -> None:
    scenario = build_mesh_scenario(worker_permissions=0)
    intent = scenario.send({"prompt": "hi"})

    result = default_handler(scenario.mesh.coordinator, intent)

    assert result.status == IntentStatus.PENDING
    assert not scenario.backend.was_called("invoke")


def test_scan_once_handles_open_intents(scenario) -> None:
    first = scenario.send({"prompt": "one"})
    second = scenario.send({"prompt": "two"})
    poller = scenario.mesh.poller(scenario.worker.address)

    handled = asyncio.run(poller.scan_once())

    assert handled == 2
    for intent in (first, second):
        assert scenario.mesh.coordinator.get_intent(intent.address).status == (
            IntentStatus.COMPLETED
        )
    assert asyncio.run(poller.scan_once()) == 0


def test_scan_once_ignores_other_agents(scenario) -> None:
    scenario.send({"prompt": "one"})
    poller = scenario.mesh.poller(scenario.sender.address)

    assert asyncio.run(poller.scan_once()) == 0
    assert not scenario.backend.was_called("invoke")


def test_scan_once_survives_handler_errors(scenario) -> None:
    scenario.backend.queue(BackendUnavailableError("down"), "fine")
    failing = scenario.send({"prompt": "one"})
    working = scenario.send({"prompt": "two"})
    poller = scenario.mesh.poller(scenario.worker.address)

    handled = asyncio.run(poller.scan_once())

    coordinator = scenario.mesh.coordinator
    assert handled == 1
    assert coordinator.get_intent(failing.address).status == IntentStatus.FAILED
    assert coordinator.get_intent(working.address).status == IntentStatus.COMPLETED


def test_scan_once_survives_crashing_handler(scenario) -> None:
    scenario.send({"prompt": "one"})

    def crash(coordinator, intent):
        raise RuntimeError("bug")

    poller = IntentPoller(scenario.mesh.coordinator, scenario.worker.address, handler=crash)

    assert asyncio.run(poller.scan_once()) == 0


def test_start_and_stop(scenario) -> None:
    intent = scenario.send({"prompt": "hi"})
    poller = IntentPoller(scenario.mesh.coordinator, scenario.worker.address, interval=0.01)

    async def run() -> None:
        await poller.start()
        assert poller.running
        await poller.start()
        for _ in range(200):
            if scenario.mesh.coordinator.get_intent(intent.address).is_terminal:
                break
            await asyncio.sleep(0.01)
        await poller.stop()
        await poller.stop()

    asyncio.run(run())

    assert not poller.running
    assert scenario.mesh.coordinator.get_intent(intent.address).status == IntentStatus.COMPLETED
    assert scenario.backend.call_count("invoke") == 1


def test_custom_handler_receives_intents(scenario) -> None:
    scenario.send({"prompt": "hi"})
    seen = []
    poller = IntentPoller(
        scenario.mesh.coordinator,
        scenario.worker.address,
        handler=lambda coordinator, intent: seen.append(intent.address),
    )

    asyncio.run(poller.scan_once())

    assert len(seen) == 1
