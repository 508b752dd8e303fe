"""
Periodic discovery of intents addressed to an agent.

The poller holds no authoritative state: every transition it triggers is a
compare-and-set in the store, so a cancelled or crashed scan leaves nothing
half-written and the next scan simply picks up where it left off.
"""

import asyncio
import time
from collections.abc import Callable
from typing import Any

from agentmesh.addresses import Address
from agentmesh.coordinator import IntentCoordinator
from agentmesh.exceptions import MeshError
from agentmesh.logging import get_logger
from agentmesh.permissions import Permission, has
from agentmesh.types.intents import Intent, IntentStatus

logger = get_logger("poller")

IntentHandler = Callable[[IntentCoordinator, Intent], Any]

_OPEN_STATUSES = (IntentStatus.PENDING, IntentStatus.ACCEPTED)


def default_handler(coordinator: IntentCoordinator, intent: Intent) -> Intent:
    """Accept a pending intent when the agent may, then process it."""
    if intent.status == IntentStatus.PENDING:
        agent = coordinator.registry.get_agent(intent.to_agent)
        if not has(agent.permissions, Permission.CAN_ACCEPT_INTENT):
            logger.debug(f"Leaving intent {intent.address} pending: agent cannot accept")
            return intent
        intent = coordinator.accept_intent(intent.address, intent.to_agent)
    return coordinator.process_intent(intent.address)


class IntentPoller:
    """
    Cancellable periodic scan for an agent's open intents.

    Example:
        ```python
        poller = IntentPoller(coordinator, research_agent.address, interval=5.0)
        await poller.start()
        ...
        await poller.stop()
        ```
    """

    def __init__(
        self,
        coordinator: IntentCoordinator,
        agent_address: Address,
        handler: IntentHandler | None = None,
        interval: float = 5.0,
    ) -> None:
        self.coordinator = coordinator
        self.agent_address = Address.coerce(agent_address)
        self.handler = handler or default_handler
        self.interval = interval
        self._in_flight: set[Address] = set()
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        logger.info(f"Polling intents for {self.agent_address} every {self.interval}s")
        self._task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish. Safe to call twice."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info(f"Stopped polling intents for {self.agent_address}")

    async def scan_once(self) -> int:
        """
        Run the handler on every open intent addressed to the agent.

        Intents already being handled by an earlier, still running scan are
        skipped.

        Returns:
            The number of intents handled without error
        """
        intents = [
            intent
            for intent in self.coordinator.list_intents(to_agent=self.agent_address)
            if intent.status in _OPEN_STATUSES and intent.address not in self._in_flight
        ]

        handled = 0
        for intent in intents:
            self._in_flight.add(intent.address)
            try:
                await asyncio.to_thread(self.handler, self.coordinator, intent)
                handled += 1
            except MeshError as e:
                logger.warning(f"Handling intent {intent.address} failed: {e}")
            except Exception as e:
                logger.error(f"Handler crashed on intent {intent.address}: {e}")
            finally:
                self._in_flight.discard(intent.address)
        return handled

    async def _poll_loop(self) -> None:
        while True:
            start_time = time.monotonic()
            try:
                await self.scan_once()
            except Exception as e:
                logger.error(f"Intent scan for {self.agent_address} failed: {e}")
            duration = time.monotonic() - start_time
            await asyncio.sleep(max(0, self.interval - duration))
