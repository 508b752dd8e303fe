"""
Privileged agent actions.

Every action kind is gated by its own permission flag, and the flag is checked
before the venue is ever called.
"""

import secrets
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any

from agentmesh.exceptions import (
    InvalidArgumentError,
    PermissionDeniedError,
    UnsupportedActionError,
)
from agentmesh.logging import get_logger
from agentmesh.permissions import Permission, has
from agentmesh.types.actions import ACTION_TYPES, Action, parse_action
from agentmesh.types.agents import Agent

logger = get_logger("actions")

_ACTION_PERMISSIONS: dict[str, Permission] = {
    "swap": Permission.CAN_SWAP,
    "transfer": Permission.CAN_TRANSFER,
    "stake": Permission.CAN_STAKE,
    "lend": Permission.CAN_LEND,
}


def required_permission(kind: str) -> Permission:
    """
    Permission flag that gates ``kind``.

    Raises:
        UnsupportedActionError: If ``kind`` is unknown
    """
    flag = _ACTION_PERMISSIONS.get(kind)
    if flag is None or kind not in ACTION_TYPES:
        raise UnsupportedActionError(f"Unknown action: {kind}")
    return flag


class ActionVenue(ABC):
    """Where validated actions are carried out (a DEX, a staking program, ...)."""

    @abstractmethod
    def execute(self, agent: Agent, action: Action) -> str:
        """Carry out ``action`` for ``agent`` and return a transaction signature."""
        pass


class SimulatedVenue(ActionVenue):
    """Logs the action and returns a ``simulated-<kind>-<hex>`` signature."""

    def execute(self, agent: Agent, action: Action) -> str:
        logger.info(f"Would execute {action.kind} for agent {agent.address}: {action}")
        return f"simulated-{action.kind}-{secrets.token_hex(16)}"


class ActionExecutor:
    """Checks permissions and parameters, then hands the action to a venue."""

    def __init__(self, venue: ActionVenue | None = None) -> None:
        self.venue = venue or SimulatedVenue()

    def execute(self, agent: Agent, kind: str, params: Mapping[str, Any]) -> str:
        """
        Execute a privileged action on behalf of ``agent``.

        Checks run in order: action kind, permission, parameters. The venue
        is only called once all of them pass.

        Returns:
            The venue's transaction signature

        Raises:
            UnsupportedActionError: If ``kind`` is unknown
            PermissionDeniedError: If the agent lacks the flag for ``kind``
            InvalidArgumentError: If ``params`` do not fit the action
        """
        try:
            flag = required_permission(kind)
        except UnsupportedActionError as e:
            raise UnsupportedActionError(e.message, agent.address) from e

        if not has(agent.permissions, flag):
            logger.warning(f"Agent {agent.address} denied {kind}: missing {flag.name}")
            raise PermissionDeniedError(f"Agent lacks {flag.name}", agent.address)

        try:
            action = parse_action(kind, params)
        except InvalidArgumentError as e:
            raise InvalidArgumentError(e.message, agent.address) from e
        return self.venue.execute(agent, action)
