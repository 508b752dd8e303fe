"""Agent Mesh record and action types."""

from agentmesh.types.actions import (
    ACTION_TYPES,
    Action,
    LendAction,
    StakeAction,
    SwapAction,
    TransferAction,
    parse_action,
)
from agentmesh.types.agents import Agent, AgentUpdate, ModelProfile, ModelProfileUpdate
from agentmesh.types.intents import (
    TERMINAL_STATUSES,
    Intent,
    IntentStatus,
    check_transition,
)

__all__ = [
    # Records
    "Agent",
    "AgentUpdate",
    "ModelProfile",
    "ModelProfileUpdate",
    "Intent",
    "IntentStatus",
    "TERMINAL_STATUSES",
    "check_transition",
    # Actions
    "Action",
    "ACTION_TYPES",
    "SwapAction",
    "TransferAction",
    "StakeAction",
    "LendAction",
    "parse_action",
]
