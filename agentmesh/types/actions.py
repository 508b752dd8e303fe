"""Typed parameters for privileged agent actions.

Each action kind has its own field contract; ``parse_action`` validates a raw
params mapping against it before anything is dispatched.
"""

from collections.abc import Mapping
from dataclasses import MISSING, dataclass, fields
from typing import Any

from agentmesh.exceptions import InvalidArgumentError, UnsupportedActionError

MAX_SLIPPAGE_BPS = 10_000


@dataclass(frozen=True)
class SwapAction:
    """Exchange ``amount`` base units of ``input_asset`` for ``output_asset``."""

    input_asset: str
    output_asset: str
    amount: int
    slippage_bps: int = 50

    kind = "swap"


@dataclass(frozen=True)
class TransferAction:
    """Send ``amount`` base units to ``destination``; native asset when ``asset`` is None."""

    destination: str
    amount: int
    asset: str | None = None

    kind = "transfer"


@dataclass(frozen=True)
class StakeAction:
    """Stake ``amount`` base units with ``protocol``."""

    protocol: str
    amount: int

    kind = "stake"


@dataclass(frozen=True)
class LendAction:
    """Supply ``amount`` base units of ``asset`` to ``protocol``."""

    protocol: str
    asset: str
    amount: int

    kind = "lend"


Action = SwapAction | TransferAction | StakeAction | LendAction

ACTION_TYPES: dict[str, type] = {
    "swap": SwapAction,
    "transfer": TransferAction,
    "stake": StakeAction,
    "lend": LendAction,
}


def _check_field(kind: str, name: str, value: Any, optional: bool) -> None:
    if value is None and optional:
        return
    if name in ("amount", "slippage_bps"):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidArgumentError(f"{kind}.{name} must be an integer")
        if name == "amount" and value <= 0:
            raise InvalidArgumentError(f"{kind}.amount must be positive, got {value}")
        if name == "slippage_bps" and not 0 <= value <= MAX_SLIPPAGE_BPS:
            raise InvalidArgumentError(f"{kind}.slippage_bps out of range: {value}")
    elif not isinstance(value, str) or not value:
        raise InvalidArgumentError(f"{kind}.{name} must be a non-empty string")


def parse_action(kind: str, params: Mapping[str, Any]) -> Action:
    """
    Build the typed action for ``kind`` from a raw params mapping.

    Args:
        kind: Action kind ("swap", "transfer", "stake" or "lend")
        params: Field values keyed by field name

    Returns:
        The validated action

    Raises:
        UnsupportedActionError: If ``kind`` is unknown
        InvalidArgumentError: On missing, unknown or ill-typed fields
    """
    action_type = ACTION_TYPES.get(kind)
    if action_type is None:
        raise UnsupportedActionError(f"Unknown action: {kind}")
    if not isinstance(params, Mapping):
        raise InvalidArgumentError(f"{kind} params must be a mapping")

    declared = {f.name: f for f in fields(action_type)}
    unknown = sorted(set(params) - set(declared))
    if unknown:
        raise InvalidArgumentError(f"Unknown {kind} params: {unknown}")

    values: dict[str, Any] = {}
    for name, f in declared.items():
        has_default = f.default is not MISSING
        if name not in params:
            if has_default:
                continue
            raise InvalidArgumentError(f"Missing {kind} param: {name}")
        _check_field(kind, name, params[name], optional=f.default is None)
        values[name] = params[name]

    return action_type(**values)
