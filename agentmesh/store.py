"""
Coordination store for agent, model profile and intent records.

The store owns canonical record state. Records are frozen dataclasses, so a
reader holding one can never observe a half-applied update; writers replace
whole records under the store lock. The in-memory store copies records on the
way in and out, so edits to a returned intent's inline payload or result never
reach the stored record.
"""

import copy
import enum
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from agentmesh.addresses import Address
from agentmesh.exceptions import (
    ConflictError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from agentmesh.types.intents import IMMUTABLE_FIELDS, Intent, IntentStatus, check_transition


class RecordKind(str, enum.Enum):
    AGENT = "agent"
    MODEL_PROFILE = "model_profile"
    INTENT = "intent"


class Store(ABC):
    """Durable store boundary. Implementations must make every write atomic."""

    @abstractmethod
    def get(self, kind: RecordKind, address: Address) -> Any:
        """Return the record at ``address`` or raise ``NotFoundError``."""
        pass

    @abstractmethod
    def put(self, kind: RecordKind, record: Any, create: bool = False) -> None:
        """
        Store ``record`` under ``record.address``, replacing any previous record.

        With ``create=True`` an existing record raises ``ConflictError`` instead.
        """
        pass

    @abstractmethod
    def list(
        self, kind: RecordKind, predicate: Callable[[Any], bool] | None = None
    ) -> list[Any]:
        """Return all records of ``kind`` matching ``predicate``."""
        pass

    @abstractmethod
    def update(
        self, kind: RecordKind, address: Address, mutate: Callable[[Any], Any]
    ) -> Any:
        """Atomically replace the record at ``address`` with ``mutate(record)``."""
        pass

    @abstractmethod
    def compare_and_set(
        self, address: Address, expected: IntentStatus, updated: Intent
    ) -> Intent:
        """
        Replace an intent only if its current status is ``expected``.

        Raises:
            NotFoundError: If no intent exists at ``address``
            InvalidStateError: If the status has moved on
        """
        pass

    @abstractmethod
    def next_nonce(self, from_agent: Address, to_agent: Address) -> int:
        """Allocate the next nonce for the ordered pair ``(from_agent, to_agent)``."""
        pass

    def close(self) -> None:
        """Release store resources."""
        pass

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class InMemoryStore(Store):
    """Thread-safe in-memory store."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tables: dict[RecordKind, dict[Address, Any]] = {
            kind: {} for kind in RecordKind
        }
        self._nonces: dict[tuple[Address, Address], int] = {}

    def get(self, kind: RecordKind, address: Address) -> Any:
        with self._lock:
            return copy.deepcopy(self._get(kind, address))

    def _get(self, kind: RecordKind, address: Address) -> Any:
        record = self._tables[kind].get(address)
        if record is None:
            raise NotFoundError(f"{kind.value} not found", address)
        return record

    def put(self, kind: RecordKind, record: Any, create: bool = False) -> None:
        with self._lock:
            table = self._tables[kind]
            if create and record.address in table:
                raise ConflictError(f"{kind.value} already exists", record.address)
            table[record.address] = copy.deepcopy(record)
            if kind is RecordKind.INTENT:
                self._observe_nonce(record)

    def list(
        self, kind: RecordKind, predicate: Callable[[Any], bool] | None = None
    ) -> list[Any]:
        with self._lock:
            records = copy.deepcopy(list(self._tables[kind].values()))
        if predicate is None:
            return records
        return [record for record in records if predicate(record)]

    def update(
        self, kind: RecordKind, address: Address, mutate: Callable[[Any], Any]
    ) -> Any:
        with self._lock:
            current = self.get(kind, address)
            updated = mutate(current)
            if updated.address != address:
                raise InvalidArgumentError("Update may not move a record", address)
            self._tables[kind][address] = copy.deepcopy(updated)
            return updated

    def compare_and_set(
        self, address: Address, expected: IntentStatus, updated: Intent
    ) -> Intent:
        with self._lock:
            current: Intent = self._get(RecordKind.INTENT, address)
            if current.status != expected:
                raise InvalidStateError(
                    f"Expected status {expected.label}, found {current.status.label}",
                    address,
                )
            check_transition(current.status, updated.status, address)
            for name in IMMUTABLE_FIELDS:
                if getattr(current, name) != getattr(updated, name):
                    raise InvalidArgumentError(f"Intent field {name} is immutable", address)
            self._tables[RecordKind.INTENT][address] = copy.deepcopy(updated)
            return updated

    def next_nonce(self, from_agent: Address, to_agent: Address) -> int:
        with self._lock:
            nonce = self._nonces.get((from_agent, to_agent), -1) + 1
            self._nonces[(from_agent, to_agent)] = nonce
            return nonce

    def _observe_nonce(self, intent: Intent) -> None:
        # explicit nonces must not be handed out again by next_nonce
        pair = (intent.from_agent, intent.to_agent)
        if intent.nonce > self._nonces.get(pair, -1):
            self._nonces[pair] = intent.nonce
