"""
Intent coordinator.

Drives intents through PENDING -> ACCEPTED -> COMPLETED | FAILED. Every
transition is committed with a compare-and-set on the current status, so
concurrent callers can never both win, and no record lock is held while a
backend call is in flight.
"""

import json
import random
import time
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any

from agentmesh.actions import ActionExecutor
from agentmesh.addresses import Address, AddressDeriver, encode_nonce
from agentmesh.blobs import BlobStore
from agentmesh.config import MeshConfig
from agentmesh.exceptions import (
    BackendError,
    BackendTimeoutError,
    BackendUnavailableError,
    ConflictError,
    IntegrityViolationError,
    InvalidArgumentError,
    InvalidStateError,
    MeshError,
    NoProviderConfiguredError,
    NotFoundError,
    PermissionDeniedError,
)
from agentmesh.integrity import digest_bytes, encode_body, require_digest, verify
from agentmesh.logging import get_logger, log_transition, truncate_digest
from agentmesh.permissions import Permission, has
from agentmesh.providers import Backend, ProviderRouter
from agentmesh.registry import MAX_U64, Registry
from agentmesh.store import RecordKind, Store
from agentmesh.types.agents import Agent, ModelProfile
from agentmesh.types.intents import Intent, IntentStatus
from agentmesh.usage import UsageMeter, cost, estimate_tokens

logger = get_logger("coordinator")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _readdress(error: BackendError, address: Address) -> BackendError:
    if isinstance(error, BackendTimeoutError):
        return BackendTimeoutError(error.message, address)
    return BackendUnavailableError(error.message, address)


class IntentCoordinator:
    """
    The intent state machine.

    Args:
        store: Coordination store (sole owner of record state)
        registry: Agent and model profile lookups
        router: Resolves a model profile to its backend
        blobs: Payload and result blob store
        deriver: Address deriver (defaults to the registry's)
        config: Mesh settings (nonce attempts, retry policy, payment asset)
        usage: Usage meter enforcing profile caps
        executor: Runs privileged actions
        clock: Returns the current UTC time
        sleep: Sleeps between backend retries
    """

    def __init__(
        self,
        store: Store,
        registry: Registry,
        router: ProviderRouter,
        blobs: BlobStore,
        deriver: AddressDeriver | None = None,
        config: MeshConfig | None = None,
        usage: UsageMeter | None = None,
        executor: ActionExecutor | None = None,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.store = store
        self.registry = registry
        self.router = router
        self.blobs = blobs
        self.deriver = deriver or registry.deriver
        self.config = config or MeshConfig()
        self.usage = usage or UsageMeter()
        self.executor = executor or ActionExecutor()
        self._clock = clock or _utcnow
        self._sleep = sleep or time.sleep

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_intent(
        self,
        from_agent: Address,
        to_agent: Address,
        payload: Any,
        payment_amount: int = 0,
        payment_asset: Address | None = None,
        nonce: int | None = None,
    ) -> Intent:
        """
        Create a PENDING intent from ``from_agent`` to ``to_agent``.

        The payload is stored in canonical form in the blob store and its
        digest is fixed on the record, together with the payment terms.

        Args:
            from_agent: Source agent address
            to_agent: Destination agent address
            payload: Non-empty JSON-compatible request body
            payment_amount: Payment in base units of ``payment_asset``
            payment_asset: Asset address (defaults to the configured asset)
            nonce: Explicit nonce; allocated per (from, to) pair when omitted

        Raises:
            InvalidArgumentError: If ``from_agent == to_agent``, the payload is
                empty or not JSON-compatible, or the amount is out of range
            NotFoundError: If either agent is not registered
            PermissionDeniedError: If the source lacks CAN_CREATE_INTENT
            ConflictError: If an explicit nonce is already taken, or no free
                nonce was found
        """
        from_agent = Address.coerce(from_agent)
        to_agent = Address.coerce(to_agent)
        if from_agent == to_agent:
            raise InvalidArgumentError("An agent cannot send an intent to itself", from_agent)
        if isinstance(payment_amount, bool) or not isinstance(payment_amount, int):
            raise InvalidArgumentError("payment_amount must be an integer", from_agent)
        if not 0 <= payment_amount <= MAX_U64:
            raise InvalidArgumentError(
                f"payment_amount out of range: {payment_amount}", from_agent
            )
        if nonce is not None:
            encode_nonce(nonce)
        payment_asset = (
            Address.coerce(payment_asset)
            if payment_asset is not None
            else self.config.default_payment_asset
        )
        encoded = encode_body(payload)

        source = self.registry.get_agent(from_agent)
        self.registry.get_agent(to_agent)
        if not has(source.permissions, Permission.CAN_CREATE_INTENT):
            logger.warning(f"Agent {from_agent} denied intent creation: missing CAN_CREATE_INTENT")
            raise PermissionDeniedError("Agent lacks CAN_CREATE_INTENT", from_agent)
        if nonce is not None:
            self._check_nonce_free(from_agent, to_agent, nonce)

        payload_digest = digest_bytes(encoded)
        payload_locator = self.blobs.store(encoded)
        inline = json.loads(encoded)

        def build(n: int) -> Intent:
            address, bump = self.deriver.intent_address(from_agent, to_agent, n)
            now = self._clock()
            return Intent(
                address=address,
                bump=bump,
                from_agent=from_agent,
                to_agent=to_agent,
                nonce=n,
                status=IntentStatus.PENDING,
                payload_digest=payload_digest,
                payload_locator=payload_locator,
                payment_amount=payment_amount,
                payment_asset=payment_asset,
                created_at=now,
                updated_at=now,
                payload=inline,
            )

        if nonce is not None:
            intent = build(nonce)
            self.store.put(RecordKind.INTENT, intent, create=True)
        else:
            intent = self._insert_with_fresh_nonce(from_agent, to_agent, build)

        logger.info(
            f"Created intent {intent.address} {from_agent} -> {to_agent} "
            f"nonce={intent.nonce} payload={truncate_digest(payload_digest)}"
        )
        return intent

    def _check_nonce_free(self, from_agent: Address, to_agent: Address, nonce: int) -> None:
        address, _ = self.deriver.intent_address(from_agent, to_agent, nonce)
        try:
            self.store.get(RecordKind.INTENT, address)
        except NotFoundError:
            return
        raise ConflictError(f"Nonce {nonce} already used for this agent pair", address)

    def _insert_with_fresh_nonce(
        self, from_agent: Address, to_agent: Address, build: Callable[[int], Intent]
    ) -> Intent:
        for attempt in range(self.config.max_nonce_attempts):
            intent = build(self.store.next_nonce(from_agent, to_agent))
            try:
                self.store.put(RecordKind.INTENT, intent, create=True)
                return intent
            except ConflictError:
                logger.debug(
                    f"Nonce {intent.nonce} taken for {from_agent} -> {to_agent} "
                    f"(attempt {attempt + 1})"
                )
        raise ConflictError(
            f"No free nonce after {self.config.max_nonce_attempts} attempts", from_agent
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def accept_intent(self, intent_address: Address, by: Address) -> Intent:
        """
        Accept a PENDING intent as its destination agent.

        Raises:
            NotFoundError: If the intent or agent does not exist
            PermissionDeniedError: If ``by`` is not the destination or lacks
                CAN_ACCEPT_INTENT
            InvalidStateError: If the intent is no longer PENDING
        """
        intent = self.get_intent(intent_address)
        by = Address.coerce(by)
        if by != intent.to_agent:
            raise PermissionDeniedError(
                f"Only the destination agent may accept, not {by}", intent.address
            )
        agent = self.registry.get_agent(by)
        if not has(agent.permissions, Permission.CAN_ACCEPT_INTENT):
            raise PermissionDeniedError("Agent lacks CAN_ACCEPT_INTENT", intent.address)

        updated = intent.transition(IntentStatus.ACCEPTED, self._clock())
        self.store.compare_and_set(intent.address, IntentStatus.PENDING, updated)
        log_transition(intent.address, "pending", "accepted")
        return updated

    def process_intent(self, intent_address: Address) -> Intent:
        """
        Fulfill an ACCEPTED intent through its destination's model backend.

        A COMPLETED intent is returned unchanged, so a duplicate delivery of
        the same intent is harmless.

        Raises:
            InvalidStateError: If the intent is neither ACCEPTED nor COMPLETED
            IntegrityViolationError: If the payload no longer matches its
                digest. The intent stays ACCEPTED.
            NoProviderConfiguredError: If the destination has no usable profile
                or backend. The intent stays ACCEPTED.
            RateLimitedError: If the profile's caps are exhausted. The intent
                stays ACCEPTED.
            BackendUnavailableError, BackendTimeoutError: After the intent was
                committed FAILED
        """
        intent = self.get_intent(intent_address)
        if intent.status == IntentStatus.COMPLETED:
            logger.debug(f"Intent {intent.address} already completed")
            return intent
        if intent.status != IntentStatus.ACCEPTED:
            raise InvalidStateError(
                f"Only accepted intents can be processed, status is {intent.status.label}",
                intent.address,
            )

        payload_bytes = self._load_payload(intent)
        payload = json.loads(payload_bytes)
        profile = self._profile_for(intent)
        backend = self.router.resolve(profile.address, profile.provider_uri)

        prompt = self._prompt_for(payload, payload_bytes)
        self.usage.check(profile, prompt)

        logger.info(f"Processing intent {intent.address} with backend {backend.name}")
        try:
            output = self._invoke(backend, prompt)
        except BackendError as e:
            return self._commit_failure(intent, e)

        tokens = estimate_tokens(prompt) + estimate_tokens(output)
        self.usage.record(profile, tokens)

        completed_at = self._clock()
        result = {
            "intent": str(intent.address),
            "input": payload,
            "output": output,
            "usage": {"tokens": tokens, "cost": cost(profile, tokens)},
            "completedAt": completed_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
        }
        result_bytes = encode_body(result)
        result_digest = digest_bytes(result_bytes)
        result_locator = self.blobs.store(result_bytes)

        updated = intent.transition(
            IntentStatus.COMPLETED,
            completed_at,
            result_digest=result_digest,
            result_locator=result_locator,
            result=result,
        )
        try:
            self.store.compare_and_set(intent.address, IntentStatus.ACCEPTED, updated)
        except InvalidStateError:
            current = self.get_intent(intent.address)
            if current.status == IntentStatus.COMPLETED:
                logger.info(f"Intent {intent.address} was completed concurrently")
                return current
            raise

        log_transition(intent.address, "accepted", "completed")
        return updated

    def fail_intent(self, intent_address: Address, reason: str) -> Intent:
        """
        Operator-initiated failure of a PENDING or ACCEPTED intent.

        Raises:
            InvalidArgumentError: If ``reason`` is empty
            InvalidStateError: If the intent is already terminal
        """
        if not isinstance(reason, str) or not reason:
            raise InvalidArgumentError("A failure reason is required", intent_address)
        intent = self.get_intent(intent_address)
        updated = intent.transition(IntentStatus.FAILED, self._clock(), failure_reason=reason)
        self.store.compare_and_set(intent.address, intent.status, updated)
        log_transition(intent.address, intent.status.label, "failed", reason)
        return updated

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_intent(self, intent_address: Address) -> Intent:
        return self.store.get(RecordKind.INTENT, Address.coerce(intent_address))

    def list_intents(
        self,
        from_agent: Address | None = None,
        to_agent: Address | None = None,
        status: IntentStatus | None = None,
    ) -> list[Intent]:
        """List intents matching every given filter, oldest first."""
        from_agent = Address.coerce(from_agent) if from_agent is not None else None
        to_agent = Address.coerce(to_agent) if to_agent is not None else None

        def matches(intent: Intent) -> bool:
            return (
                (from_agent is None or intent.from_agent == from_agent)
                and (to_agent is None or intent.to_agent == to_agent)
                and (status is None or intent.status == status)
            )

        intents = self.store.list(RecordKind.INTENT, matches)
        return sorted(intents, key=lambda i: (i.created_at, i.nonce))

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def execute_action(
        self, agent: Agent | Address, action_kind: str, params: Mapping[str, Any]
    ) -> str:
        """
        Run a privileged action for ``agent``.

        The permission flag for ``action_kind`` is checked before any
        external call.

        Returns:
            The venue's transaction signature

        Raises:
            UnsupportedActionError: If ``action_kind`` is unknown
            PermissionDeniedError: If the agent lacks the required flag
            InvalidArgumentError: If ``params`` do not fit the action
        """
        if not isinstance(agent, Agent):
            agent = self.registry.get_agent(agent)
        return self.executor.execute(agent, action_kind, params)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _load_payload(self, intent: Intent) -> bytes:
        payload_bytes = self.blobs.fetch(intent.payload_locator)
        try:
            require_digest(payload_bytes, intent.payload_digest, intent.address)
            if intent.payload is not None and not verify(intent.payload, intent.payload_digest):
                raise IntegrityViolationError(
                    "Inline payload does not match its digest", intent.address
                )
        except IntegrityViolationError as e:
            logger.critical(f"Integrity violation on intent {intent.address}: {e.message}")
            raise
        return payload_bytes

    def _profile_for(self, intent: Intent) -> ModelProfile:
        agent = self.registry.get_agent(intent.to_agent)
        if agent.model_profile is None:
            raise NoProviderConfiguredError(
                "Destination agent has no model profile", intent.address
            )
        try:
            return self.registry.get_profile(agent.model_profile)
        except NotFoundError as e:
            raise NoProviderConfiguredError(
                f"Model profile {agent.model_profile} does not exist", intent.address
            ) from e

    @staticmethod
    def _prompt_for(payload: Any, payload_bytes: bytes) -> str:
        if isinstance(payload, dict) and isinstance(payload.get("prompt"), str):
            return payload["prompt"]
        if isinstance(payload, str):
            return payload
        return payload_bytes.decode("utf-8")

    def _invoke(self, backend: Backend, prompt: str) -> str:
        retry = self.config.retry
        attempt = 0
        while True:
            try:
                return self._call_backend(backend, prompt)
            except BackendError as e:
                if attempt >= retry.max_retries or not isinstance(e, retry.retry_on):
                    raise
                wait_time = self._get_backoff_time(attempt)
                logger.warning(
                    f"{backend.name} failed with {e.code}, retry {attempt + 1}/"
                    f"{retry.max_retries} in {wait_time:.2f}s"
                )
                self._sleep(wait_time)
                attempt += 1

    @staticmethod
    def _call_backend(backend: Backend, prompt: str) -> str:
        try:
            output = backend.invoke(prompt)
        except MeshError:
            raise
        except Exception as e:
            raise BackendUnavailableError(f"{backend.name} failed: {e}") from e
        if not isinstance(output, str):
            raise BackendUnavailableError(f"{backend.name} returned {type(output).__name__}")
        return output

    def _get_backoff_time(self, attempt: int) -> float:
        """Exponential backoff with jitter, capped at ``max_backoff``."""
        retry = self.config.retry
        base_wait = retry.backoff_factor ** attempt
        jitter_range = base_wait * retry.jitter
        wait_time = base_wait + random.uniform(-jitter_range, jitter_range)
        return min(wait_time, retry.max_backoff)

    def _commit_failure(self, intent: Intent, error: BackendError) -> Intent:
        updated = intent.transition(
            IntentStatus.FAILED, self._clock(), failure_reason=f"{error.code}: {error.message}"
        )
        try:
            self.store.compare_and_set(intent.address, IntentStatus.ACCEPTED, updated)
        except InvalidStateError:
            current = self.get_intent(intent.address)
            if current.status == IntentStatus.COMPLETED:
                logger.info(f"Intent {intent.address} was completed concurrently")
                return current
            raise _readdress(error, intent.address) from error

        log_transition(intent.address, "accepted", "failed", updated.failure_reason)
        raise _readdress(error, intent.address) from error
