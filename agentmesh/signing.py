"""
Owner signatures for Agent Mesh.

Implements the signing flow: envelope -> canonicalize -> hash -> sign -> encode,
and the verifying side used by the registry before applying an owner-authorized
change.
"""

import base64
import binascii
import hashlib
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric import ed25519

from agentmesh.addresses import Address
from agentmesh.canonicalize import canonicalize
from agentmesh.envelope import EnvelopeBuilder, OwnerEnvelope
from agentmesh.exceptions import AuthenticationError, PermissionDeniedError
from agentmesh.logging import get_logger, log_signing_operation
from agentmesh.signers import Signer

logger = get_logger("auth")


def get_message_hash(envelope: OwnerEnvelope) -> bytes:
    """
    Get the SHA256 hash that is signed for an envelope.

    Returns:
        32-byte SHA256 hash of the canonical envelope
    """
    canonical_json = canonicalize(envelope.to_dict())
    return hashlib.sha256(canonical_json.encode("utf-8")).digest()


def sign_envelope(envelope: OwnerEnvelope, signer: Signer) -> str:
    """
    Sign an envelope and return the base64-encoded signature.

    The signing process:
    1. Canonicalize the envelope using JCS (RFC 8785)
    2. Compute SHA256 hash of canonical JSON
    3. Sign the hash with the provided signer
    4. Encode signature as base64
    """
    log_signing_operation("sign_envelope", envelope.owner, envelope.action, envelope.nonce)
    signature_bytes = signer.sign(get_message_hash(envelope))
    return base64.b64encode(signature_bytes).decode("ascii")


def verify_envelope(envelope: OwnerEnvelope, signature: str, owner: Address) -> bool:
    """
    Check ``signature`` over ``envelope`` against the owner's Ed25519 key.

    Returns False for malformed signatures or identities that are not valid
    public keys.
    """
    log_signing_operation("verify_envelope", owner, envelope.action, envelope.nonce)
    try:
        signature_bytes = base64.b64decode(signature, validate=True)
        public_key = ed25519.Ed25519PublicKey.from_public_bytes(bytes(owner))
        public_key.verify(signature_bytes, get_message_hash(envelope))
    except (binascii.Error, ValueError, InvalidSignature):
        return False
    return True


def compute_nonce_hash(owner: Address, nonce: str) -> str:
    """
    Compute the nonce hash for replay detection.

    Returns:
        Hex-encoded SHA256 of ``"<owner hex>:<nonce>"``
    """
    data = f"{owner}:{nonce}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class SignedRequest:
    """An owner envelope together with its base64 signature."""

    envelope: OwnerEnvelope
    signature: str


def sign_request(
    signer: Signer, action: str, body: dict[str, Any] | None = None
) -> SignedRequest:
    """
    Build and sign a fresh envelope for ``action`` on behalf of ``signer``.

    Example:
        ```python
        update = AgentUpdate(permissions=Permission.CAN_SWAP)
        request = sign_request(owner_signer, "update_agent", update.to_body(agent_address))
        registry.update_agent(agent_address, update, request)
        ```
    """
    envelope = EnvelopeBuilder(signer.address()).build(action, body)
    return SignedRequest(envelope=envelope, signature=sign_envelope(envelope, signer))


class OwnerAuthorizer:
    """
    Verifies signed owner requests and rejects replays.

    A nonce is remembered for as long as its envelope could still pass the
    timestamp check, so the replay table stays bounded.
    """

    def __init__(self, max_skew_seconds: int = 300) -> None:
        self.max_skew = timedelta(seconds=max_skew_seconds)
        self._seen: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def authorize(
        self,
        request: SignedRequest,
        owner: Address,
        action: str,
        body: dict[str, Any],
        now: datetime | None = None,
    ) -> None:
        """
        Accept ``request`` as the owner's authorization of ``action`` with ``body``.

        Raises:
            PermissionDeniedError: If the envelope names someone other than ``owner``
            AuthenticationError: On a mismatched action or body, a stale
                timestamp, a bad signature or a replayed nonce
        """
        envelope = request.envelope
        now = now or datetime.now(timezone.utc)
        target = body.get("target")

        if envelope.owner != owner:
            logger.warning(f"Rejected {action} on {target}: signed by {envelope.owner}, not the owner")
            raise PermissionDeniedError(f"Only the owner may {action}", target)

        if envelope.action != action:
            raise AuthenticationError(
                f"Signature authorizes {envelope.action}, not {action}", target
            )

        if canonicalize(envelope.body) != canonicalize(body):
            raise AuthenticationError("Signed body does not match the requested change", target)

        timestamp = envelope.timestamp
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        if abs(now - timestamp) > self.max_skew:
            raise AuthenticationError("Signature timestamp outside the allowed window", target)

        if not verify_envelope(envelope, request.signature, owner):
            logger.warning(f"Invalid owner signature for {action} on {target}")
            raise AuthenticationError("Invalid owner signature", target)

        nonce_hash = compute_nonce_hash(owner, envelope.nonce)
        with self._lock:
            self._forget_expired(now)
            if nonce_hash in self._seen:
                raise AuthenticationError("Replayed owner signature", target)
            self._seen[nonce_hash] = timestamp

        logger.debug(f"Authorized {action} on {target} for owner {owner}")

    def _forget_expired(self, now: datetime) -> None:
        expired = [h for h, ts in self._seen.items() if now - ts > self.max_skew]
        for nonce_hash in expired:
            del self._seen[nonce_hash]
