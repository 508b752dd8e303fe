"""
Content-integrity digests for intent payloads and results.

A body is encoded with JCS (RFC 8785) and hashed with SHA-256. The same
flow the signing module uses for envelopes: canonicalize -> encode -> hash.
"""

import hashlib
import hmac
from typing import Any

from agentmesh.canonicalize import canonicalize
from agentmesh.exceptions import IntegrityViolationError, InvalidArgumentError

DIGEST_SIZE = 32


def is_empty(body: Any) -> bool:
    """Return True for bodies that carry no content."""
    if body is None:
        return True
    return isinstance(body, (str, dict, list, tuple)) and len(body) == 0


def encode_body(body: Any) -> bytes:
    """
    Serialize a structured body to its canonical byte form.

    Args:
        body: A non-empty JSON-compatible value

    Returns:
        UTF-8 encoded canonical JSON

    Raises:
        InvalidArgumentError: If the body is empty, not JSON-compatible or
            nested too deeply to encode
    """
    if is_empty(body):
        raise InvalidArgumentError("Payload must not be empty")
    try:
        return canonicalize(body).encode("utf-8")
    except (TypeError, ValueError, RecursionError) as e:
        raise InvalidArgumentError(f"Payload is not canonicalizable: {e}") from e


def digest_bytes(data: bytes) -> bytes:
    """Return the 32-byte SHA-256 digest of already-encoded bytes."""
    return hashlib.sha256(data).digest()


def digest(body: Any) -> bytes:
    """Return the 32-byte digest of a structured body."""
    return digest_bytes(encode_body(body))


def verify_bytes(data: bytes, expected: bytes) -> bool:
    """Recompute the digest of ``data`` and compare it in constant time."""
    return hmac.compare_digest(digest_bytes(data), expected)


def verify(body: Any, expected: bytes) -> bool:
    """
    Check that a body hashes to ``expected``.

    Bodies that cannot be encoded never verify.
    """
    try:
        encoded = encode_body(body)
    except InvalidArgumentError:
        return False
    return verify_bytes(encoded, expected)


def require_digest(data: bytes, expected: bytes, address: Any | None = None) -> None:
    """
    Raise if ``data`` does not hash to ``expected``.

    Raises:
        IntegrityViolationError: On mismatch
    """
    if not verify_bytes(data, expected):
        raise IntegrityViolationError(
            f"Digest mismatch: expected {expected.hex()}, got {digest_bytes(data).hex()}",
            address,
        )
