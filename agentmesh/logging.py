"""
Agent Mesh logging utilities.

Configurable logging for intent transitions, backend calls and owner
signature checks. API keys, bearer tokens, private keys and full signatures
are never written to a log record.
"""

import logging
import re
from typing import Any

_mesh_logger = logging.getLogger("agentmesh")
_coordinator_logger = logging.getLogger("agentmesh.coordinator")
_provider_logger = logging.getLogger("agentmesh.providers")
_auth_logger = logging.getLogger("agentmesh.auth")

# Patterns for sensitive data that should be masked
_SENSITIVE_PATTERNS = [
    # Private key patterns (PEM format)
    (re.compile(r"-----BEGIN[^-]*PRIVATE KEY-----.*?-----END[^-]*PRIVATE KEY-----", re.DOTALL), "[PRIVATE_KEY_REDACTED]"),
    # Authorization headers
    (re.compile(r"Bearer\s+[A-Za-z0-9._~+/=-]+"), "Bearer [REDACTED]"),
    # OpenAI-style API keys
    (re.compile(r"sk-[A-Za-z0-9_-]{8,}"), "[API_KEY_REDACTED]"),
    # Base64 signatures (64-byte Ed25519 signature = 88 base64 chars)
    (re.compile(r'"signature"\s*:\s*"[A-Za-z0-9+/=]{64,}"'), '"signature": "[SIGNATURE_REDACTED]"'),
    # Private key bytes in hex
    (re.compile(r"private_key['\"]?\s*[:=]\s*['\"]?[a-fA-F0-9]{64}['\"]?"), "private_key: [REDACTED]"),
    # Secret/token patterns
    (re.compile(r"(secret|token|password|api_key)['\"]?\s*[:=]\s*['\"][^'\"]+['\"]", re.IGNORECASE), r"\1: [REDACTED]"),
]

_DEFAULT_SENSITIVE_KEYS = frozenset(
    {"signature", "private_key", "secret", "token", "password", "api_key", "authorization"}
)

_PREVIEW_LENGTH = 8


def configure_logging(
    level: int = logging.INFO,
    coordinator_level: int | None = None,
    provider_level: int | None = None,
    auth_level: int | None = None,
    handler: logging.Handler | None = None,
    format_string: str | None = None,
) -> None:
    """
    Configure Agent Mesh logging.

    Args:
        level: Default log level for all mesh loggers (default: INFO)
        coordinator_level: Log level for intent transitions (default: same as level)
        provider_level: Log level for backend calls (default: same as level)
        auth_level: Log level for owner signature checks (default: same as level)
        handler: Custom handler to use (default: StreamHandler to stderr)
        format_string: Custom format string (default: includes timestamp, level, logger name)

    Example:
        ```python
        import logging
        from agentmesh.logging import configure_logging

        # Trace every backend request
        configure_logging(level=logging.INFO, provider_level=logging.DEBUG)
        ```
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    if handler is None:
        handler = logging.StreamHandler()

    handler.setFormatter(logging.Formatter(format_string))

    _mesh_logger.setLevel(level)
    _mesh_logger.addHandler(handler)

    _coordinator_logger.setLevel(coordinator_level if coordinator_level is not None else level)
    _provider_logger.setLevel(provider_level if provider_level is not None else level)
    _auth_logger.setLevel(auth_level if auth_level is not None else level)


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get an Agent Mesh logger.

    Args:
        name: Logger name suffix (e.g., "coordinator", "providers"). If None,
            returns the main mesh logger.
    """
    if name is None:
        return _mesh_logger
    return logging.getLogger(f"agentmesh.{name}")


def mask_sensitive_data(text: str) -> str:
    """
    Mask sensitive data in a string.

    Replaces private keys, API keys, bearer tokens, full signatures and other
    sensitive patterns with redacted placeholders.
    """
    result = text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def truncate_digest(value: bytes | str | None) -> str:
    """
    Shorten a digest or signature for log output, e.g. ``"1a2b3c4d...9e8f7a6b"``.

    Values too short to truncate are fully redacted.
    """
    if value is None:
        return "none"
    text = value.hex() if isinstance(value, bytes) else value
    if len(text) <= _PREVIEW_LENGTH * 2:
        return "[REDACTED]"
    return f"{text[:_PREVIEW_LENGTH]}...{text[-_PREVIEW_LENGTH:]}"


def safe_log_dict(
    data: dict[str, Any], sensitive_keys: set[str] | frozenset[str] | None = None
) -> dict[str, Any]:
    """
    Create a copy of a dictionary with sensitive values masked.

    Args:
        data: Dictionary that may contain sensitive values
        sensitive_keys: Keys to mask (default: signature, private_key, secret,
            token, password, api_key, authorization)

    Returns:
        Dictionary with sensitive values replaced with "[REDACTED]"
    """
    if sensitive_keys is None:
        sensitive_keys = _DEFAULT_SENSITIVE_KEYS

    result: dict[str, Any] = {}
    for key, value in data.items():
        key_lower = key.lower()
        if any(sk in key_lower for sk in sensitive_keys):
            if isinstance(value, str) and key_lower == "signature":
                result[key] = truncate_digest(value)
            else:
                result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = safe_log_dict(value, sensitive_keys)
        elif isinstance(value, list):
            result[key] = [
                safe_log_dict(item, sensitive_keys) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            result[key] = value

    return result


def log_transition(
    address: Any,
    from_status: str,
    to_status: str,
    reason: str | None = None,
) -> None:
    """Log an intent status transition at INFO level."""
    if not _coordinator_logger.isEnabledFor(logging.INFO):
        return

    message = f"Intent {address}: {from_status} -> {to_status}"
    if reason:
        message = f"{message} | reason={mask_sensitive_data(reason)}"
    _coordinator_logger.info(message)


def log_backend_request(
    backend: str,
    url: str | None = None,
    headers: dict[str, str] | None = None,
    body: dict[str, Any] | None = None,
) -> None:
    """Log an outgoing backend call at DEBUG level with secrets masked."""
    if not _provider_logger.isEnabledFor(logging.DEBUG):
        return

    log_parts = [f"{backend} request"]
    if url:
        log_parts.append(f"url={url}")
    if headers:
        log_parts.append(f"headers={safe_log_dict(headers)}")
    if body:
        log_parts.append(f"body={safe_log_dict(body)}")

    _provider_logger.debug(" | ".join(log_parts))


def log_backend_response(
    backend: str,
    status_code: int | None = None,
    elapsed_ms: float | None = None,
    error: str | None = None,
) -> None:
    """Log a backend outcome at DEBUG level."""
    if not _provider_logger.isEnabledFor(logging.DEBUG):
        return

    log_parts = [f"{backend} response"]
    if status_code is not None:
        log_parts.append(f"status={status_code}")
    if elapsed_ms is not None:
        log_parts.append(f"elapsed={elapsed_ms:.2f}ms")
    if error:
        log_parts.append(f"error={mask_sensitive_data(error)}")

    _provider_logger.debug(" | ".join(log_parts))


def log_signing_operation(
    operation: str,
    owner: Any,
    action: str,
    nonce: str | None = None,
) -> None:
    """
    Log an owner signing or verification at DEBUG level.

    Args:
        operation: Operation type (e.g., "sign_envelope", "verify_envelope")
        owner: Owner identity
        action: Action being signed
        nonce: Nonce value (optional, only a prefix is logged)
    """
    if not _auth_logger.isEnabledFor(logging.DEBUG):
        return

    log_parts = [f"{operation}: owner={owner}, action={action}"]
    if nonce:
        log_parts.append(f"nonce={nonce[:8]}...")

    _auth_logger.debug(" | ".join(log_parts))


__all__ = [
    "configure_logging",
    "get_logger",
    "mask_sensitive_data",
    "truncate_digest",
    "safe_log_dict",
    "log_transition",
    "log_backend_request",
    "log_backend_response",
    "log_signing_operation",
]
