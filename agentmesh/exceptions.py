"""Agent Mesh exception classes.

Every error carries a machine-readable ``code`` and, where one is involved,
the address of the record the operation was acting on.
"""

from typing import Any


class MeshError(Exception):
    """Base exception for all Agent Mesh errors."""

    def __init__(
        self, code: str, message: str, address: Any | None = None
    ) -> None:
        self.code = code
        self.message = message
        self.address = address
        text = f"[{code}] {message}"
        if address is not None:
            text = f"{text} (address={address})"
        super().__init__(text)

    def to_dict(self) -> dict[str, Any]:
        """Return the machine-readable form of the error."""
        return {
            "code": self.code,
            "message": self.message,
            "address": str(self.address) if self.address is not None else None,
        }


class ConfigurationError(MeshError):
    """Raised when mesh configuration is invalid or missing."""

    def __init__(self, message: str) -> None:
        super().__init__("CONFIGURATION_ERROR", message)


class PermissionDeniedError(MeshError):
    """Raised when an agent lacks the permission flag an operation requires."""

    def __init__(self, message: str, address: Any | None = None) -> None:
        super().__init__("PERMISSION_DENIED", message, address)


class NotFoundError(MeshError):
    """Raised when a record or blob does not exist."""

    def __init__(self, message: str, address: Any | None = None) -> None:
        super().__init__("NOT_FOUND", message, address)


class InvalidStateError(MeshError):
    """Raised on an illegal intent status transition or a lost compare-and-set."""

    def __init__(self, message: str, address: Any | None = None) -> None:
        super().__init__("INVALID_STATE", message, address)


class InvalidArgumentError(MeshError):
    """Raised on malformed input."""

    def __init__(self, message: str, address: Any | None = None) -> None:
        super().__init__("INVALID_ARGUMENT", message, address)


class ConflictError(MeshError):
    """Raised when a record already exists at a derived address."""

    def __init__(self, message: str, address: Any | None = None) -> None:
        super().__init__("DUPLICATE_ADDRESS", message, address)


class IntegrityViolationError(MeshError):
    """
    Raised when a recomputed digest does not match the stored digest.

    Always fatal to the current operation. The intent is left in its current
    status so an operator can investigate possible tampering or corruption.
    """

    def __init__(self, message: str, address: Any | None = None) -> None:
        super().__init__("INTEGRITY_VIOLATION", message, address)


class NoProviderConfiguredError(MeshError):
    """Raised when no language-model backend is configured for a profile."""

    def __init__(self, message: str, address: Any | None = None) -> None:
        super().__init__("NO_PROVIDER_CONFIGURED", message, address)


class UnsupportedActionError(MeshError):
    """Raised for an unknown action kind."""

    def __init__(self, message: str, address: Any | None = None) -> None:
        super().__init__("UNSUPPORTED_ACTION", message, address)


class BackendError(MeshError):
    """Base class for failures reported by a language-model backend."""

    pass


class BackendUnavailableError(BackendError):
    """Raised when the backend cannot be reached or rejects the call."""

    def __init__(self, message: str, address: Any | None = None) -> None:
        super().__init__("BACKEND_UNAVAILABLE", message, address)


class BackendTimeoutError(BackendError):
    """Raised when the backend does not answer in time."""

    def __init__(self, message: str, address: Any | None = None) -> None:
        super().__init__("BACKEND_TIMEOUT", message, address)


class RateLimitedError(MeshError):
    """Raised when a model profile's usage caps would be exceeded."""

    def __init__(
        self,
        message: str,
        retry_after: int,
        address: Any | None = None,
    ) -> None:
        super().__init__("RATE_LIMITED", message, address)
        self.retry_after = retry_after

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["retryAfter"] = self.retry_after
        return data


class AuthenticationError(MeshError):
    """Raised when an owner signature is invalid, stale or replayed."""

    def __init__(self, message: str, address: Any | None = None) -> None:
        super().__init__("AUTHENTICATION_FAILED", message, address)


class StorageError(MeshError):
    """Raised when the blob store fails for reasons other than a missing blob."""

    def __init__(self, message: str, address: Any | None = None) -> None:
        super().__init__("STORAGE_ERROR", message, address)
