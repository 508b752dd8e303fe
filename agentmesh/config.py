"""
Agent Mesh configuration.

All settings have working defaults; ``MeshConfig.from_env`` overrides them
from ``AGENTMESH_*`` environment variables.
"""

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from agentmesh.addresses import DEFAULT_DOMAIN, NATIVE_ASSET, Address
from agentmesh.exceptions import BackendUnavailableError, ConfigurationError, InvalidArgumentError


@dataclass
class RetryConfig:
    """
    Retry policy for backend calls made while processing an intent.

    The default is no retry: a failed call moves the intent to FAILED at once.
    Timeouts are not retried unless ``retry_on`` names them.
    """

    max_retries: int = 0
    backoff_factor: float = 2.0
    max_backoff: float = 60.0  # Maximum backoff time in seconds
    jitter: float = 0.1  # Jitter factor (0.1 = ±10%)
    retry_on: tuple[type[Exception], ...] = (BackendUnavailableError,)


@dataclass
class MeshConfig:
    """Settings for an AgentMesh instance."""

    domain: str = DEFAULT_DOMAIN
    poll_interval: float = 5.0
    max_nonce_attempts: int = 8
    backend_timeout: float = 60.0
    retry: RetryConfig = field(default_factory=RetryConfig)
    llm_base_url: str = "https://api.openai.com/v1"
    llm_api_key: str | None = None
    llm_model: str = "gpt-4"
    llm_max_tokens: int = 1000
    blob_base_url: str | None = None
    auth_max_skew: int = 300
    default_payment_asset: Address = NATIVE_ASSET

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "MeshConfig":
        """
        Build a configuration from environment variables.

        Environment variables:
            AGENTMESH_DOMAIN: Address derivation domain (default: agentmesh)
            AGENTMESH_POLL_INTERVAL: Seconds between intent scans (default: 5)
            AGENTMESH_MAX_NONCE_ATTEMPTS: Nonce allocation attempts (default: 8)
            AGENTMESH_BACKEND_TIMEOUT: LLM request timeout in seconds (default: 60)
            AGENTMESH_MAX_RETRIES: Backend retries per intent (default: 0)
            AGENTMESH_BACKOFF_FACTOR: Exponential backoff base (default: 2.0)
            AGENTMESH_LLM_BASE_URL: OpenAI-compatible API root
            AGENTMESH_LLM_API_KEY: API key; enables http(s) provider URIs
            AGENTMESH_LLM_MODEL: Default model (default: gpt-4)
            AGENTMESH_LLM_MAX_TOKENS: Default completion limit (default: 1000)
            AGENTMESH_BLOB_URL: HTTP blob service root (default: in-memory blobs)
            AGENTMESH_AUTH_MAX_SKEW: Allowed owner signature age in seconds (default: 300)
            AGENTMESH_PAYMENT_ASSET: Hex address of the default payment asset

        Raises:
            ConfigurationError: If a variable holds a malformed value
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        def read(name: str, parse: Callable[[str], Any], default: Any) -> Any:
            raw = env.get(f"AGENTMESH_{name}")
            if raw is None or raw == "":
                return default
            try:
                return parse(raw)
            except (ValueError, InvalidArgumentError) as e:
                raise ConfigurationError(f"Invalid AGENTMESH_{name}: {raw!r}") from e

        retry = RetryConfig(
            max_retries=read("MAX_RETRIES", _non_negative_int, defaults.retry.max_retries),
            backoff_factor=read("BACKOFF_FACTOR", _positive_float, defaults.retry.backoff_factor),
        )

        return cls(
            domain=read("DOMAIN", str, defaults.domain),
            poll_interval=read("POLL_INTERVAL", _positive_float, defaults.poll_interval),
            max_nonce_attempts=read(
                "MAX_NONCE_ATTEMPTS", _positive_int, defaults.max_nonce_attempts
            ),
            backend_timeout=read("BACKEND_TIMEOUT", _positive_float, defaults.backend_timeout),
            retry=retry,
            llm_base_url=read("LLM_BASE_URL", str, defaults.llm_base_url),
            llm_api_key=read("LLM_API_KEY", str, defaults.llm_api_key),
            llm_model=read("LLM_MODEL", str, defaults.llm_model),
            llm_max_tokens=read("LLM_MAX_TOKENS", _positive_int, defaults.llm_max_tokens),
            blob_base_url=read("BLOB_URL", str, defaults.blob_base_url),
            auth_max_skew=read("AUTH_MAX_SKEW", _positive_int, defaults.auth_max_skew),
            default_payment_asset=read(
                "PAYMENT_ASSET", Address.from_hex, defaults.default_payment_asset
            ),
        )


def _positive_int(raw: str) -> int:
    value = int(raw)
    if value <= 0:
        raise ValueError(raw)
    return value


def _non_negative_int(raw: str) -> int:
    value = int(raw)
    if value < 0:
        raise ValueError(raw)
    return value


def _positive_float(raw: str) -> float:
    value = float(raw)
    if not value > 0:
        raise ValueError(raw)
    return value
