"""
Language-model backends and the provider router.

The router maps a model profile address to the backend that fulfills intents
for agents using that profile. It performs no retries; retry policy belongs
to the coordinator.
"""

import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any
from urllib.parse import urlsplit

import httpx

from agentmesh.addresses import Address
from agentmesh.exceptions import (
    BackendTimeoutError,
    BackendUnavailableError,
    NoProviderConfiguredError,
)
from agentmesh.logging import get_logger, log_backend_request, log_backend_response

logger = get_logger("providers")

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4"
DEFAULT_MAX_TOKENS = 1000


class Backend(ABC):
    """A language-model backend: ``invoke(prompt, options) -> text``."""

    name: str = "backend"

    @abstractmethod
    def invoke(self, prompt: str, options: dict[str, Any] | None = None) -> str:
        """
        Send ``prompt`` to the model and return its text response.

        Raises:
            BackendUnavailableError: If the backend cannot serve the call
            BackendTimeoutError: If the backend does not answer in time
        """
        pass

    def close(self) -> None:
        pass


class CallableBackend(Backend):
    """Adapts a plain ``fn(prompt, options) -> str`` into a backend."""

    def __init__(
        self, fn: Callable[[str, dict[str, Any]], str], name: str = "callable"
    ) -> None:
        self._fn = fn
        self.name = name

    def invoke(self, prompt: str, options: dict[str, Any] | None = None) -> str:
        return self._fn(prompt, options or {})


class OpenAICompatibleBackend(Backend):
    """
    Backend speaking the OpenAI chat completions API.

    ``options`` may override ``model`` and ``max_tokens`` per call.

    Example:
        ```python
        backend = OpenAICompatibleBackend(api_key=os.environ["OPENAI_API_KEY"])
        text = backend.invoke("Summarize the SOL/USDC order book")
        ```
    """

    name = "openai"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_OPENAI_BASE_URL,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Args:
            api_key: Bearer token for the API
            base_url: API root (e.g., "https://api.openai.com/v1")
            model: Default model name
            max_tokens: Default completion token limit
            timeout: Request timeout in seconds
            transport: Optional httpx transport (e.g. ``httpx.MockTransport`` in tests)
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.max_tokens = max_tokens
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
        )

    def close(self) -> None:
        self._client.close()

    def invoke(self, prompt: str, options: dict[str, Any] | None = None) -> str:
        options = options or {}
        body = {
            "model": options.get("model") or self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": options.get("max_tokens") or self.max_tokens,
        }
        url = f"{self.base_url}/chat/completions"
        log_backend_request(self.name, url, dict(self._client.headers), body)

        start = time.monotonic()
        try:
            response = self._client.post("/chat/completions", json=body)
        except httpx.TimeoutException as e:
            log_backend_response(self.name, error=f"timeout: {e}")
            raise BackendTimeoutError(f"{self.name} timed out: {e}") from e
        except httpx.RequestError as e:
            log_backend_response(self.name, error=str(e))
            raise BackendUnavailableError(f"{self.name} unreachable: {e}") from e

        elapsed_ms = (time.monotonic() - start) * 1000
        log_backend_response(self.name, response.status_code, elapsed_ms)

        if response.status_code >= 400:
            raise BackendUnavailableError(
                f"{self.name} returned HTTP {response.status_code}"
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise BackendUnavailableError(f"{self.name} returned a malformed response") from e
        if not isinstance(content, str):
            raise BackendUnavailableError(f"{self.name} returned non-text content")
        return content


BackendFactory = Callable[[str], Backend]


class ProviderRouter:
    """
    Routes model profile addresses to backends.

    Backends are either registered per profile, or built on first use by a
    factory registered for the scheme of the profile's provider URI.
    """

    def __init__(self) -> None:
        self._backends: dict[Address, Backend] = {}
        self._factories: dict[str, BackendFactory] = {}
        self._built: dict[str, Backend] = {}
        self._lock = threading.Lock()

    def register(self, profile_address: Address, backend: Backend) -> None:
        with self._lock:
            self._backends[Address.coerce(profile_address)] = backend
        logger.info(f"Registered backend {backend.name} for profile {profile_address}")

    def unregister(self, profile_address: Address) -> Backend | None:
        with self._lock:
            return self._backends.pop(Address.coerce(profile_address), None)

    def register_factory(self, scheme: str, factory: BackendFactory) -> None:
        """Build backends for provider URIs with ``scheme`` (e.g. "https")."""
        with self._lock:
            self._factories[scheme.lower()] = factory

    def resolve(self, profile_address: Address, provider_uri: str | None = None) -> Backend:
        """
        Return the backend for a model profile.

        Raises:
            NoProviderConfiguredError: If neither a registered backend nor a
                factory for the provider URI's scheme exists
        """
        profile_address = Address.coerce(profile_address)
        with self._lock:
            backend = self._backends.get(profile_address)
            if backend is not None:
                return backend

            if provider_uri:
                backend = self._built.get(provider_uri)
                if backend is not None:
                    return backend
                factory = self._factories.get(urlsplit(provider_uri).scheme.lower())
                if factory is not None:
                    backend = factory(provider_uri)
                    self._built[provider_uri] = backend
                    return backend

        raise NoProviderConfiguredError(
            "No backend configured for model profile", profile_address
        )

    def close(self) -> None:
        """Close every backend the router holds."""
        with self._lock:
            backends = {id(b): b for b in [*self._backends.values(), *self._built.values()]}
            self._backends.clear()
            self._built.clear()
        for backend in backends.values():
            backend.close()
