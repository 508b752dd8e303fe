"""
Payload and result blob stores.

Locators are opaque URIs. Both implementations name a blob by the SHA-256 of
its bytes, so storing the same bytes twice yields the same locator.
"""

import hashlib
import threading
from abc import ABC, abstractmethod
from typing import Any

import httpx

from agentmesh.exceptions import InvalidArgumentError, NotFoundError, StorageError
from agentmesh.logging import get_logger

logger = get_logger("blobs")


class BlobStore(ABC):
    """Blob store boundary: ``store(bytes) -> locator``, ``fetch(locator) -> bytes``."""

    @abstractmethod
    def store(self, data: bytes) -> str:
        pass

    @abstractmethod
    def fetch(self, locator: str) -> bytes:
        """
        Return the bytes behind ``locator``.

        Raises:
            NotFoundError: If nothing is stored under ``locator``
            StorageError: If the store cannot be read
        """
        pass

    def close(self) -> None:
        pass

    def __enter__(self) -> "BlobStore":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class InMemoryBlobStore(BlobStore):
    """Content-addressed in-memory blobs under ``mem://blobs/<sha256hex>``."""

    PREFIX = "mem://blobs/"

    def __init__(self) -> None:
        self._blobs: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def store(self, data: bytes) -> str:
        if not isinstance(data, bytes):
            raise InvalidArgumentError("Blob data must be bytes")
        locator = self.PREFIX + hashlib.sha256(data).hexdigest()
        with self._lock:
            self._blobs[locator] = data
        return locator

    def fetch(self, locator: str) -> bytes:
        with self._lock:
            data = self._blobs.get(locator)
        if data is None:
            raise NotFoundError(f"No blob at {locator}")
        return data

    def overwrite(self, locator: str, data: bytes) -> None:
        """Replace the bytes behind an existing locator, bypassing content addressing."""
        with self._lock:
            if locator not in self._blobs:
                raise NotFoundError(f"No blob at {locator}")
            self._blobs[locator] = data

    def __len__(self) -> int:
        with self._lock:
            return len(self._blobs)


class HTTPBlobStore(BlobStore):
    """
    Blob store backed by an HTTP service.

    Blobs are written with ``PUT {base_url}/blobs/<sha256hex>`` and read back
    with ``GET <locator>``.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Args:
            base_url: Root URL of the blob service
            timeout: Request timeout in seconds
            transport: Optional httpx transport (e.g. ``httpx.MockTransport`` in tests)
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def close(self) -> None:
        self._client.close()

    def store(self, data: bytes) -> str:
        if not isinstance(data, bytes):
            raise InvalidArgumentError("Blob data must be bytes")
        locator = f"{self.base_url}/blobs/{hashlib.sha256(data).hexdigest()}"
        response = self._request(
            "PUT",
            locator,
            content=data,
            headers={"Content-Type": "application/octet-stream"},
        )
        if response.status_code >= 400:
            raise StorageError(f"Blob store rejected write: HTTP {response.status_code}")
        return locator

    def fetch(self, locator: str) -> bytes:
        response = self._request("GET", locator)
        if response.status_code == 404:
            raise NotFoundError(f"No blob at {locator}")
        if response.status_code >= 400:
            raise StorageError(f"Blob fetch failed: HTTP {response.status_code}")
        return response.content

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.warning(f"Blob store {method} {url} failed: {e}")
            raise StorageError(f"Blob store unreachable: {e}") from e
