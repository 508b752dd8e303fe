"""
Owner signers for Agent Mesh.

An owner identity is the raw 32-byte Ed25519 public key of the signer, so any
``Address`` that came from a signer can verify that signer's signatures.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ed25519

from agentmesh.addresses import Address


class Signer(ABC):
    """Abstract base class for owner signers."""

    @abstractmethod
    def sign(self, message: bytes) -> bytes:
        """Sign a message and return the signature bytes."""
        pass

    @abstractmethod
    def address(self) -> Address:
        """Return the identity this signer controls."""
        pass

    @classmethod
    @abstractmethod
    def from_pem_file(cls, path: str | Path) -> "Signer":
        """Load a signer from a PEM file."""
        pass

    @classmethod
    @abstractmethod
    def from_pem(cls, pem_string: str) -> "Signer":
        """Load a signer from a PEM string."""
        pass

    @classmethod
    @abstractmethod
    def generate(cls) -> tuple["Signer", Address]:
        """Generate a new keypair, returning (signer, identity)."""
        pass


class Ed25519Signer(Signer):
    """Ed25519 owner signer."""

    def __init__(self, private_key: ed25519.Ed25519PrivateKey) -> None:
        self._private_key = private_key
        self._public_key = private_key.public_key()

    def sign(self, message: bytes) -> bytes:
        """
        Sign a message using Ed25519.

        Args:
            message: The message bytes to sign

        Returns:
            64-byte Ed25519 signature
        """
        return self._private_key.sign(message)

    def address(self) -> Address:
        return Address(self.public_key_bytes())

    def public_key_bytes(self) -> bytes:
        """Return the raw 32-byte public key."""
        return self._public_key.public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    def public_key_pem(self) -> str:
        return self._public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        ).decode()

    def private_key_pem(self) -> str:
        """Return the private key in PEM format (for storage)."""
        return self._private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode()

    @classmethod
    def from_pem_file(cls, path: str | Path) -> "Ed25519Signer":
        return cls.from_pem(Path(path).read_text())

    @classmethod
    def from_pem(cls, pem_string: str) -> "Ed25519Signer":
        """
        Load an Ed25519 signer from a PEM string.

        Raises:
            TypeError: If the PEM holds a key of another algorithm
        """
        private_key = serialization.load_pem_private_key(
            pem_string.encode(), password=None
        )

        if not isinstance(private_key, ed25519.Ed25519PrivateKey):
            raise TypeError(f"Expected Ed25519 private key, got {type(private_key).__name__}")

        return cls(private_key)

    @classmethod
    def from_bytes(cls, key_bytes: bytes) -> "Ed25519Signer":
        """
        Load an Ed25519 signer from raw 32-byte private key.

        Args:
            key_bytes: 32-byte Ed25519 private key seed
        """
        if len(key_bytes) != 32:
            raise ValueError(f"Ed25519 private key must be 32 bytes, got {len(key_bytes)}")

        return cls(ed25519.Ed25519PrivateKey.from_private_bytes(key_bytes))

    @classmethod
    def generate(cls) -> tuple["Ed25519Signer", Address]:
        signer = cls(ed25519.Ed25519PrivateKey.generate())
        return signer, signer.address()

    def verify(self, signature: bytes, message: bytes) -> bool:
        try:
            self._public_key.verify(signature, message)
            return True
        except InvalidSignature:
            return False
