"""
Property-based tests for owner signers.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from agentmesh.addresses import Address
from agentmesh.signers import Ed25519Signer


@given(message=st.binary(min_size=1, max_size=1000))
@settings(max_examples=100)
def test_ed25519_key_loading_round_trip(message: bytes) -> None:
    """
    Property 1: Ed25519 key loading round-trip

    A signer reloaded from its PEM export verifies the original's
    signatures, and controls the same identity.
    """
    signer, identity = Ed25519Signer.generate()
    loaded_signer = Ed25519Signer.from_pem(signer.private_key_pem())

    assert loaded_signer.verify(signer.sign(message), message)
    assert signer.verify(loaded_signer.sign(message), message)
    assert loaded_signer.address() == identity


@given(seed=st.binary(min_size=32, max_size=32))
@settings(max_examples=100)
def test_ed25519_from_bytes_is_deterministic(seed: bytes) -> None:
    first = Ed25519Signer.from_bytes(seed)
    second = Ed25519Signer.from_bytes(seed)

    assert first.address() == second.address()
    assert first.sign(b"msg") == second.sign(b"msg")


def test_identity_is_raw_public_key() -> None:
    signer, identity = Ed25519Signer.generate()

    assert isinstance(identity, Address)
    assert bytes(identity) == signer.public_key_bytes()


def test_signature_length() -> None:
    signer, _ = Ed25519Signer.generate()

    assert len(signer.sign(b"message")) == 64


def test_tampered_message_does_not_verify() -> None:
    signer, _ = Ed25519Signer.generate()
    signature = signer.sign(b"message")

    assert not signer.verify(signature, b"messagf")
    assert not signer.verify(b"\x00" * 64, b"message")


def test_from_bytes_rejects_wrong_length() -> None:
    with pytest.raises(ValueError):
        Ed25519Signer.from_bytes(b"\x00" * 31)


def test_from_pem_file(tmp_path) -> None:
    signer, identity = Ed25519Signer.generate()
    path = tmp_path / "owner.pem"
    path.write_text(signer.private_key_pem())

    assert Ed25519Signer.from_pem_file(path).address() == identity
    assert Ed25519Signer.from_pem_file(str(path)).address() == identity


def test_public_key_pem_is_spki() -> None:
    signer, _ = Ed25519Signer.generate()

    assert signer.public_key_pem().startswith("-----BEGIN PUBLIC KEY-----")
