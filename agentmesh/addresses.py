"""
Deterministic address derivation for agents, model profiles and intents.

An address is derived from a namespace and an ordered list of seeds. Every
component is length-prefixed before hashing so that neither the seed order
nor the namespace boundary can be shifted to produce a collision. Candidates
are searched from bump 255 downwards and the first one that is not a valid
Ed25519 point is taken, which guarantees that no private key exists for a
record address.
"""

import hashlib
from collections.abc import Sequence
from dataclasses import dataclass

from agentmesh.exceptions import InvalidArgumentError

ADDRESS_SIZE = 32
PROFILE_ID_SIZE = 16
NONCE_SIZE = 8
MAX_NONCE = 2**64 - 1

AGENT_NAMESPACE = "agent"
MODEL_PROFILE_NAMESPACE = "model_profile"
INTENT_NAMESPACE = "intent"

DEFAULT_DOMAIN = "agentmesh"
_DERIVATION_MARKER = b"ProgramDerivedAddress"

# Curve25519 field prime and Edwards curve constant d = -121665/121666
_P = 2**255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P
_SQRT_M1 = pow(2, (_P - 1) // 4, _P)


@dataclass(frozen=True)
class Address:
    """A 32-byte identity or record address."""

    raw: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.raw, bytes) or len(self.raw) != ADDRESS_SIZE:
            raise InvalidArgumentError(
                f"Address must be {ADDRESS_SIZE} bytes, got {self.raw!r:.80}"
            )

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return self.raw.hex()

    def __repr__(self) -> str:
        return f"Address({self.raw.hex()})"

    @classmethod
    def from_hex(cls, value: str) -> "Address":
        """Parse a hex-encoded address."""
        try:
            raw = bytes.fromhex(value)
        except (TypeError, ValueError) as e:
            raise InvalidArgumentError(f"Invalid address hex: {value!r}") from e
        return cls(raw)

    @classmethod
    def coerce(cls, value: "Address | bytes | str") -> "Address":
        """Accept an Address, raw bytes or a hex string."""
        if isinstance(value, Address):
            return value
        if isinstance(value, bytes):
            return cls(value)
        if isinstance(value, str):
            return cls.from_hex(value)
        raise InvalidArgumentError(f"Cannot interpret {type(value).__name__} as an address")


NATIVE_ASSET = Address(bytes(ADDRESS_SIZE))


def is_on_curve(data: bytes) -> bool:
    """
    Return True if ``data`` decodes to a point on the Ed25519 curve.

    Follows the point decoding procedure of RFC 8032, section 5.1.3.
    """
    if len(data) != ADDRESS_SIZE:
        return False

    encoded = int.from_bytes(data, "little")
    x_sign = encoded >> 255
    y = (encoded & ((1 << 255) - 1)) % _P

    y2 = y * y % _P
    u = (y2 - 1) % _P
    v = (_D * y2 + 1) % _P
    x2 = u * pow(v, _P - 2, _P) % _P

    if x2 == 0:
        return x_sign == 0

    x = pow(x2, (_P + 3) // 8, _P)
    if (x * x - x2) % _P != 0:
        x = x * _SQRT_M1 % _P
    return (x * x - x2) % _P == 0


def encode_nonce(nonce: int) -> bytes:
    """
    Encode an intent nonce as exactly 8 big-endian bytes.

    Raises:
        InvalidArgumentError: If the nonce is not an integer in [0, 2**64)
    """
    if isinstance(nonce, bool) or not isinstance(nonce, int):
        raise InvalidArgumentError(f"Nonce must be an integer, got {type(nonce).__name__}")
    if not 0 <= nonce <= MAX_NONCE:
        raise InvalidArgumentError(f"Nonce out of range: {nonce}")
    return nonce.to_bytes(NONCE_SIZE, "big")


class AddressDeriver:
    """
    Derives record addresses within one deployment domain.

    The domain plays the part of the owning program: the same seeds under a
    different domain yield unrelated addresses.
    """

    def __init__(self, domain: str = DEFAULT_DOMAIN) -> None:
        self.domain = domain
        self.domain_id = hashlib.sha256(domain.encode("utf-8")).digest()

    def derive(self, namespace: str, seeds: Sequence[bytes]) -> tuple[Address, int]:
        """
        Derive the address and bump for a namespace and ordered seeds.

        Args:
            namespace: Record namespace (e.g., "agent", "intent")
            seeds: Ordered seed byte strings

        Returns:
            Tuple of (address, bump)
        """
        for bump in range(255, -1, -1):
            candidate = self._hash(namespace, seeds, bump)
            if not is_on_curve(candidate):
                return Address(candidate), bump

        # Each candidate lands on the curve with probability ~1/2; never seen in practice
        raise InvalidArgumentError(f"No off-curve address for namespace {namespace!r}")

    def create_address(self, namespace: str, seeds: Sequence[bytes], bump: int) -> Address:
        """
        Recompute the address for a known bump.

        Raises:
            InvalidArgumentError: If the bump is out of range or the candidate
                is a valid curve point
        """
        if not 0 <= bump <= 255:
            raise InvalidArgumentError(f"Bump out of range: {bump}")
        candidate = self._hash(namespace, seeds, bump)
        if is_on_curve(candidate):
            raise InvalidArgumentError(f"Bump {bump} yields an on-curve address")
        return Address(candidate)

    def verify(
        self, address: Address, namespace: str, seeds: Sequence[bytes], bump: int
    ) -> bool:
        """Check that ``address`` was derived from the namespace, seeds and bump."""
        try:
            return self.create_address(namespace, seeds, bump) == address
        except InvalidArgumentError:
            return False

    def agent_address(self, owner: Address) -> tuple[Address, int]:
        """Address of the agent record controlled by ``owner``."""
        return self.derive(AGENT_NAMESPACE, [bytes(owner)])

    def model_profile_address(
        self, owner: Address, profile_id: bytes
    ) -> tuple[Address, int]:
        """Address of one of ``owner``'s model profiles."""
        if not isinstance(profile_id, bytes) or len(profile_id) != PROFILE_ID_SIZE:
            raise InvalidArgumentError(f"Profile id must be {PROFILE_ID_SIZE} bytes")
        return self.derive(MODEL_PROFILE_NAMESPACE, [bytes(owner), profile_id])

    def intent_address(
        self, from_agent: Address, to_agent: Address, nonce: int
    ) -> tuple[Address, int]:
        """Address of the intent ``from_agent -> to_agent`` with ``nonce``."""
        return self.derive(
            INTENT_NAMESPACE, [bytes(from_agent), bytes(to_agent), encode_nonce(nonce)]
        )

    def _hash(self, namespace: str, seeds: Sequence[bytes], bump: int) -> bytes:
        h = hashlib.sha256()
        for part in (namespace.encode("utf-8"), *seeds, bytes([bump])):
            if not isinstance(part, (bytes, bytearray)):
                raise InvalidArgumentError(
                    f"Seeds must be bytes, got {type(part).__name__}"
                )
            h.update(len(part).to_bytes(8, "big"))
            h.update(part)
        h.update(self.domain_id)
        h.update(_DERIVATION_MARKER)
        return h.digest()
