"""
Wascap key identities.

Role-tagged Ed25519 key pairs with a checksummed, human-readable encoding.

Encoded public key::

    base32( role_prefix | 32-byte public key | crc16 )    e.g. "ADQ2...", "MBX7..."

Encoded seed::

    base32( seed_prefix | role bits | 32-byte seed | crc16 )   e.g. "SAAB...", "SMAK..."

Base32 is RFC 4648, uppercase, without padding. The CRC is CRC-16/XMODEM,
appended little-endian. The leading character of an encoded public key is
the role letter, so a User key can never be mistaken for an Account key.
"""

import base64
import binascii
import secrets
from enum import Enum
from typing import Iterable, Optional, Union

from nacl.exceptions import BadSignatureError
from nacl.public import PrivateKey as CurvePrivateKey
from nacl.signing import SigningKey, VerifyKey

from .constants import (
    CRC_LENGTH,
    KEY_LENGTH,
    PREFIX_BYTE_ACCOUNT,
    PREFIX_BYTE_CLUSTER,
    PREFIX_BYTE_CURVE,
    PREFIX_BYTE_MODULE,
    PREFIX_BYTE_OPERATOR,
    PREFIX_BYTE_SEED,
    PREFIX_BYTE_SERVER,
    PREFIX_BYTE_USER,
    SIGNATURE_LENGTH,
)
from .errors import KeyDecodeError, KeyRoleError, NoPrivateKeyError, SignerRoleError


class KeyRole(str, Enum):
    """What a key is permitted to represent."""
    ACCOUNT = "account"
    CLUSTER = "cluster"
    MODULE = "module"
    SERVER = "server"
    OPERATOR = "operator"
    USER = "user"
    CURVE = "curve"


ROLE_PREFIXES = {
    KeyRole.ACCOUNT: PREFIX_BYTE_ACCOUNT,
    KeyRole.CLUSTER: PREFIX_BYTE_CLUSTER,
    KeyRole.MODULE: PREFIX_BYTE_MODULE,
    KeyRole.SERVER: PREFIX_BYTE_SERVER,
    KeyRole.OPERATOR: PREFIX_BYTE_OPERATOR,
    KeyRole.USER: PREFIX_BYTE_USER,
    KeyRole.CURVE: PREFIX_BYTE_CURVE,
}

PREFIX_ROLES = {prefix: role for role, prefix in ROLE_PREFIXES.items()}

# Roles allowed to issue (sign) capability tokens
ISSUER_ROLES = frozenset({KeyRole.ACCOUNT, KeyRole.OPERATOR})


def crc16(data: bytes) -> int:
    """CRC-16/XMODEM (polynomial 0x1021, initial value 0)."""
    crc = 0
    for byte in data:
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return crc


def _coerce_role(role: Union[KeyRole, str]) -> KeyRole:
    try:
        return KeyRole(role)
    except ValueError as exc:
        raise ValueError(f"Unknown key role: {role!r}") from exc


def _encode_checked(raw: bytes) -> str:
    checksum = crc16(raw).to_bytes(CRC_LENGTH, "little")
    return base64.b32encode(raw + checksum).decode("ascii").rstrip("=")


def _decode_checked(text: str, expected_length: int) -> bytes:
    """Decode base32 text, verify its CRC and return the bytes before it."""
    if not isinstance(text, str) or not text:
        raise KeyDecodeError("encoded key must be a non-empty string")
    padded = text + "=" * (-len(text) % 8)
    try:
        raw = base64.b32decode(padded.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise KeyDecodeError(f"invalid base32 encoding: {exc}") from exc

    if len(raw) != expected_length + CRC_LENGTH:
        raise KeyDecodeError(
            f"invalid encoded length: expected {expected_length + CRC_LENGTH} bytes, got {len(raw)}"
        )

    body, checksum = raw[:-CRC_LENGTH], raw[-CRC_LENGTH:]
    if crc16(body) != int.from_bytes(checksum, "little"):
        raise KeyDecodeError("checksum mismatch")
    return body


def _check_roles(role: KeyRole, expected_roles: Optional[Iterable[KeyRole]]) -> None:
    if expected_roles is None:
        return
    allowed = {_coerce_role(r) for r in expected_roles}
    if role not in allowed:
        names = ", ".join(sorted(r.value for r in allowed))
        raise KeyRoleError(role.value, f"key role {role.value!r} not allowed here (expected {names})")


class KeyPair:
    """
    Immutable role-tagged key identity.

    Holds the public key and, when generated or rebuilt from a seed, the
    32-byte private seed. Identities built from an encoded public key alone
    can verify but not sign.

    Two identities are equal when both role and public key are equal.
    """

    __slots__ = ("_role", "_public_key", "_seed")

    def __init__(self, role: Union[KeyRole, str], public_key: bytes, seed: Optional[bytes] = None):
        role = _coerce_role(role)
        if len(public_key) != KEY_LENGTH:
            raise ValueError(f"public key must be {KEY_LENGTH} bytes")
        if seed is not None and len(seed) != KEY_LENGTH:
            raise ValueError(f"seed must be {KEY_LENGTH} bytes")
        self._role = role
        self._public_key = bytes(public_key)
        self._seed = bytes(seed) if seed is not None else None

    # ------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------

    @classmethod
    def from_raw_seed(cls, role: Union[KeyRole, str], seed: bytes) -> "KeyPair":
        """Derive the public key for ``role`` from a raw 32-byte seed."""
        role = _coerce_role(role)
        if len(seed) != KEY_LENGTH:
            raise ValueError(f"seed must be {KEY_LENGTH} bytes")
        if role is KeyRole.CURVE:
            public_key = bytes(CurvePrivateKey(seed).public_key)
        else:
            public_key = bytes(SigningKey(seed).verify_key)
        return cls(role, public_key, seed)

    @classmethod
    def generate(cls, role: Union[KeyRole, str]) -> "KeyPair":
        """Generate a fresh identity from a cryptographically secure seed."""
        return cls.from_raw_seed(role, secrets.token_bytes(KEY_LENGTH))

    @classmethod
    def from_seed(cls, encoded_seed: str) -> "KeyPair":
        """
        Rebuild an identity from its encoded seed.

        Raises:
            KeyDecodeError: bad checksum, bad length, not a seed, or unknown role
        """
        body = _decode_checked(encoded_seed, 2 + KEY_LENGTH)
        if body[0] & 0xF8 != PREFIX_BYTE_SEED:
            raise KeyDecodeError("not an encoded seed")
        role_prefix = ((body[0] & 0x07) << 5) | ((body[1] & 0xF8) >> 3)
        role = PREFIX_ROLES.get(role_prefix)
        if role is None:
            raise KeyDecodeError(f"unknown role prefix byte {role_prefix}")
        return cls.from_raw_seed(role, body[2:])

    @classmethod
    def from_public_key(
        cls,
        encoded: str,
        expected_roles: Optional[Iterable[KeyRole]] = None
    ) -> "KeyPair":
        """
        Build a public-only identity from an encoded public key.

        Args:
            encoded: Encoded public key (e.g. a claims ``iss`` value)
            expected_roles: Roles the caller accepts; others raise KeyRoleError

        Raises:
            KeyDecodeError: bad checksum, bad length, or unknown role byte
            KeyRoleError: decoded role is not in ``expected_roles``
        """
        body = _decode_checked(encoded, 1 + KEY_LENGTH)
        role = PREFIX_ROLES.get(body[0])
        if role is None:
            raise KeyDecodeError(f"unknown role prefix byte {body[0]}")
        _check_roles(role, expected_roles)
        return cls(role, body[1:])

    # ------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------

    @property
    def role(self) -> KeyRole:
        return self._role

    @property
    def public_key(self) -> bytes:
        """Raw 32-byte public key."""
        return self._public_key

    @property
    def has_private_key(self) -> bool:
        return self._seed is not None

    def public_only(self) -> "KeyPair":
        """Return the same identity without private material."""
        return KeyPair(self._role, self._public_key)

    def encode_public(self) -> str:
        """Encoded public key, e.g. ``"ADQ2..."`` for an account."""
        return _encode_checked(bytes([ROLE_PREFIXES[self._role]]) + self._public_key)

    def encode_seed(self) -> str:
        """
        Encoded seed, e.g. ``"SA..."`` for an account.

        Raises:
            NoPrivateKeyError: if this identity holds only a public key
        """
        if self._seed is None:
            raise NoPrivateKeyError(f"{self._role.value} identity has no seed")
        prefix = ROLE_PREFIXES[self._role]
        header = bytes([PREFIX_BYTE_SEED | (prefix >> 5), (prefix & 0x1F) << 3])
        return _encode_checked(header + self._seed)

    # ------------------------------------------------------------
    # Signatures
    # ------------------------------------------------------------

    def sign(self, data: bytes) -> bytes:
        """
        Sign data with Ed25519 and return the 64-byte signature.

        Raises:
            NoPrivateKeyError: public-only identity
            SignerRoleError: curve (encryption) identities cannot sign
        """
        if self._seed is None:
            raise NoPrivateKeyError(f"cannot sign with public-only {self._role.value} identity")
        if self._role is KeyRole.CURVE:
            raise SignerRoleError(self._role.value, "curve keys are for encryption and cannot sign")
        return SigningKey(self._seed).sign(data).signature

    def verify(self, data: bytes, signature: bytes) -> bool:
        """Verify an Ed25519 signature. Malformed signatures return False."""
        if self._role is KeyRole.CURVE:
            return False
        if not isinstance(signature, (bytes, bytearray)) or len(signature) != SIGNATURE_LENGTH:
            return False
        try:
            VerifyKey(self._public_key).verify(bytes(data), bytes(signature))
            return True
        except (BadSignatureError, ValueError):
            return False

    # ------------------------------------------------------------
    # Value semantics
    # ------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyPair):
            return NotImplemented
        return self._role is other._role and self._public_key == other._public_key

    def __hash__(self) -> int:
        return hash((self._role, self._public_key))

    def __str__(self) -> str:
        return self.encode_public()

    def __repr__(self) -> str:
        kind = "keypair" if self._seed is not None else "public"
        return f"KeyPair({self._role.value}, {self.encode_public()}, {kind})"


# Convenience functions

def generate(role: Union[KeyRole, str]) -> KeyPair:
    """Generate a new identity for ``role``."""
    return KeyPair.generate(role)


def from_seed(encoded_seed: str) -> KeyPair:
    """Rebuild an identity from an encoded seed."""
    return KeyPair.from_seed(encoded_seed)


def from_public_key(encoded: str, expected_roles: Optional[Iterable[KeyRole]] = None) -> KeyPair:
    """Build a public-only identity from an encoded public key."""
    return KeyPair.from_public_key(encoded, expected_roles)


def encode_public(identity: KeyPair) -> str:
    return identity.encode_public()


def encode_seed(identity: KeyPair) -> str:
    return identity.encode_seed()


def sign(identity: KeyPair, data: bytes) -> bytes:
    """Sign data with ``identity``."""
    return identity.sign(data)


def verify(identity: KeyPair, data: bytes, signature: bytes) -> bool:
    """Verify ``signature`` over ``data`` against ``identity``'s public key."""
    return identity.verify(data, signature)
