"""
Wascap error types.

Every core operation reports failure by raising one of these. None of them
is fatal: callers catch ``WascapError`` (or a narrower class) and decide.
Expired or tampered tokens are not errors; validation reports them.
"""

from typing import Optional


class WascapError(Exception):
    """Base class for all wascap errors."""


# ============================================================
# Keys
# ============================================================

class KeyDecodeError(WascapError):
    """An encoded key or seed has a bad checksum, length or prefix."""


class KeyRoleError(KeyDecodeError):
    """A key decoded fine but carries a role that is not acceptable here."""

    def __init__(self, role: str, message: str):
        self.role = role
        super().__init__(message)


# ============================================================
# Signing
# ============================================================

class SigningError(WascapError):
    """A token could not be signed."""


class NoPrivateKeyError(SigningError):
    """Signing was attempted with a public-only identity."""


class ClaimsConstraintError(SigningError):
    """Claims violate a structural constraint (e.g. not_before > expires)."""


class SignerRoleError(KeyRoleError, SigningError):
    """The identity's role may not produce this signature (e.g. a module key issuing a token)."""


class IssuerMismatchError(SigningError):
    """The claims issuer does not name the signing identity."""

    def __init__(self, issuer: str, signer: str):
        self.issuer = issuer
        self.signer = signer
        super().__init__(f"claims issuer {issuer} does not match signing key {signer}")


# ============================================================
# Token format
# ============================================================

class TokenFormatError(WascapError):
    """A token string is structurally invalid."""


class ClaimsFormatError(TokenFormatError):
    """The claims payload is not a valid claims document."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        if field:
            message = f"{field}: {message}"
        super().__init__(message)


# ============================================================
# Container
# ============================================================

class ContainerFormatError(WascapError):
    """The module bytes are not a well-formed container."""

    def __init__(self, message: str, offset: Optional[int] = None):
        self.offset = offset
        if offset is not None:
            message = f"{message} (at offset {offset})"
        super().__init__(message)


class BadMagicError(ContainerFormatError):
    """The preamble does not start with the WebAssembly magic."""


class BadVersionError(ContainerFormatError):
    """The preamble carries an unsupported binary version."""


class MalformedSectionError(ContainerFormatError):
    """A section header or length runs past the end of the buffer."""


class SectionNotFoundError(WascapError):
    """The requested custom section is not present in the module."""

    def __init__(self, section_name: str):
        self.section_name = section_name
        super().__init__(f"custom section {section_name!r} not found")
