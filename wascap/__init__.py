"""
Wascap - WebAssembly Standard Capabilities

Version: 0.5.1
License: Apache 2.0

Issues, embeds, extracts and validates signed capability claims bound to a
specific WebAssembly module. A token asserts that a module may use a set of
capabilities, names the account that issued it, carries a validity window,
and records the hash of the module it describes. It travels inside the
module as a custom section and verifies offline: the issuer's public key is
part of the signed claims.

Usage:
    from wascap import (
        Claims,
        KeyPair,
        KeyRole,
        embed_claims,
        extract_claims,
        validate_module,
    )

    account = KeyPair.generate(KeyRole.ACCOUNT)
    module_key = KeyPair.generate(KeyRole.MODULE)

    claims = Claims(
        issuer=account.encode_public(),
        subject=module_key.encode_public(),
        capabilities={"wascc:messaging"},
    )
    signed = embed_claims(module_bytes, claims, account)

    report = validate_module(signed)
    if report.can_use:
        token = extract_claims(signed)
        ...
    else:
        print(report.failures())
"""

__version__ = "0.5.1"
__license__ = "Apache-2.0"

# Keys
from .keys import (
    KeyPair,
    KeyRole,
    ISSUER_ROLES,
)

# Claims
from .claims import (
    Claims,
    encode_claims,
    decode_claims,
)

# Tokens
from .jwt import (
    Token,
    sign,
    parse,
    detached_signature,
    verify_detached,
)

# Validation
from .validation import (
    ValidationReport,
    validate,
    validate_token_string,
    validate_module,
)

# Container
from .wasm import (
    Section,
    embed,
    extract,
    hash_excluding,
    iter_sections,
    embed_claims,
    extract_claims,
    sign_buffer_with_claims,
)

# Errors
from .errors import (
    WascapError,
    KeyDecodeError,
    KeyRoleError,
    SignerRoleError,
    SigningError,
    NoPrivateKeyError,
    ClaimsConstraintError,
    IssuerMismatchError,
    TokenFormatError,
    ClaimsFormatError,
    ContainerFormatError,
    BadMagicError,
    BadVersionError,
    MalformedSectionError,
    SectionNotFoundError,
)


__all__ = [
    # Version
    "__version__",

    # Keys
    "KeyPair",
    "KeyRole",
    "ISSUER_ROLES",

    # Claims
    "Claims",
    "encode_claims",
    "decode_claims",

    # Tokens
    "Token",
    "sign",
    "parse",
    "detached_signature",
    "verify_detached",

    # Validation
    "ValidationReport",
    "validate",
    "validate_token_string",
    "validate_module",

    # Container
    "Section",
    "embed",
    "extract",
    "hash_excluding",
    "iter_sections",
    "embed_claims",
    "extract_claims",
    "sign_buffer_with_claims",

    # Errors
    "WascapError",
    "KeyDecodeError",
    "KeyRoleError",
    "SignerRoleError",
    "SigningError",
    "NoPrivateKeyError",
    "ClaimsConstraintError",
    "IssuerMismatchError",
    "TokenFormatError",
    "ClaimsFormatError",
    "ContainerFormatError",
    "BadMagicError",
    "BadVersionError",
    "MalformedSectionError",
    "SectionNotFoundError",
]
