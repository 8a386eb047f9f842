"""
Wascap token protocol.

Token format::

    base64url(header) . base64url(claims) . base64url(signature)

where ``header`` is ``{"type": "jwt", "alg": "EdDSA"}``, ``claims`` is the
canonical claims JSON, and ``signature`` is Ed25519 over the ASCII bytes
``header_b64 + "." + claims_b64``.

The issuer's public key travels inside the signed claims (``iss``), so a
verifier needs no separate key distribution. Parsing and trusting are
separate steps: ``parse`` only checks structure; ``wascap.validation``
checks the signature.
"""

import json
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from .canonicalization import canonicalize
from .claims import Claims, decode_claims, encode_claims
from .constants import TOKEN_ALGORITHM, TOKEN_HEADER, TOKEN_TYPE
from .errors import (
    ClaimsConstraintError,
    IssuerMismatchError,
    KeyDecodeError,
    NoPrivateKeyError,
    SignerRoleError,
    TokenFormatError,
)
from .keys import ISSUER_ROLES, KeyPair
from .logging_config import audit_log
from .util import b64url_decode, b64url_encode, generate_id, now_epoch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Token:
    """
    A signed token: decoded header and claims plus the raw segments.

    The raw segments are kept exactly as received so validation re-derives
    the signed bytes from them rather than from a re-encoding.
    """
    header: Dict[str, Any]
    claims: Claims
    signature: bytes
    header_segment: str
    claims_segment: str
    signature_segment: str

    @property
    def jwt(self) -> str:
        """The encoded token string."""
        return ".".join((self.header_segment, self.claims_segment, self.signature_segment))

    @property
    def signing_input(self) -> bytes:
        """The exact bytes the signature covers."""
        return f"{self.header_segment}.{self.claims_segment}".encode("ascii")

    def __str__(self) -> str:
        return self.jwt


def _check_signer(identity: KeyPair) -> None:
    if not identity.has_private_key:
        raise NoPrivateKeyError(f"cannot sign with public-only {identity.role.value} identity")
    if identity.role not in ISSUER_ROLES:
        raise SignerRoleError(
            identity.role.value,
            f"{identity.role.value} keys cannot issue tokens (expected account or operator)"
        )


def sign(claims: Claims, identity: KeyPair, now: Optional[int] = None) -> Token:
    """
    Sign claims and assemble a token.

    ``issued_at`` is set to ``now`` (default: current time) and a fresh
    ``token_id`` is generated; all other fields are signed as given.

    Args:
        claims: Claims to sign; ``issuer`` must be the signer's public key
        identity: Account or operator identity holding a seed
        now: Issue time in Unix seconds

    Returns:
        Token with decoded parts and segments

    Raises:
        ClaimsConstraintError: not_before is later than expires
        NoPrivateKeyError: identity holds no seed
        SignerRoleError: identity role may not issue tokens
        IssuerMismatchError: claims.issuer is not the signer's public key
    """
    if (
        claims.not_before is not None
        and claims.expires is not None
        and claims.not_before > claims.expires
    ):
        raise ClaimsConstraintError(
            f"not_before ({claims.not_before}) is later than expires ({claims.expires})"
        )

    _check_signer(identity)

    signer = identity.encode_public()
    if claims.issuer != signer:
        raise IssuerMismatchError(claims.issuer, signer)

    stamped = replace(
        claims,
        issued_at=now_epoch() if now is None else int(now),
        token_id=generate_id(16),
    )

    header_segment = b64url_encode(canonicalize(TOKEN_HEADER))
    claims_segment = b64url_encode(encode_claims(stamped))
    signature = identity.sign(f"{header_segment}.{claims_segment}".encode("ascii"))

    audit_log.token_signed(
        token_id=stamped.token_id,
        issuer=stamped.issuer,
        subject=stamped.subject,
        capabilities=stamped.capabilities,
        expires=stamped.expires,
    )

    return Token(
        header=dict(TOKEN_HEADER),
        claims=stamped,
        signature=signature,
        header_segment=header_segment,
        claims_segment=claims_segment,
        signature_segment=b64url_encode(signature),
    )


def _decode_segment(segment: str, label: str) -> bytes:
    try:
        return b64url_decode(segment)
    except ValueError as exc:
        raise TokenFormatError(f"{label} segment is not valid base64url: {exc}") from exc


def _decode_header(data: bytes) -> Dict[str, Any]:
    try:
        header = json.loads(data)
    except ValueError as exc:
        raise TokenFormatError(f"header is not valid JSON: {exc}") from exc

    if not isinstance(header, dict):
        raise TokenFormatError("header must be a JSON object")
    if header.get("alg") != TOKEN_ALGORITHM:
        raise TokenFormatError(f"unsupported algorithm {header.get('alg')!r}")
    if header.get("type") != TOKEN_TYPE:
        raise TokenFormatError(f"unsupported token type {header.get('type')!r}")
    if set(header) != set(TOKEN_HEADER):
        extra = sorted(set(header) - set(TOKEN_HEADER))
        raise TokenFormatError(f"unexpected header fields: {extra}")
    return header


def parse(token_string: str) -> Token:
    """
    Split and decode a token string without verifying its signature.

    Raises:
        TokenFormatError: wrong segment count, bad base64url, malformed
            JSON, unexpected header, or invalid claims
    """
    if not isinstance(token_string, str):
        raise TokenFormatError("token must be a string")

    segments = token_string.strip().split(".")
    if len(segments) != 3:
        raise TokenFormatError(f"token must have 3 segments, found {len(segments)}")
    header_segment, claims_segment, signature_segment = segments

    header = _decode_header(_decode_segment(header_segment, "header"))
    claims = decode_claims(_decode_segment(claims_segment, "claims"))
    signature = _decode_segment(signature_segment, "signature")

    logger.debug("Parsed token %s for subject %s", claims.token_id, claims.subject)

    return Token(
        header=header,
        claims=claims,
        signature=signature,
        header_segment=header_segment,
        claims_segment=claims_segment,
        signature_segment=signature_segment,
    )


def detached_signature(claims: Claims, identity: KeyPair) -> bytes:
    """
    Sign the canonical claims bytes alone, without a token header.

    Raises:
        NoPrivateKeyError: identity holds no seed
        SignerRoleError: identity role may not issue signatures
    """
    _check_signer(identity)
    return identity.sign(encode_claims(claims))


def verify_detached(claims: Claims, signature: bytes, identity: Optional[KeyPair] = None) -> bool:
    """
    Verify a detached claims signature.

    When ``identity`` is omitted the verifying key is recovered from
    ``claims.issuer``. An undecodable issuer verifies as False.
    """
    if identity is None:
        try:
            identity = KeyPair.from_public_key(claims.issuer, ISSUER_ROLES)
        except KeyDecodeError as exc:
            logger.warning("Cannot recover issuer key %r: %s", claims.issuer, exc)
            return False
    return identity.verify(encode_claims(claims), signature)
