"""
Wascap validation.

Checks a decoded token offline and reports every outcome at once:

1. Recover the issuer key from ``claims.iss`` (account or operator role)
2. Verify the signature over the token's own header and claims segments
3. Check ``not_before`` / ``expires`` against the validation time
4. Compare the module hash, when the caller supplies one
5. Compare the issuer, when the caller pins one

No check short-circuits another, and nothing here raises for a bad token:
refusing a capability is the caller's decision.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .constants import DEFAULT_SECTION_NAME
from .errors import KeyDecodeError
from .hashing import hashes_match
from .jwt import Token, parse
from .keys import ISSUER_ROLES, KeyPair
from .logging_config import audit_log
from .util import now_epoch
from .wasm import extract, hash_excluding

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationReport:
    """Result of validating a token."""
    signature_valid: bool
    expired: bool
    not_yet_valid: bool
    hash_matches: Optional[bool] = None
    issuer_matches: Optional[bool] = None

    @property
    def can_use(self) -> bool:
        return (
            self.signature_valid
            and not self.expired
            and not self.not_yet_valid
            and self.hash_matches is not False
            and self.issuer_matches is not False
        )

    def failures(self) -> List[str]:
        """Every failing check, in check order."""
        reasons = []
        if not self.signature_valid:
            reasons.append("signature invalid")
        if self.expired:
            reasons.append("token expired")
        if self.not_yet_valid:
            reasons.append("token not yet valid")
        if self.hash_matches is False:
            reasons.append("module hash mismatch")
        if self.issuer_matches is False:
            reasons.append("unexpected issuer")
        return reasons

    def to_dict(self) -> Dict[str, Any]:
        return {
            "signature_valid": self.signature_valid,
            "expired": self.expired,
            "not_yet_valid": self.not_yet_valid,
            "hash_matches": self.hash_matches,
            "issuer_matches": self.issuer_matches,
            "can_use": self.can_use,
        }


def _verify_signature(token: Token) -> bool:
    try:
        issuer = KeyPair.from_public_key(token.claims.issuer, ISSUER_ROLES)
    except KeyDecodeError as exc:
        logger.warning("Cannot recover issuer key for token %s: %s", token.claims.token_id, exc)
        return False
    return issuer.verify(token.signing_input, token.signature)


def validate(
    token: Token,
    now: Optional[int] = None,
    expected_hash: Optional[str] = None,
    expected_issuer: Optional[str] = None
) -> ValidationReport:
    """
    Validate a parsed token.

    Args:
        token: Token from ``wascap.jwt.parse`` or ``wascap.jwt.sign``
        now: Validation time in Unix seconds (default: current time)
        expected_hash: Module hash to compare against ``claims.module_hash``
            (case-insensitive); omitted means not checked
        expected_issuer: Encoded public key the issuer must equal;
            omitted means not checked

    Returns:
        ValidationReport with every check filled in
    """
    if now is None:
        now = now_epoch()
    claims = token.claims

    signature_valid = _verify_signature(token)

    expired = claims.expires is not None and now > claims.expires
    not_yet_valid = claims.not_before is not None and now < claims.not_before

    hash_matches = None
    if expected_hash is not None:
        hash_matches = hashes_match(claims.module_hash, expected_hash)

    issuer_matches = None
    if expected_issuer is not None:
        issuer_matches = claims.issuer == expected_issuer

    report = ValidationReport(
        signature_valid=signature_valid,
        expired=expired,
        not_yet_valid=not_yet_valid,
        hash_matches=hash_matches,
        issuer_matches=issuer_matches,
    )

    if not signature_valid:
        audit_log.security_event(
            "invalid_token_signature",
            severity="high",
            token_id=claims.token_id,
            issuer=claims.issuer,
        )
    audit_log.token_validated(claims.token_id, claims.subject, report.to_dict())
    return report


def validate_token_string(
    token_string: str,
    now: Optional[int] = None,
    expected_hash: Optional[str] = None,
    expected_issuer: Optional[str] = None
) -> ValidationReport:
    """
    Parse and validate a token string.

    Raises:
        TokenFormatError: the string is not a structurally valid token
    """
    return validate(parse(token_string), now, expected_hash, expected_issuer)


def validate_module(
    module_bytes: bytes,
    now: Optional[int] = None,
    section_name: str = DEFAULT_SECTION_NAME,
    expected_issuer: Optional[str] = None
) -> ValidationReport:
    """
    Extract the embedded token from a module and validate it against the
    module's own content hash.

    Raises:
        SectionNotFoundError: the module carries no token
        ContainerFormatError: the module framing is invalid
        TokenFormatError: the embedded token is malformed
    """
    token = parse(extract(module_bytes, section_name))
    return validate(
        token,
        now=now,
        expected_hash=hash_excluding(module_bytes, section_name),
        expected_issuer=expected_issuer,
    )
