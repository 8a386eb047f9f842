"""
Wascap claims.

The claims data model and its canonical codec. A claims document asserts
that a module (``sub``) issued by an account (``iss``) may use a set of
capabilities during a validity window, and binds that assertion to the
module's content hash.

Wire keys::

    iss, sub, name, ver, rev, hash, caps, tags, provider, iat, nbf, exp, jti

Keys the codec does not know are kept in ``Claims.extensions`` and written
back out on encode, so newer issuers can add fields without older tools
dropping them.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .canonicalization import canonicalize
from .errors import ClaimsFormatError

CLAIM_KEYS = frozenset({
    "iss", "sub", "name", "ver", "rev", "hash", "caps", "tags",
    "provider", "iat", "nbf", "exp", "jti",
})

REQUIRED_CLAIM_KEYS = ("iss", "sub", "iat")


class ClaimsPayload(BaseModel):
    """Wire schema of the claims segment."""
    model_config = ConfigDict(extra="allow", strict=True)

    iss: str
    sub: str
    iat: int
    name: Optional[str] = None
    ver: Optional[str] = None
    rev: Optional[int] = None
    module_hash: str = Field(default="", alias="hash")
    caps: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    provider: bool = False
    nbf: Optional[int] = None
    exp: Optional[int] = None
    jti: str = ""


def _as_string_set(value: Any, field_name: str) -> FrozenSet[str]:
    if isinstance(value, (str, bytes)):
        raise TypeError(f"{field_name} must be a collection of strings, not a single string")
    items = frozenset(value)
    for item in items:
        if not isinstance(item, str):
            raise TypeError(f"{field_name} entries must be strings, got {type(item)}")
    return items


@dataclass(frozen=True)
class Claims:
    """
    Capability claims about a single module.

    ``capabilities`` and ``tags`` are sets: order is irrelevant and
    duplicates collapse. ``not_before`` and ``expires`` are optional Unix
    seconds; an absent bound is always satisfied. ``issued_at`` and
    ``token_id`` are stamped when the claims are signed.
    """
    issuer: str
    subject: str
    name: Optional[str] = None
    version: Optional[str] = None
    revision: Optional[int] = None
    module_hash: str = ""
    capabilities: FrozenSet[str] = frozenset()
    tags: FrozenSet[str] = frozenset()
    provider: bool = False
    issued_at: int = 0
    not_before: Optional[int] = None
    expires: Optional[int] = None
    token_id: str = ""
    extensions: Dict[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "capabilities", _as_string_set(self.capabilities, "capabilities"))
        object.__setattr__(self, "tags", _as_string_set(self.tags, "tags"))
        object.__setattr__(self, "extensions", dict(self.extensions))

        collisions = CLAIM_KEYS.intersection(self.extensions)
        if collisions:
            raise ValueError(f"extensions may not redefine claim keys: {sorted(collisions)}")

    def has_capability(self, capability: str) -> bool:
        return capability in self.capabilities

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire dictionary (optional fields omitted when unset)."""
        d: Dict[str, Any] = dict(self.extensions)
        d.update({
            "iss": self.issuer,
            "sub": self.subject,
            "iat": self.issued_at,
            "hash": self.module_hash,
            "caps": sorted(self.capabilities),
            "tags": sorted(self.tags),
            "provider": self.provider,
            "jti": self.token_id,
        })
        optional = (
            ("name", self.name),
            ("ver", self.version),
            ("rev", self.revision),
            ("nbf", self.not_before),
            ("exp", self.expires),
        )
        for key, value in optional:
            if value is not None:
                d[key] = value
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Claims':
        """
        Create claims from a wire dictionary.

        Raises:
            ClaimsFormatError: not an object, a required field is missing,
                or a field has the wrong type
        """
        if not isinstance(data, dict):
            raise ClaimsFormatError("claims must be a JSON object")

        missing = [f for f in REQUIRED_CLAIM_KEYS if f not in data]
        if missing:
            raise ClaimsFormatError("missing required field", field=missing[0])

        try:
            payload = ClaimsPayload.model_validate(data)
        except ValidationError as exc:
            err = exc.errors()[0]
            loc = ".".join(str(part) for part in err.get("loc", ()))
            raise ClaimsFormatError(err.get("msg", "invalid value"), field=loc or None) from exc

        return cls(
            issuer=payload.iss,
            subject=payload.sub,
            name=payload.name,
            version=payload.ver,
            revision=payload.rev,
            module_hash=payload.module_hash,
            capabilities=frozenset(payload.caps),
            tags=frozenset(payload.tags),
            provider=payload.provider,
            issued_at=payload.iat,
            not_before=payload.nbf,
            expires=payload.exp,
            token_id=payload.jti,
            extensions=dict(payload.model_extra or {}),
        )

    def encode(self) -> bytes:
        return encode_claims(self)

    @classmethod
    def decode(cls, data: bytes) -> 'Claims':
        return decode_claims(data)


def encode_claims(claims: Claims) -> bytes:
    """
    Encode claims as canonical JSON bytes.

    Logically identical claims always encode to identical bytes: keys are
    sorted, there is no whitespace, and set fields are emitted sorted.
    """
    try:
        return canonicalize(claims.to_dict())
    except ValueError as exc:
        raise ClaimsFormatError(str(exc), field="extensions") from exc


def decode_claims(data: bytes) -> Claims:
    """
    Decode canonical (or any well-formed) claims JSON bytes.

    Raises:
        ClaimsFormatError: malformed JSON or invalid claims document
    """
    try:
        obj = json.loads(data)
    except ValueError as exc:
        raise ClaimsFormatError(f"malformed JSON: {exc}") from exc
    return Claims.from_dict(obj)
