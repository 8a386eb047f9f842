"""
Wascap WebAssembly embedding.

Reads and writes the token as a custom section of a WebAssembly binary
module. Only the section framing is parsed::

    module  := magic(\\0asm) version(u32 LE = 1) section*
    section := id(u8) size(LEB128 u32) payload(size bytes)
    custom  := id 0, payload = name_len(LEB128) name(UTF-8) data

Section contents are never interpreted, so any module with well-formed
framing can carry a token. Sections other than the token section are copied
byte-for-byte (including padded LEB128 sizes some toolchains emit), which
keeps the module hash stable across re-embedding.
"""

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from .claims import Claims
from .constants import (
    CUSTOM_SECTION_ID,
    DEFAULT_SECTION_NAME,
    MAX_VARUINT32_BYTES,
    PREAMBLE_LENGTH,
    SECTION_KINDS,
    WASM_MAGIC,
    WASM_VERSION,
)
from .errors import (
    BadMagicError,
    BadVersionError,
    ContainerFormatError,
    MalformedSectionError,
    SectionNotFoundError,
    SignerRoleError,
    TokenFormatError,
)
from .hashing import sha256_hex
from .jwt import Token, parse, sign
from .keys import KeyPair, KeyRole
from .logging_config import audit_log
from .util import days_from_now, now_epoch

logger = logging.getLogger(__name__)

BytesLike = Union[bytes, bytearray, memoryview]


@dataclass(frozen=True)
class Section:
    """
    One framed section of a module.

    ``raw`` holds the complete encoded section (id, size and payload)
    exactly as it appeared in the module.
    """
    section_id: int
    offset: int
    raw: bytes
    payload_start: int
    name: Optional[bytes] = None
    data_start: Optional[int] = None

    @property
    def payload(self) -> bytes:
        return self.raw[self.payload_start:]

    @property
    def data(self) -> bytes:
        """Custom section data after the name; the whole payload otherwise."""
        if self.data_start is None:
            return self.payload
        return self.raw[self.data_start:]

    @property
    def kind(self) -> str:
        return SECTION_KINDS.get(self.section_id, "unknown")

    @property
    def display_name(self) -> Optional[str]:
        if self.name is None:
            return None
        return self.name.decode("utf-8", errors="replace")

    def is_custom(self, name: Optional[bytes] = None) -> bool:
        """True for custom sections, optionally only those named ``name``."""
        if self.section_id != CUSTOM_SECTION_ID:
            return False
        return name is None or self.name == name


# ============================================================
# LEB128
# ============================================================

def encode_varuint32(value: int) -> bytes:
    """Encode an unsigned 32-bit integer as minimal LEB128."""
    if value < 0 or value > 0xFFFFFFFF:
        raise ValueError(f"value out of u32 range: {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_varuint32(buf: bytes, offset: int, limit: Optional[int] = None) -> Tuple[int, int]:
    """
    Decode an unsigned LEB128 u32 starting at ``offset``.

    Args:
        buf: Buffer to read from
        offset: Position of the first byte
        limit: Exclusive end the encoding must not cross (default: len(buf))

    Returns:
        Tuple of (value, offset just past the encoding)

    Raises:
        MalformedSectionError: truncated, longer than 5 bytes, or over u32
    """
    if limit is None:
        limit = len(buf)
    result = 0
    shift = 0
    for i in range(MAX_VARUINT32_BYTES):
        pos = offset + i
        if pos >= limit:
            raise MalformedSectionError("truncated LEB128 integer", offset)
        byte = buf[pos]
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            if result > 0xFFFFFFFF:
                raise MalformedSectionError("LEB128 integer exceeds u32", offset)
            return result, pos + 1
        shift += 7
    raise MalformedSectionError("LEB128 integer longer than 5 bytes", offset)


# ============================================================
# Framing
# ============================================================

def _as_bytes(module_bytes: BytesLike) -> bytes:
    if not isinstance(module_bytes, (bytes, bytearray, memoryview)):
        raise TypeError(f"module must be bytes-like, got {type(module_bytes)}")
    return bytes(module_bytes)


def _section_name(name: Union[str, bytes]) -> bytes:
    return name.encode("utf-8") if isinstance(name, str) else bytes(name)


def parse_preamble(module_bytes: BytesLike) -> int:
    """
    Check the module preamble and return its version.

    Raises:
        BadMagicError: the buffer does not start with ``\\0asm``
        ContainerFormatError: the buffer is shorter than the preamble
        BadVersionError: the version is not 1
    """
    buf = _as_bytes(module_bytes)
    head = buf[:len(WASM_MAGIC)]
    if head != WASM_MAGIC[:len(head)]:
        raise BadMagicError(f"bad magic {head!r}, expected {WASM_MAGIC!r}", 0)
    if len(buf) < PREAMBLE_LENGTH:
        raise ContainerFormatError(f"truncated preamble ({len(buf)} bytes)", 0)
    version = int.from_bytes(buf[len(WASM_MAGIC):PREAMBLE_LENGTH], "little")
    if version != WASM_VERSION:
        raise BadVersionError(f"unsupported version {version}, expected {WASM_VERSION}", len(WASM_MAGIC))
    return version


def iter_sections(module_bytes: BytesLike) -> Iterator[Section]:
    """
    Yield the module's sections in order.

    Raises:
        ContainerFormatError: bad preamble (see ``parse_preamble``)
        MalformedSectionError: a size or custom name runs past its bounds
    """
    buf = _as_bytes(module_bytes)
    parse_preamble(buf)

    offset = PREAMBLE_LENGTH
    while offset < len(buf):
        section_id = buf[offset]
        size, payload_start = decode_varuint32(buf, offset + 1)
        end = payload_start + size
        if end > len(buf):
            raise MalformedSectionError(
                f"section size {size} runs past end of module ({len(buf)} bytes)", offset
            )

        name = None
        data_start = None
        if section_id == CUSTOM_SECTION_ID:
            name_len, name_start = decode_varuint32(buf, payload_start, end)
            if name_start + name_len > end:
                raise MalformedSectionError("custom section name runs past section end", offset)
            name = buf[name_start:name_start + name_len]
            data_start = name_start + name_len - offset

        yield Section(
            section_id=section_id,
            offset=offset,
            raw=buf[offset:end],
            payload_start=payload_start - offset,
            name=name,
            data_start=data_start,
        )
        offset = end


def list_sections(module_bytes: BytesLike) -> List[Section]:
    """All sections of a module as a list."""
    return list(iter_sections(module_bytes))


def encode_custom_section(name: Union[str, bytes], data: bytes) -> bytes:
    """Encode a complete custom section with minimal LEB128 sizes."""
    name = _section_name(name)
    payload = encode_varuint32(len(name)) + name + bytes(data)
    return bytes([CUSTOM_SECTION_ID]) + encode_varuint32(len(payload)) + payload


def strip(module_bytes: BytesLike, section_name: Union[str, bytes] = DEFAULT_SECTION_NAME) -> bytes:
    """Return the module with every custom section named ``section_name`` removed."""
    buf = _as_bytes(module_bytes)
    name = _section_name(section_name)
    kept = [s.raw for s in iter_sections(buf) if not s.is_custom(name)]
    return buf[:PREAMBLE_LENGTH] + b"".join(kept)


def hash_excluding(module_bytes: BytesLike, section_name: Union[str, bytes] = DEFAULT_SECTION_NAME) -> str:
    """
    Digest of the module as it would be without the named section.

    This is the value stored in ``claims.module_hash``; embedding the same
    or a different token again does not change it.
    """
    return sha256_hex(strip(module_bytes, section_name))


# ============================================================
# Embed / extract
# ============================================================

def embed(module_bytes: BytesLike, section_name: Union[str, bytes], token_string: str) -> bytes:
    """
    Write ``token_string`` into a custom section named ``section_name``.

    Existing sections with that name are removed and the new one is placed
    directly after the preamble. All other sections keep their bytes and
    relative order.

    Raises:
        ContainerFormatError: the module framing is invalid
    """
    buf = _as_bytes(module_bytes)
    name = _section_name(section_name)
    sections = list_sections(buf)

    kept = [s.raw for s in sections if not s.is_custom(name)]
    replaced = len(sections) - len(kept)
    if replaced:
        logger.debug("Replacing %d existing %r section(s)", replaced, name)

    new_section = encode_custom_section(name, token_string.encode("utf-8"))
    return buf[:PREAMBLE_LENGTH] + new_section + b"".join(kept)


def extract(module_bytes: BytesLike, section_name: Union[str, bytes] = DEFAULT_SECTION_NAME) -> str:
    """
    Return the token string stored in the first custom section named
    ``section_name``.

    Raises:
        SectionNotFoundError: no such section
        ContainerFormatError: the module framing is invalid
        TokenFormatError: the section data is not UTF-8
    """
    name = _section_name(section_name)
    for section in iter_sections(module_bytes):
        if section.is_custom(name):
            try:
                return section.data.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise TokenFormatError(f"section {name!r} does not hold UTF-8 text") from exc
    raise SectionNotFoundError(name.decode("utf-8", errors="replace"))


# ============================================================
# Claims helpers
# ============================================================

def embed_claims(
    module_bytes: BytesLike,
    claims: Claims,
    identity: KeyPair,
    section_name: str = DEFAULT_SECTION_NAME,
    now: Optional[int] = None
) -> bytes:
    """
    Sign claims for a module and embed the token in it.

    The module hash is computed from ``module_bytes`` and written into the
    claims before signing, replacing whatever ``claims.module_hash`` held.

    Returns:
        The new module bytes
    """
    module_hash = hash_excluding(module_bytes, section_name)
    token = sign(replace(claims, module_hash=module_hash), identity, now=now)
    result = embed(module_bytes, section_name, token.jwt)

    audit_log.claims_embedded(
        token_id=token.claims.token_id,
        section_name=section_name,
        module_hash=module_hash,
        module_size=len(result),
    )
    return result


def extract_claims(module_bytes: BytesLike, section_name: str = DEFAULT_SECTION_NAME) -> Optional[Token]:
    """
    Extract and parse the embedded token, or None if the module has none.

    The token is not validated; see ``wascap.validation.validate_module``.

    Raises:
        ContainerFormatError: the module framing is invalid
        TokenFormatError: the embedded token is malformed
    """
    try:
        token_string = extract(module_bytes, section_name)
    except SectionNotFoundError:
        return None
    return parse(token_string)


def sign_buffer_with_claims(
    module_bytes: BytesLike,
    module_identity: KeyPair,
    account_identity: KeyPair,
    expires_in_days: Optional[int] = None,
    not_before_days: Optional[int] = None,
    capabilities: Iterable[str] = (),
    tags: Iterable[str] = (),
    name: Optional[str] = None,
    version: Optional[str] = None,
    revision: Optional[int] = None,
    provider: bool = False,
    now: Optional[int] = None,
    section_name: str = DEFAULT_SECTION_NAME
) -> bytes:
    """
    Build claims for a module and embed them, signed by an account.

    Args:
        module_bytes: The module to sign
        module_identity: Module identity; its public key becomes the subject
        account_identity: Signing account (or operator) identity
        expires_in_days: Days from ``now`` until expiry (None: never)
        not_before_days: Days from ``now`` until valid (None: immediately)
        capabilities: Capability namespaces the module may use
        tags: Free-form tags
        name: Module name
        version: Semantic version string
        revision: Monotonic revision number
        provider: True for capability providers
        now: Issue time in Unix seconds (default: current time)
        section_name: Custom section to write

    Returns:
        The new module bytes

    Raises:
        SignerRoleError: module_identity is not a module key
    """
    if module_identity.role is not KeyRole.MODULE:
        raise SignerRoleError(module_identity.role.value, "subject identity must be a module key")
    if now is None:
        now = now_epoch()

    claims = Claims(
        issuer=account_identity.encode_public(),
        subject=module_identity.encode_public(),
        name=name,
        version=version,
        revision=revision,
        capabilities=frozenset(capabilities),
        tags=frozenset(tags),
        provider=provider,
        not_before=days_from_now(not_before_days, now),
        expires=days_from_now(expires_in_days, now),
    )
    return embed_claims(module_bytes, claims, account_identity, section_name, now)
