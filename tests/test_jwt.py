import json
from dataclasses import replace

import pytest

from wascap import (
    Claims,
    ClaimsConstraintError,
    ClaimsFormatError,
    IssuerMismatchError,
    KeyPair,
    KeyRole,
    KeyRoleError,
    NoPrivateKeyError,
    SignerRoleError,
    SigningError,
    TokenFormatError,
    detached_signature,
    parse,
    sign,
    verify_detached,
)
from wascap.util import b64url_decode, b64url_encode

from conftest import NOW


def segment(obj):
    return b64url_encode(json.dumps(obj, separators=(",", ":")).encode("utf-8"))


def test_sign_and_parse(claims, account):
    token = sign(claims, account, now=NOW)
    parts = token.jwt.split(".")
    assert len(parts) == 3
    assert json.loads(b64url_decode(parts[0])) == {"type": "jwt", "alg": "EdDSA"}
    assert token.signing_input == f"{parts[0]}.{parts[1]}".encode("ascii")
    assert str(token) == token.jwt

    parsed = parse(token.jwt)
    assert parsed.claims == token.claims
    assert parsed.signature == token.signature
    assert account.verify(parsed.signing_input, parsed.signature)


def test_sign_stamps_iat_and_jti(claims, account):
    first = sign(claims, account, now=NOW)
    second = sign(claims, account, now=NOW)
    assert first.claims.issued_at == NOW
    assert len(first.claims.token_id) == 32
    assert first.claims.token_id != second.claims.token_id
    # Everything else is signed as given
    assert replace(first.claims, issued_at=0, token_id="") == claims


def test_operator_may_sign(module_key):
    operator = KeyPair.generate(KeyRole.OPERATOR)
    token = sign(Claims(operator.encode_public(), module_key.encode_public()), operator, now=NOW)
    assert parse(token.jwt).claims.issuer.startswith("O")


def test_not_before_after_expires_rejected(claims, account):
    with pytest.raises(ClaimsConstraintError):
        sign(replace(claims, not_before=NOW + 10, expires=NOW), account)


def test_equal_bounds_allowed(claims, account):
    token = sign(replace(claims, not_before=NOW, expires=NOW), account, now=NOW)
    assert token.claims.not_before == token.claims.expires


def test_public_only_signer_rejected(claims, account):
    with pytest.raises(NoPrivateKeyError):
        sign(claims, account.public_only())


def test_issuer_must_be_signer(claims, other_account):
    with pytest.raises(IssuerMismatchError) as exc_info:
        sign(claims, other_account)
    assert exc_info.value.signer == other_account.encode_public()


def test_module_key_cannot_issue(claims, module_key):
    with pytest.raises(KeyRoleError):
        sign(replace(claims, issuer=module_key.encode_public()), module_key)


def test_refused_signer_role_is_a_signing_error(claims, module_key):
    with pytest.raises(SigningError) as exc_info:
        sign(replace(claims, issuer=module_key.encode_public()), module_key)
    assert isinstance(exc_info.value, SignerRoleError)
    assert exc_info.value.role == "module"
    with pytest.raises(SigningError):
        detached_signature(claims, module_key)


@pytest.mark.parametrize("text", ["", "a.b", "a.b.c.d", "only-one-segment"])
def test_wrong_segment_count(text):
    with pytest.raises(TokenFormatError, match="segments"):
        parse(text)


def test_non_string_rejected():
    with pytest.raises(TokenFormatError):
        parse(b"a.b.c")


def test_bad_base64_segment(claims, account):
    h, c, s = sign(claims, account).jwt.split(".")
    with pytest.raises(TokenFormatError, match="base64url"):
        parse(f"{h}.{c}.!!!!")
    with pytest.raises(TokenFormatError, match="base64url"):
        parse(f"{h}.{c}=.{s}")


def test_wrong_algorithm_rejected(claims, account):
    _, c, s = sign(claims, account).jwt.split(".")
    with pytest.raises(TokenFormatError, match="algorithm"):
        parse(f"{segment({'type': 'jwt', 'alg': 'HS256'})}.{c}.{s}")


def test_wrong_type_rejected(claims, account):
    _, c, s = sign(claims, account).jwt.split(".")
    with pytest.raises(TokenFormatError, match="type"):
        parse(f"{segment({'type': 'JWS', 'alg': 'EdDSA'})}.{c}.{s}")


def test_extra_header_fields_rejected(claims, account):
    _, c, s = sign(claims, account).jwt.split(".")
    with pytest.raises(TokenFormatError, match="header fields"):
        parse(f"{segment({'type': 'jwt', 'alg': 'EdDSA', 'kid': 'x'})}.{c}.{s}")


def test_header_not_json(claims, account):
    _, c, s = sign(claims, account).jwt.split(".")
    with pytest.raises(TokenFormatError):
        parse(f"{b64url_encode(b'not json')}.{c}.{s}")


def test_claims_not_json(claims, account):
    h, _, s = sign(claims, account).jwt.split(".")
    with pytest.raises(ClaimsFormatError):
        parse(f"{h}.{b64url_encode(b'{')}.{s}")


def test_parse_does_not_verify(claims, account):
    h, c, s = sign(claims, account).jwt.split(".")
    forged = b64url_encode(b"\x00" * 64)
    token = parse(f"{h}.{c}.{forged}")
    assert token.signature == b"\x00" * 64


def test_parse_strips_surrounding_whitespace(claims, account):
    token = sign(claims, account)
    assert parse(f"  {token.jwt}\n").claims == token.claims


def test_detached_signature(claims, account):
    sig = detached_signature(claims, account)
    assert verify_detached(claims, sig)
    assert verify_detached(claims, sig, account.public_only())
    assert not verify_detached(replace(claims, name="other"), sig)


def test_detached_signature_requires_private_key(claims, account):
    with pytest.raises(NoPrivateKeyError):
        detached_signature(claims, account.public_only())


def test_detached_verify_with_undecodable_issuer(claims, account):
    sig = detached_signature(claims, account)
    assert not verify_detached(replace(claims, issuer="garbage"), sig)
