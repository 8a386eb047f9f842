import wascap
from wascap import (
    Claims,
    embed,
    embed_claims,
    extract,
    extract_claims,
    parse,
    sign,
    validate,
    validate_module,
)
from wascap.claims import encode_claims
from wascap.util import b64url_encode

from conftest import NOW


def test_public_api_exports():
    for name in wascap.__all__:
        assert hasattr(wascap, name), name


# Issue, embed, extract and validate a token for the bare preamble
def test_issue_embed_extract_validate(account, module_key, minimal_module):
    claims = Claims(
        issuer=account.encode_public(),
        subject=module_key.encode_public(),
        capabilities={"ns:one"},
    )
    token = sign(claims, account)
    module = embed(minimal_module, "jwt", token.jwt)

    recovered = parse(extract(module, "jwt"))
    assert recovered.claims.capabilities == {"ns:one"}

    for now in (0, NOW, NOW * 3):
        assert validate(recovered, now=now).can_use


# Re-encode the claims with a different capability set but keep the signature
def test_tampered_token_in_module(account, module_key, minimal_module):
    claims = Claims(account.encode_public(), module_key.encode_public(), capabilities={"ns:one"})
    token = sign(claims, account)
    forged_claims = Claims(
        account.encode_public(),
        module_key.encode_public(),
        capabilities={"ns:two"},
        issued_at=token.claims.issued_at,
        token_id=token.claims.token_id,
    )
    forged = f"{token.header_segment}.{b64url_encode(encode_claims(forged_claims))}.{token.signature_segment}"
    module = embed(minimal_module, "jwt", forged)

    report = validate(parse(extract(module, "jwt")))
    assert not report.signature_valid
    assert not report.can_use


def test_signed_module_validates(emscripten_module, claims, account):
    signed = embed_claims(emscripten_module, claims, account, now=NOW)
    report = validate_module(signed, now=NOW + 60, expected_issuer=account.encode_public())
    assert report.signature_valid
    assert report.hash_matches is True
    assert report.issuer_matches is True
    assert report.can_use


def test_modified_code_breaks_hash_not_signature(emscripten_module, claims, account):
    signed = embed_claims(emscripten_module, claims, account, now=NOW)
    # Flip one instruction byte inside the final (code) section
    patched = signed[:-3] + bytes([signed[-3] ^ 0x01]) + signed[-2:]
    report = validate_module(patched, now=NOW)
    assert report.signature_valid
    assert report.hash_matches is False
    assert not report.can_use
    assert report.failures() == ["module hash mismatch"]


def test_token_moved_to_another_module(emscripten_module, sample_module, claims, account):
    signed = embed_claims(emscripten_module, claims, account, now=NOW)
    transplanted = embed(sample_module, "jwt", extract(signed))
    report = validate_module(transplanted, now=NOW)
    assert report.signature_valid
    assert report.hash_matches is False


def test_resigning_with_another_account_is_caught_by_issuer_pin(
    emscripten_module, claims, account, other_account
):
    resigned = embed_claims(
        emscripten_module,
        Claims(other_account.encode_public(), claims.subject, capabilities=claims.capabilities),
        other_account,
        now=NOW,
    )
    assert validate_module(resigned, now=NOW).can_use
    pinned = validate_module(resigned, now=NOW, expected_issuer=account.encode_public())
    assert pinned.issuer_matches is False
    assert not pinned.can_use


def test_resigning_keeps_module_hash(emscripten_module, claims, account):
    first = embed_claims(emscripten_module, claims, account, now=NOW)
    second = embed_claims(first, claims, account, now=NOW + 1)
    assert extract_claims(first).claims.module_hash == extract_claims(second).claims.module_hash
    assert validate_module(second, now=NOW + 1).can_use
