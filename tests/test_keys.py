import base64

import pytest

from wascap import KeyDecodeError, KeyPair, KeyRole, KeyRoleError, NoPrivateKeyError, SigningError
from wascap import keys
from wascap.keys import ISSUER_ROLES, crc16

ROLE_LETTERS = {
    KeyRole.ACCOUNT: "A",
    KeyRole.CLUSTER: "C",
    KeyRole.MODULE: "M",
    KeyRole.SERVER: "N",
    KeyRole.OPERATOR: "O",
    KeyRole.USER: "U",
    KeyRole.CURVE: "X",
}


def flip_char(text, index):
    replacement = "B" if text[index] != "B" else "C"
    return text[:index] + replacement + text[index + 1:]


def test_crc16_xmodem_check_value():
    assert crc16(b"123456789") == 0x31C3
    assert crc16(b"") == 0


@pytest.mark.parametrize("role,letter", sorted(ROLE_LETTERS.items()))
def test_role_letter_prefixes(role, letter):
    kp = KeyPair.generate(role)
    public = kp.encode_public()
    seed = kp.encode_seed()
    assert public[0] == letter
    assert len(public) == 56
    assert seed[:2] == "S" + letter
    assert len(seed) == 58


def test_seed_round_trip_reproduces_identity(account):
    rebuilt = KeyPair.from_seed(account.encode_seed())
    assert rebuilt == account
    assert rebuilt.encode_public() == account.encode_public()
    assert rebuilt.encode_seed() == account.encode_seed()
    # Ed25519 is deterministic: same seed, same signature
    assert rebuilt.sign(b"payload") == account.sign(b"payload")


def test_public_key_round_trip_is_public_only(module_key):
    public = KeyPair.from_public_key(module_key.encode_public())
    assert public.role is KeyRole.MODULE
    assert public.public_key == module_key.public_key
    assert not public.has_private_key
    assert public == module_key
    assert hash(public) == hash(module_key)


def test_same_key_different_role_is_different_identity(account):
    as_user = KeyPair(KeyRole.USER, account.public_key)
    assert as_user != account
    assert as_user.encode_public() != account.encode_public()
    assert as_user.encode_public()[0] == "U"


def test_checksum_mismatch_rejected(account):
    with pytest.raises(KeyDecodeError):
        KeyPair.from_public_key(flip_char(account.encode_public(), 10))
    with pytest.raises(KeyDecodeError):
        KeyPair.from_seed(flip_char(account.encode_seed(), 20))


def test_truncated_key_rejected(account):
    with pytest.raises(KeyDecodeError, match="length"):
        KeyPair.from_public_key(account.encode_public()[:-4])


def test_lowercase_and_garbage_rejected(account):
    with pytest.raises(KeyDecodeError):
        KeyPair.from_public_key(account.encode_public().lower())
    with pytest.raises(KeyDecodeError):
        KeyPair.from_public_key("not a key!")
    with pytest.raises(KeyDecodeError):
        KeyPair.from_public_key("")


def test_unknown_role_byte_rejected():
    raw = bytes([8]) + bytes(32)
    encoded = base64.b32encode(raw + crc16(raw).to_bytes(2, "little")).decode().rstrip("=")
    with pytest.raises(KeyDecodeError, match="unknown role"):
        KeyPair.from_public_key(encoded)


def test_public_key_is_not_a_seed(account):
    with pytest.raises(KeyDecodeError):
        KeyPair.from_seed(account.encode_public())


def test_expected_roles_enforced(module_key):
    with pytest.raises(KeyRoleError) as exc_info:
        KeyPair.from_public_key(module_key.encode_public(), ISSUER_ROLES)
    assert exc_info.value.role == "module"
    # KeyRoleError is a decode failure to callers that only catch the base
    assert isinstance(exc_info.value, KeyDecodeError)


def test_public_only_identity_cannot_sign_or_export_seed(account):
    public = account.public_only()
    with pytest.raises(NoPrivateKeyError):
        public.sign(b"data")
    with pytest.raises(NoPrivateKeyError):
        public.encode_seed()


def test_verify(account, other_account):
    sig = account.sign(b"data")
    assert len(sig) == 64
    assert account.public_only().verify(b"data", sig)
    assert not account.verify(b"other", sig)
    assert not other_account.verify(b"data", sig)


def test_verify_malformed_signature_is_false(account):
    assert not account.verify(b"data", b"\x00" * 63)
    assert not account.verify(b"data", b"")
    assert not account.verify(b"data", "not bytes")


def test_curve_keys_do_not_sign():
    curve = KeyPair.generate(KeyRole.CURVE)
    assert curve.encode_public().startswith("X")
    assert KeyPair.from_seed(curve.encode_seed()) == curve
    with pytest.raises(KeyRoleError):
        curve.sign(b"data")
    with pytest.raises(SigningError):
        curve.sign(b"data")
    assert not curve.verify(b"data", b"\x00" * 64)


def test_repr_never_shows_seed(account):
    assert account.encode_seed() not in repr(account)
    assert str(account) == account.encode_public()


def test_module_level_helpers():
    kp = keys.generate("operator")
    assert kp.role is KeyRole.OPERATOR
    assert keys.from_seed(keys.encode_seed(kp)) == kp
    assert keys.from_public_key(keys.encode_public(kp)) == kp
    assert keys.verify(kp, b"x", keys.sign(kp, b"x"))


def test_unknown_role_name_rejected():
    with pytest.raises(ValueError):
        KeyPair.generate("wizard")
