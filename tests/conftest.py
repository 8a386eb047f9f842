import base64

import pytest

from wascap import Claims, KeyPair, KeyRole
from wascap.wasm import encode_custom_section, encode_varuint32

NOW = 1_700_000_000

PREAMBLE = b"\x00asm\x01\x00\x00\x00"

# Emscripten side module: a "dylink" custom section followed by type, import,
# function, global, export, element and code sections. Every section size is
# a padded 5-byte LEB128.
EMSCRIPTEN_MODULE_B64 = (
    "AGFzbQEAAAAADAZkeWxpbmuAgMACAAGKgICAAAJgAn9/AX9gAAACwYCAgAAEA2VudgptZW1vcnlCYXNl"
    "A38AA2VudgZtZW1vcnkCAIACA2VudgV0YWJsZQFwAAADZW52CXRhYmxlQmFzZQN/AAOEgICAAAMAAQEGi"
    "4CAgAACfwFBAAt/AUEACwejgICAAAIKX3RyYW5zZm9ybQAAEl9fcG9zdF9pbnN0YW50aWF0ZQACCYGAgI"
    "AAAArpgICAAAPBgICAAAECfwJ/IABBAEoEQEEAIQIFIAAPCwNAIAEgAmoiAywAAEHpAEYEQCADQfkAOgA"
    "ACyACQQFqIgIgAEcNAAsgAAsLg4CAgAAAAQuVgICAAAACQCMAJAIjAkGAgMACaiQDEAELCw=="
)


def section(section_id: int, payload: bytes) -> bytes:
    return bytes([section_id]) + encode_varuint32(len(payload)) + payload


@pytest.fixture
def account():
    return KeyPair.generate(KeyRole.ACCOUNT)


@pytest.fixture
def other_account():
    return KeyPair.generate(KeyRole.ACCOUNT)


@pytest.fixture
def module_key():
    return KeyPair.generate(KeyRole.MODULE)


@pytest.fixture
def minimal_module():
    return PREAMBLE


@pytest.fixture
def sample_module():
    """Type, custom "name", function and code sections."""
    return (
        PREAMBLE
        + section(1, b"\x01\x60\x00\x00")
        + encode_custom_section("name", b"\x00\x05\x04echo")
        + section(3, b"\x01\x00")
        + section(10, b"\x01\x02\x00\x0b")
    )


@pytest.fixture
def emscripten_module():
    return base64.b64decode(EMSCRIPTEN_MODULE_B64)


@pytest.fixture
def claims(account, module_key):
    return Claims(
        issuer=account.encode_public(),
        subject=module_key.encode_public(),
        name="echo",
        version="0.1.0",
        revision=1,
        capabilities={"wascc:messaging", "wascc:keyvalue"},
        tags={"test"},
    )
