"""
Wascap constant tables.

Immutable protocol data shared by every component: key role prefix bytes,
the token header, and the WebAssembly container preamble.
"""

# ============================================================
# Key prefixes
# ============================================================

# Prefix bytes are the 5-bit base32 index of the role letter shifted left by
# three, so the first character of an encoded key is the role letter.
PREFIX_BYTE_SEED = 18 << 3      # 'S'
PREFIX_BYTE_ACCOUNT = 0         # 'A'
PREFIX_BYTE_CLUSTER = 2 << 3    # 'C'
PREFIX_BYTE_MODULE = 12 << 3    # 'M'
PREFIX_BYTE_SERVER = 13 << 3    # 'N'
PREFIX_BYTE_OPERATOR = 14 << 3  # 'O'
PREFIX_BYTE_USER = 20 << 3      # 'U'
PREFIX_BYTE_CURVE = 23 << 3     # 'X'

KEY_LENGTH = 32
SIGNATURE_LENGTH = 64
CRC_LENGTH = 2

# ============================================================
# Token
# ============================================================

TOKEN_TYPE = "jwt"
TOKEN_ALGORITHM = "EdDSA"
TOKEN_HEADER = {"type": TOKEN_TYPE, "alg": TOKEN_ALGORITHM}

# ============================================================
# WebAssembly container
# ============================================================

WASM_MAGIC = b"\x00asm"
WASM_VERSION = 1
PREAMBLE_LENGTH = 8
CUSTOM_SECTION_ID = 0
MAX_VARUINT32_BYTES = 5

SECTION_KINDS = {
    0: "custom",
    1: "type",
    2: "import",
    3: "function",
    4: "table",
    5: "memory",
    6: "global",
    7: "export",
    8: "start",
    9: "element",
    10: "code",
    11: "data",
    12: "datacount",
}

DEFAULT_SECTION_NAME = "jwt"

SECS_PER_DAY = 86400
