"""
Wascap hashing.

Module digests are SHA-256 rendered as uppercase hexadecimal. Comparisons
ignore case so digests produced by other tools still match.
"""

import hashlib
from typing import Optional, Union


def sha256_hex(data: Union[bytes, str]) -> str:
    """Compute SHA-256 hash and return as uppercase hex string."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest().upper()


def hashes_match(declared: Optional[str], computed: str) -> bool:
    """
    Compare a declared module hash against a recomputed one.

    An empty or missing declaration never matches.
    """
    if not declared:
        return False
    return declared.strip().upper() == computed.strip().upper()
