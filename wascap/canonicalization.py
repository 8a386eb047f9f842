"""
Wascap canonical JSON encoding.

Two logically identical documents always produce identical bytes, so a
verifier can re-derive exactly what an issuer signed.
"""

import json
from typing import Any, Dict, List, Union


def canonicalize(obj: Any) -> bytes:
    """
    Convert an object to canonical JSON bytes.

    Rules:
    - Object keys sorted lexicographically (Unicode code point order)
    - No whitespace between tokens (compact form)
    - UTF-8 encoding, no BOM
    - Sets and frozensets are emitted as sorted arrays
    - Arrays preserve order

    Returns:
        UTF-8 encoded bytes of canonical JSON

    Raises:
        ValueError: if the object holds a value JSON cannot represent
    """
    canonical = _canonicalize_value(obj)
    return json.dumps(canonical, separators=(',', ':'), ensure_ascii=False).encode('utf-8')


def _canonicalize_value(value: Any) -> Any:
    """Recursively canonicalize a value."""
    if value is None:
        return None
    elif isinstance(value, bool):
        return value
    elif isinstance(value, float):
        if value != value or value in (float('inf'), float('-inf')):
            raise ValueError(f"Cannot canonicalize non-finite number: {value}")
        return value
    elif isinstance(value, (int, str)):
        return value
    elif isinstance(value, dict):
        return _canonicalize_object(value)
    elif isinstance(value, (set, frozenset)):
        return sorted(_canonicalize_value(item) for item in value)
    elif isinstance(value, (list, tuple)):
        return _canonicalize_array(value)
    else:
        raise ValueError(f"Cannot canonicalize type: {type(value)}")


def _canonicalize_object(obj: Dict[str, Any]) -> Dict[str, Any]:
    """Canonicalize an object by sorting keys lexicographically."""
    for key in obj:
        if not isinstance(key, str):
            raise ValueError(f"Object keys must be strings, got {type(key)}")
    return {k: _canonicalize_value(obj[k]) for k in sorted(obj.keys())}


def _canonicalize_array(arr: Union[List, tuple]) -> List:
    """Canonicalize an array, preserving order."""
    return [_canonicalize_value(item) for item in arr]
