"""
Configuration module for wascap.

Environment variables are read once at import and exposed as constants.
The library core takes every setting as an explicit argument; these values
are the defaults the command line passes in.
"""

import os
from typing import Optional

from .constants import DEFAULT_SECTION_NAME

# ============================================================
# Environment Configuration
# ============================================================

ENV = os.getenv("WASCAP_ENV", "dev")  # dev|stage|prod

# Custom section carrying the token
SECTION_NAME = os.getenv("WASCAP_SECTION_NAME", DEFAULT_SECTION_NAME)

# Logging
LOG_LEVEL = os.getenv("WASCAP_LOG_LEVEL", "WARNING")
LOG_JSON = os.getenv("WASCAP_LOG_JSON", "true").lower() in ("1", "true", "yes")
LOG_FILE: Optional[str] = os.getenv("WASCAP_LOG_FILE") or None

# Signing seeds (encoded, e.g. "SA..." / "SM...")
ACCOUNT_SEED: Optional[str] = os.getenv("WASCAP_ACCOUNT_SEED") or None
MODULE_SEED: Optional[str] = os.getenv("WASCAP_MODULE_SEED") or None


# ============================================================
# Feature Flags
# ============================================================

def is_production() -> bool:
    """Check if running in production mode."""
    return ENV == "prod"


def is_debug() -> bool:
    """Check if debug mode is enabled."""
    return os.getenv("WASCAP_DEBUG", "").lower() in ("1", "true", "yes")
