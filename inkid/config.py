# inkid/config.py
"""
Centralized configuration for inkid.

All configurable values are read from environment variables with sensible defaults.

Usage:
    from inkid.config import RSA_KEY_SIZE, PAYLOAD_INDENT

Environment Variables:
    INKID_RSA_KEY_SIZE: Modulus size for new identities (default: 2048)
    INKID_PAYLOAD_INDENT: Indentation of the signed payload bytes (default: 5)
    INKID_EMBED_PUBLIC_KEY: Embed the signer's JWK in signature headers (default: true)
"""

import os
from typing import Final


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# =============================================================================
# Key Configuration
# =============================================================================

# Smallest modulus accepted for new identities
MIN_RSA_KEY_SIZE: Final[int] = 2048

RSA_KEY_SIZE: Final[int] = int(os.getenv("INKID_RSA_KEY_SIZE", "2048"))

# =============================================================================
# Signing Configuration
# =============================================================================

# Signer and verifier must agree on this, the signed bytes depend on it
PAYLOAD_INDENT: Final[int] = int(os.getenv("INKID_PAYLOAD_INDENT", "5"))

EMBED_PUBLIC_KEY: Final[bool] = _env_bool("INKID_EMBED_PUBLIC_KEY", "true")


def print_config() -> None:
    """Print current configuration (useful for debugging)."""
    print("inkid Configuration:")
    print(f"  RSA_KEY_SIZE:     {RSA_KEY_SIZE}")
    print(f"  PAYLOAD_INDENT:   {PAYLOAD_INDENT}")
    print(f"  EMBED_PUBLIC_KEY: {EMBED_PUBLIC_KEY}")


if __name__ == "__main__":
    print_config()
