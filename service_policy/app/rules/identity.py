"""
Text to numeric identity mapping.
"""

import hashlib

# Identities stay within 53 bits so they survive a round trip through JSON
# clients that store numbers as doubles.
IDENTITY_MASK = 0x1FFFFFFFFFFFFF


def identity_of(text: str) -> int:
    """Map a vendor, category or recipient name to its numeric identity.

    The identity is the first 8 bytes of the SHA-256 digest of the UTF-8 text,
    read big-endian and masked to 53 bits.
    """
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") & IDENTITY_MASK
