"""Constant-time comparison and hex helpers for signature digests."""

import re
from typing import Sequence

from hubauth.errors import InvalidSignatureEncoding

_HEX_RE = re.compile(r"[0-9a-fA-F]*")


def secret_equal(a: Sequence[int] | None, b: Sequence[int] | None) -> bool:
    """Compare two digests in time independent of where they differ.

    Lengths are not secret, so a length mismatch returns early. When the
    lengths match, every byte of both inputs is read exactly once and the
    differences are OR-ed into a single accumulator.

    Args:
        a: First digest
        b: Second digest

    Returns:
        True if both digests hold the same bytes
    """
    if a is b:
        return True
    if a is None or b is None or len(a) != len(b):
        return False

    result = 0
    for i in range(len(a)):
        result |= a[i] ^ b[i]
    return result == 0


def from_hex(content: str) -> bytes:
    """Decode a hex digest.

    Args:
        content: Hex string (either case)

    Returns:
        Decoded bytes, empty for an empty string

    Raises:
        InvalidSignatureEncoding: If the string has odd length or non-hex characters
    """
    if not content:
        return b""

    if len(content) % 2 != 0:
        raise InvalidSignatureEncoding(content, "odd length")

    # bytes.fromhex tolerates whitespace, the platform never sends any
    if not _HEX_RE.fullmatch(content):
        raise InvalidSignatureEncoding(content, "non-hex characters")

    return bytes.fromhex(content)


def to_hex(data: bytes) -> str:
    """Encode bytes as lowercase hex."""
    return data.hex()
