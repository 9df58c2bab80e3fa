"""Content hashing: cheap fingerprints for conflict detection, SHA-256 for backups"""

import hashlib


EMPTY_FINGERPRINT = "0"


def fingerprint(content: str) -> str:
    """Return a 32-bit rolling hash (h*31 + c over UTF-16 code units) as hex.

    Not cryptographic; only used to notice that a note changed between read and write.
    """
    if not content:
        return EMPTY_FINGERPRINT
    h = 0
    data = content.encode("utf-16-le")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return format(abs(h), "x")


def sha256(content: str) -> str:
    """Return hex-encoded SHA-256 hash of content (64 chars, matches String(64) column)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
