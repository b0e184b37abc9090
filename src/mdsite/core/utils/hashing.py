"""SHA-256 content hashing for image variant file names"""

import hashlib


def sha256(content: str) -> str:
    """Return hex-encoded SHA-256 hash of content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def file_digest(data: bytes, length: int = 10) -> str:
    """Return a shortened SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()[:length]
