from __future__ import annotations

from hashlib import sha256


def sha256_text(text: str) -> str:
    return sha256(text.encode("utf-8")).hexdigest()


def short_digest(text: str, length: int = 12) -> str:
    """Prefix of the sha256 hex digest, for log lines and CLI output."""
    return sha256_text(text)[:length]
