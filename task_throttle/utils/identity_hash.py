"""Client identity hashing for rate limit bucket keys.

Raw client addresses never reach the counter store or the logs: they are
digested first, optionally keyed by a deployment secret.
"""

from __future__ import annotations

import hashlib
import hmac

DEFAULT_NAMESPACE = "rate-limit"


def hash_identity(raw_identity: str, *, salt: str | None = None) -> str:
    """Derive a fixed-length, one-way digest from a client identity.

    Args:
        raw_identity: Client identifier, typically an IP address.
        salt: Optional secret; when set the digest is an HMAC-SHA-256 keyed by it.

    Returns:
        Hex-encoded SHA-256 digest (64 characters).

    Examples:
        >>> len(hash_identity("1.2.3.4"))
        64
        >>> hash_identity("1.2.3.4") == hash_identity("1.2.3.4")
        True
    """

    data = raw_identity.encode()
    if salt:
        return hmac.new(salt.encode(), data, hashlib.sha256).hexdigest()
    return hashlib.sha256(data).hexdigest()


def build_bucket_key(namespace: str, hashed_identity: str) -> str:
    """Namespace a hashed identity into a counter store key."""

    return f"{namespace}:{hashed_identity}"
