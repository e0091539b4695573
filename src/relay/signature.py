"""
HMAC signature helpers for inbound verification and outbound signing.

Every verifier returns a plain bool and never raises, so the server can
turn any failure into a 403 without special cases.
"""

import hashlib
import hmac
import json
from typing import Mapping, Optional

GITHUB_SIGNATURE_256_HEADER = "X-Hub-Signature-256"
GITHUB_SIGNATURE_HEADER = "X-Hub-Signature"
GITEA_SIGNATURE_HEADER = "X-Gitea-Signature"


def compute_signature(secret: str, body: bytes, algorithm: str = "sha256") -> str:
    """Return the hex HMAC digest of ``body`` keyed with ``secret``."""
    return hmac.new(secret.encode(), body, getattr(hashlib, algorithm)).hexdigest()


def verify_signature(
    secret: Optional[str],
    signature: Optional[str],
    body: bytes,
    algorithm: str = "sha256",
    prefix: str = "",
) -> bool:
    """
    Compare a claimed signature with the expected HMAC of ``body``.

    Args:
        secret: Shared secret; an empty or missing secret never verifies
        signature: Signature taken from the request header
        body: Raw request body
        algorithm: hashlib digest name
        prefix: Scheme prefix such as ``sha256=``

    Returns:
        bool: True only when the signatures match
    """
    if not secret or not signature:
        return False
    try:
        claimed = signature.encode("ascii")
    except UnicodeEncodeError:
        return False
    expected = (prefix + compute_signature(secret, body, algorithm)).encode("ascii")
    return hmac.compare_digest(claimed, expected)


def verify_github_signature(secret: Optional[str], headers: Mapping[str, str], body: bytes) -> bool:
    """Verify a GitHub delivery, preferring SHA-256 over the legacy SHA-1 header."""
    signature_256 = headers.get(GITHUB_SIGNATURE_256_HEADER)
    if signature_256:
        return verify_signature(secret, signature_256, body, "sha256", "sha256=")
    return verify_signature(secret, headers.get(GITHUB_SIGNATURE_HEADER), body, "sha1", "sha1=")


def verify_gitea_signature(secret: Optional[str], headers: Mapping[str, str], body: bytes) -> bool:
    """Verify a Gitea delivery signed with an unprefixed HMAC-SHA256."""
    return verify_signature(secret, headers.get(GITEA_SIGNATURE_HEADER), body, "sha256")


def verify_gitea_body_secret(secret: Optional[str], body: bytes) -> bool:
    """Check the plaintext ``secret`` field old Gitea releases put in the payload."""
    if not secret:
        return False
    try:
        payload = json.loads(body)
    except ValueError:
        return False
    claimed = payload.get("secret") if isinstance(payload, dict) else None
    if not isinstance(claimed, str):
        return False
    return hmac.compare_digest(claimed.encode(), secret.encode())


def sign_message(secret: str, text: str) -> str:
    """Signature for the X-TRAQ-Signature header."""
    return compute_signature(secret, text.encode("utf-8"), "sha1")
