from __future__ import annotations

import base64
import hashlib
import hmac
import secrets

# PKCE (RFC 7636) helpers for the OAuth sign-in flow. Only the S256
# challenge method is supported.


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def generate_code_verifier() -> str:
    # 32 random bytes -> 43 base64url chars, the minimum verifier length.
    return _b64url(secrets.token_bytes(32))


def generate_state() -> str:
    """Opaque anti-CSRF value echoed back by the provider on the callback."""
    return secrets.token_urlsafe(24)


def compute_code_challenge(code_verifier: str) -> str:
    return _b64url(hashlib.sha256(code_verifier.encode("utf-8")).digest())


def verify_code_challenge(code_verifier: str, expected_challenge: str) -> bool:
    """Constant-time comparison of the derived and the stored challenge."""
    actual = compute_code_challenge(code_verifier)
    return hmac.compare_digest(actual.encode(), expected_challenge.encode())


def states_match(expected: str, received: str | None) -> bool:
    if received is None:
        return False
    return hmac.compare_digest(expected.encode(), received.encode())
