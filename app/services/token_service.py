"""Access tokens issued by the in-memory identity provider (ES256 JWTs).

The hosted provider issues its own tokens; these exist so dev and tests
exercise the same bearer-token shape without a network dependency.

Claims: sub (email), name, avatar, iss, aud, exp, iat, jti.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from cryptography.hazmat.primitives.asymmetric import ec

# Dev/test: an ephemeral EC key pair generated on import.
_private_key = ec.generate_private_key(ec.SECP256R1())
_public_key = _private_key.public_key()

ALGORITHM = "ES256"
ISSUER = "ministry-service-identity"
AUDIENCE = "ministry-service"
ACCESS_TOKEN_TTL_SECONDS = 3600

_REQUIRED_CLAIMS = ["sub", "exp", "iat", "jti"]


def create_access_token(
    *,
    email: str,
    name: str | None = None,
    avatar_url: str | None = None,
    ttl_seconds: int = ACCESS_TOKEN_TTL_SECONDS,
) -> str:
    now = datetime.now(UTC)
    payload: dict[str, Any] = {
        "sub": email,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + timedelta(seconds=ttl_seconds),
        "iat": now,
        "jti": str(uuid.uuid4()),
    }
    if name:
        payload["name"] = name
    if avatar_url:
        payload["avatar"] = avatar_url
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str, *, verify_exp: bool = True) -> dict[str, Any]:
    """Verify signature and claims, return the payload.

    Pins the algorithm to ES256 to prevent alg:none and alg-switching.
    ``verify_exp=False`` is only for sign-out, which must accept a token
    that expired a moment ago.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": _REQUIRED_CLAIMS, "verify_exp": verify_exp},
    )
