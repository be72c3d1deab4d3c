"""Admin bearer token verification.

Tokens are HS256 JWTs issued elsewhere; this module only verifies them and
checks the role claim.
"""

from typing import Any

import jwt
import structlog

logger = structlog.get_logger()

ADMIN_ROLE = "admin"


class AuthenticationError(Exception):
    """Token missing, malformed, expired or signed with another key."""

    pass


class PermissionDeniedError(Exception):
    """Token valid but its role does not grant the requested access."""

    pass


def decode_token(token: str, secret: str, algorithm: str = "HS256") -> dict[str, Any]:
    """Decode and verify a JWT.

    Raises:
        AuthenticationError: Token is invalid or expired
    """
    if not secret:
        raise AuthenticationError("Token verification is not configured")
    try:
        return jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError as e:
        raise AuthenticationError("Token expired") from e
    except jwt.InvalidTokenError as e:
        logger.warning("auth.token_invalid", error=str(e))
        raise AuthenticationError(f"Invalid token: {e}") from e


def verify_admin_token(token: str, secret: str, algorithm: str = "HS256") -> dict[str, Any]:
    """Verify a JWT and require the admin role.

    Returns:
        Decoded claims

    Raises:
        AuthenticationError: Token is invalid or expired
        PermissionDeniedError: Role claim is not admin
    """
    claims = decode_token(token, secret, algorithm)
    if claims.get("role") != ADMIN_ROLE:
        raise PermissionDeniedError(f"Role {claims.get('role')!r} may not perform admin actions")
    return claims
