"""
auth/dependencies.py -- FastAPI Depends() helpers for bearer authentication.

This is the authentication check that sits in front of protected routes. It
runs before the Session Manager is invoked and only ever looks at the access
token: signature against the access secret, token type, and exp. It never
touches a store -- access tokens are not persisted.

require_access_token() raises UnauthenticatedError, which the
app's exception handler renders as 401.

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.errors import UnauthenticatedError
from auth.models import AccessClaims
from auth.tokens import TokenSigner


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_access_token(request: Request) -> AccessClaims:
    """Require a valid bearer access token.

    Use as a FastAPI dependency:
        @router.post("/protected")
        def route(claims: AccessClaims = Depends(require_access_token)): ...
    """
    token = _bearer_token(request)
    if token is None:
        raise UnauthenticatedError("Access token required")
    signer: TokenSigner = request.app.state.signer
    claims = signer.decode_access_token(token)
    if claims is None:
        raise UnauthenticatedError("Invalid or expired access token")
    return claims
