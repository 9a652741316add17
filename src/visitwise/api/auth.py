"""API authentication: resolve the calling user from a JWT Bearer token."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import jwt as pyjwt
from fastapi import Header, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

if TYPE_CHECKING:
    from visitwise.core.config import AuthConfig

log = logging.getLogger(__name__)

_bearer_scheme = HTTPBearer(auto_error=False)


async def require_caller(
    request: Request,
    bearer: Optional[HTTPAuthorizationCredentials] = Security(_bearer_scheme),
    x_caller_id: Optional[str] = Header(default=None),
) -> str:
    """Return the authenticated caller id.

    With auth disabled (local development) the ``X-Caller-Id`` header is
    trusted as-is.
    """
    config: AuthConfig = request.app.state.settings.auth

    if not config.enabled:
        if x_caller_id:
            return x_caller_id
        raise HTTPException(status_code=401, detail="X-Caller-Id header is required.")

    if bearer is None:
        raise HTTPException(
            status_code=401,
            detail="Authentication required. Provide a Bearer token.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _validate_jwt(bearer.credentials, config)


def _validate_jwt(token: str, config: AuthConfig) -> str:
    """Verify the token and return its caller claim."""
    try:
        if config.jwks_url:
            jwk_client = pyjwt.PyJWKClient(config.jwks_url)
            key = jwk_client.get_signing_key_from_jwt(token).key
        else:
            key = config.shared_secret
        payload = pyjwt.decode(
            token,
            key=key,
            algorithms=[config.algorithm],
            audience=config.audience or None,
            issuer=config.issuer or None,
        )
    except pyjwt.PyJWTError as e:
        log.warning("JWT validation failed: %s", e)
        raise HTTPException(status_code=401, detail=f"Invalid token: {e}")

    caller = payload.get(config.caller_claim)
    if not caller:
        raise HTTPException(status_code=401, detail=f"Token has no {config.caller_claim!r} claim")
    return str(caller)
