from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Dict, Optional

from flask import current_app, g, request
from jose import JWTError, jwt

from quizcraft.errors import AppError

logger = logging.getLogger(__name__)

TOKEN_AUDIENCE = "authenticated"


def _bearer_token() -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def decode_access_token(token: str, secret: str) -> Dict[str, Any]:
    return jwt.decode(token, secret, algorithms=["HS256"], audience=TOKEN_AUDIENCE)


def current_user_id() -> Optional[str]:
    """User id from the bearer token, resolved once per request and cached on ``g``."""
    if "user_id" in g:
        return g.user_id

    user_id = None
    token = _bearer_token()
    secret = current_app.extensions["settings"].supabase_jwt_secret
    if token and secret:
        try:
            claims = decode_access_token(token, secret)
        except JWTError as exc:
            logger.info("Rejected access token: %s", exc)
        else:
            user_id = claims.get("sub") or None
    g.user_id = user_id
    return user_id


def require_auth(view: Callable) -> Callable:
    @wraps(view)
    def wrapper(*args, **kwargs):
        if _bearer_token() is None:
            raise AppError("Access token required", 401)
        if not current_app.extensions["settings"].supabase_jwt_secret:
            logger.error("SUPABASE_JWT_SECRET is not set; cannot verify access tokens")
            raise AppError("JWT secret not configured", 500)
        if current_user_id() is None:
            raise AppError("Invalid access token", 401)
        return view(*args, **kwargs)

    return wrapper
