from __future__ import annotations

import ipaddress

from flask import current_app, request
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from quizcraft.auth import current_user_id


def _client_ip() -> str:
    """
    Prefer Cloudflare's client IP header when present and well formed,
    and fall back to the direct remote address otherwise.
    """
    candidate = (request.headers.get("CF-Connecting-IP") or "").strip()
    if candidate:
        try:
            return str(ipaddress.ip_address(candidate))
        except ValueError:
            pass
    return get_remote_address() or "unknown"


def rate_limit_key() -> str:
    user_id = current_user_id()
    if user_id:
        return f"user:{user_id}"
    return f"ip:{_client_ip()}"


def rate_limits_disabled() -> bool:
    return current_app.extensions["settings"].rate_limits_disabled()


limiter = Limiter(key_func=rate_limit_key, storage_uri="memory://")
