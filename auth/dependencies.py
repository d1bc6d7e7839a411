"""
auth/dependencies.py -- FastAPI Depends() helpers for sessions.

Sessions are stateless bearer JWTs: the client sends
Authorization: Bearer <token>. No cookies are read or issued.

get_auth_service() returns the AuthService built at startup.
get_current_user() resolves the bearer token to a User or raises
UnauthorizedError (mapped to 401 by api/main.py).

Layer rule: may import from fastapi because this module is part of the
FastAPI dependency injection system. No imports from api/ or core/.
"""

from __future__ import annotations

from fastapi import Request

from auth.models import User
from auth.service import AuthService


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return None


def get_current_user(request: Request) -> User:
    """Require a valid session token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    return get_auth_service(request).current_user(_bearer_token(request))
