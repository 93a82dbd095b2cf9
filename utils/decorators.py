"""
Access middleware for protected routes.

jwt_required() checks the access token statelessly (signature, expiry, type;
no database read) and puts an Identity on flask.g before calling the view.
It never refreshes a token: an expired access token is a 401 and the client
calls /refresh-token itself.
"""
from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Optional

from flask import current_app, g, request

from api.errors import unwrap
from utils.results import ErrorKind, Result
from utils.tokens import ACCESS, AuthSettings, INVALID_ACCESS_TOKEN, TokenIssuer


@dataclass(frozen=True)
class Identity:
    principal_id: str


@dataclass(frozen=True)
class RequestCredentials:
    """The parts of an HTTP request the auth core reads."""
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None

    @classmethod
    def from_request(cls, req, settings: AuthSettings) -> "RequestCredentials":
        access = req.cookies.get(settings.access_cookie)
        if not access:
            auth = req.headers.get("Authorization", "")
            if auth.startswith("Bearer "):
                access = auth.split(" ", 1)[1].strip() or None

        refresh = req.cookies.get(settings.refresh_cookie)
        if not refresh:
            body = req.get_json(silent=True)
            if isinstance(body, dict) and isinstance(body.get("refreshToken"), str):
                refresh = body["refreshToken"] or None
        return cls(access_token=access, refresh_token=refresh)


def get_token_issuer() -> TokenIssuer:
    return current_app.extensions["token_issuer"]


def authenticate(credentials: RequestCredentials, issuer: TokenIssuer) -> Result[Identity]:
    if not credentials.access_token:
        return Result.failure(ErrorKind.AUTHENTICATION, INVALID_ACCESS_TOKEN)
    checked = issuer.verify(credentials.access_token, ACCESS)
    if not checked.ok:
        return Result.failure(checked.error, checked.message)
    return Result.success(Identity(principal_id=checked.value.subject))


def jwt_required():
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            issuer = get_token_issuer()
            credentials = RequestCredentials.from_request(request, issuer.settings)
            g.identity = unwrap(authenticate(credentials, issuer))
            return fn(*args, **kwargs)

        return wrapper

    return decorator
