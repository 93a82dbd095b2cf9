"""
Token issuing and verification.

AuthSettings is built once at startup from the Flask config and handed to a
TokenIssuer; the issuer lives on app.extensions["token_issuer"]. Access and
refresh tokens are both HS256 JWTs (PyJWT) carrying sub/iat/exp/type/jti/iss.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional
import logging

import jwt

from utils.results import ErrorKind, Result
from utils.security import generate_jti

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"

INVALID_ACCESS_TOKEN = "Invalid or expired access token"
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"


class ConfigurationError(RuntimeError):
    """Raised at startup when the signing configuration is unusable."""


@dataclass(frozen=True)
class AuthSettings:
    access_secret: str
    refresh_secret: str
    algorithm: str = "HS256"
    issuer: str = "channel-api"
    access_token_ttl: timedelta = timedelta(minutes=15)
    refresh_token_ttl: timedelta = timedelta(days=10)
    access_cookie: str = "accessToken"
    refresh_cookie: str = "refreshToken"
    cookie_secure: bool = True
    cookie_samesite: str = "Strict"

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "AuthSettings":
        secret = config.get("JWT_SECRET")
        access_secret = config.get("JWT_ACCESS_SECRET") or secret
        refresh_secret = config.get("JWT_REFRESH_SECRET") or secret
        if not access_secret or not refresh_secret:
            raise ConfigurationError("JWT signing key is not configured")
        settings = cls(
            access_secret=access_secret,
            refresh_secret=refresh_secret,
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            issuer=config.get("JWT_ISSUER", "channel-api"),
            access_token_ttl=config.get("ACCESS_TOKEN_EXPIRES", timedelta(minutes=15)),
            refresh_token_ttl=config.get("REFRESH_TOKEN_EXPIRES", timedelta(days=10)),
            cookie_secure=bool(config.get("AUTH_COOKIE_SECURE", True)),
            cookie_samesite=config.get("AUTH_COOKIE_SAMESITE", "Strict"),
        )
        if settings.access_token_ttl >= settings.refresh_token_ttl:
            raise ConfigurationError("access token lifetime must be shorter than refresh token lifetime")
        return settings


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    kind: str
    issued_at: int
    expires_at: int
    jti: str
    extra: Dict[str, Any]


class TokenIssuer:
    def __init__(self, settings: AuthSettings):
        self.settings = settings

    def _secret(self, kind: str) -> str:
        return self.settings.access_secret if kind == ACCESS else self.settings.refresh_secret

    def _ttl(self, kind: str) -> timedelta:
        return self.settings.access_token_ttl if kind == ACCESS else self.settings.refresh_token_ttl

    def _encode(self, subject: str, kind: str, now: datetime, extra: Optional[Dict[str, Any]] = None) -> str:
        payload = dict(extra or {})
        payload.update({
            "iss": self.settings.issuer,
            "sub": str(subject),
            "iat": int(now.timestamp()),
            "exp": int((now + self._ttl(kind)).timestamp()),
            "type": kind,
            "jti": generate_jti(),
        })
        return jwt.encode(payload, self._secret(kind), algorithm=self.settings.algorithm)

    def issue(self, principal_id: str, extra_claims: Optional[Dict[str, Any]] = None,
              now: Optional[datetime] = None) -> TokenPair:
        """Mint an access/refresh pair for a principal.

        extra_claims are copied into the access token only. The caller is
        responsible for persisting the refresh token.
        """
        now = now or datetime.now(timezone.utc)
        return TokenPair(
            access_token=self._encode(principal_id, ACCESS, now, extra_claims),
            refresh_token=self._encode(principal_id, REFRESH, now),
        )

    def verify(self, token: Optional[str], kind: str) -> Result[TokenClaims]:
        """
        Decode and validate a JWT of the expected kind ("access" or "refresh").
        Every failure maps to the same AUTHENTICATION error message.
        """
        message = INVALID_ACCESS_TOKEN if kind == ACCESS else INVALID_REFRESH_TOKEN
        if not token:
            return Result.failure(ErrorKind.AUTHENTICATION, message)
        try:
            decoded = jwt.decode(
                token,
                self._secret(kind),
                algorithms=[self.settings.algorithm],
                issuer=self.settings.issuer,
                options={"require": ["sub", "iat", "exp", "type", "jti"]},
            )
        except jwt.ExpiredSignatureError:
            logger.info("rejected %s token: expired", kind)
            return Result.failure(ErrorKind.AUTHENTICATION, message)
        except (jwt.InvalidTokenError, ValueError) as exc:
            # ValueError covers strings PyJWT cannot utf-8 encode (lone surrogates)
            logger.info("rejected %s token: %s", kind, exc.__class__.__name__)
            return Result.failure(ErrorKind.AUTHENTICATION, message)

        if decoded.get("type") != kind or not decoded.get("sub"):
            logger.info("rejected %s token: wrong type or empty subject", kind)
            return Result.failure(ErrorKind.AUTHENTICATION, message)

        reserved = ("sub", "iat", "exp", "type", "jti", "iss")
        return Result.success(TokenClaims(
            subject=str(decoded["sub"]),
            kind=decoded["type"],
            issued_at=int(decoded["iat"]),
            expires_at=int(decoded["exp"]),
            jti=str(decoded["jti"]),
            extra={k: v for k, v in decoded.items() if k not in reserved},
        ))
