"""
JWT helpers (python-jose).

Tokens are HS256-signed by default and carry the user id in ``sub``.
Issuing tokens is only needed by the seed script and tests; the realtime
authenticator only ever verifies them.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt

from taxitour.config import settings
from taxitour.domain.enums import ErrorKind


class InvalidTokenError(Exception):
    def __init__(self, kind: ErrorKind, message: str = "Invalid token"):
        super().__init__(message)
        self.kind = kind


def create_access_token(
    subject: str,
    expires_delta: Optional[timedelta] = None,
    *,
    secret_key: str | None = None,
    algorithm: str | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    return jwt.encode(
        {"sub": subject, "exp": expire},
        secret_key or settings.jwt_secret_key,
        algorithm=algorithm or settings.jwt_algorithm,
    )


class TokenVerifier:
    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def verify(self, token: str) -> str:
        """Check signature and expiry, return the ``sub`` claim."""
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise InvalidTokenError(ErrorKind.TOKEN_EXPIRED, "Token expired") from exc
        except JWTError as exc:
            raise InvalidTokenError(ErrorKind.INVALID_TOKEN) from exc

        subject = payload.get("sub")
        if not subject:
            raise InvalidTokenError(ErrorKind.INVALID_TOKEN, "Token has no subject")
        return str(subject)
