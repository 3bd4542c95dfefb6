"""Bearer tokens for operators.

Tokens are short-lived HS256 JWTs whose subject is the operator's email and
whose ``role`` claim feeds the mutation permission check.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel, ValidationError

from .config import settings

ALGORITHM = "HS256"
AUDIENCE = "stock-audit-clients"
ISSUER = "stock-audit"


class TokenError(ValueError):
    """The bearer token is malformed, expired, or signed for someone else."""


class TokenPayload(BaseModel):
    sub: str
    role: Optional[str] = None
    exp: datetime
    iat: datetime


def issue_access_token(email: str, role: str | None = None, expires_delta: timedelta | None = None) -> str:
    issued = datetime.now(tz=timezone.utc)
    lifetime = expires_delta if expires_delta is not None else timedelta(minutes=settings.JWT_ACCESS_TTL_MIN)
    claims = {
        "iss": ISSUER,
        "aud": AUDIENCE,
        "sub": email,
        "iat": int(issued.timestamp()),
        "exp": int((issued + lifetime).timestamp()),
    }
    if role:
        claims["role"] = role
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: str) -> TokenPayload:
    try:
        claims = jwt.decode(token, settings.JWT_SECRET, algorithms=[ALGORITHM], audience=AUDIENCE, issuer=ISSUER)
        return TokenPayload.model_validate(claims)
    except JWTError as exc:
        raise TokenError("Invalid or expired token") from exc
    except ValidationError as exc:
        raise TokenError("Token is missing required claims") from exc
