from __future__ import annotations

from fastapi import Header, HTTPException, Request, status
from fastapi.security.utils import get_authorization_scheme_param

from ..core.permissions import Identity
from ..core.security import TokenError, decode_token
from ..middlewares import principal_ctx_var


def _unauthorized(detail: str = "Unauthorized") -> None:
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_identity(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> Identity:
    """Decode the bearer token into the operator's identity.

    Role checks are left to the services so that read-only users can still
    browse the audit working set.
    """

    if not authorization:
        _unauthorized("Authorization required")
    scheme, credentials = get_authorization_scheme_param(authorization)
    if scheme.lower() != "bearer" or not credentials:
        _unauthorized("Bearer token required")
    try:
        payload = decode_token(credentials)
    except TokenError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc)) from exc
    principal_ctx_var.set(payload.sub)
    request.state.principal = payload.sub
    return Identity(email=payload.sub, role=payload.role)
