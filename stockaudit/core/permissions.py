from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Protocol

from .config import settings
from .errors import PermissionDenied

logger = logging.getLogger(__name__)


class IdentityContext(Protocol):
    def current_user_email(self) -> str | None: ...

    def current_user_role(self) -> str | None: ...


@dataclass(frozen=True)
class Identity:
    """The signed-in operator as seen by the engine."""

    email: str | None = None
    role: str | None = None

    def current_user_email(self) -> str | None:
        return self.email

    def current_user_role(self) -> str | None:
        return self.role


def require_mutation_rights(
    identity: IdentityContext | None,
    allowed_roles: Iterable[str] | None = None,
) -> str:
    """Return the acting email or raise ``PermissionDenied``.

    Runs before any data-source call so a refused operator never causes I/O.
    """

    roles = set(allowed_roles if allowed_roles is not None else settings.MUTATION_ROLES)
    email = identity.current_user_email() if identity is not None else None
    role = identity.current_user_role() if identity is not None else None
    if not email:
        logger.warning("permission.denied", extra={"extra_data": {"reason": "no_email"}})
        raise PermissionDenied("No signed-in user; sign in to update asset checks")
    if not role:
        logger.warning("permission.denied", extra={"extra_data": {"reason": "no_role", "email": email}})
        raise PermissionDenied(f"User {email} has no role assigned")
    if role not in roles:
        logger.warning(
            "permission.denied",
            extra={"extra_data": {"reason": "role", "email": email, "role": role}},
        )
        raise PermissionDenied(f"Role {role} may not update asset checks")
    return email
