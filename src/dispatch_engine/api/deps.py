"""Request-scoped dependencies: caller identity and role checks."""

from __future__ import annotations

from typing import Callable, Iterable

from fastapi import Depends, Header, HTTPException, status

from ..errors import AuthorizationError
from ..models.domain import Actor

ROLE_ADMIN = "ADMIN"
ROLE_DRIVER = "DRIVER"


def get_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
) -> Actor:
    """Build the caller from the headers forwarded by the identity gateway."""
    if not x_actor_id or not x_actor_role:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Caller identity is missing.")
    try:
        actor_id = int(x_actor_id)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Caller identity is malformed."
        ) from exc
    return Actor(actor_id=actor_id, role=x_actor_role.strip().upper())


def ensure_role(actor: Actor, allowed: Iterable[str]) -> Actor:
    if actor.role not in allowed:
        raise AuthorizationError(f"Role {actor.role} may not perform this action.")
    return actor


def require_roles(*roles: str) -> Callable[..., Actor]:
    allowed = frozenset(role.upper() for role in roles)

    def dependency(actor: Actor = Depends(get_actor)) -> Actor:
        try:
            return ensure_role(actor, allowed)
        except AuthorizationError as exc:
            raise HTTPException(status_code=exc.status_code, detail=str(exc)) from exc

    return dependency
