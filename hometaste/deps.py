"""
FastAPI dependencies: the store and the calling principal.
Tests override these through app.dependency_overrides.
"""
from fastapi import Depends, Header

from hometaste.access import Denied, check_access
from hometaste.db import PostgresStore, get_pool
from hometaste.domain import Principal, Role
from hometaste.errors import UnauthenticatedError, UnauthorizedError
from hometaste.redis_client import get_session_user


async def get_store() -> PostgresStore:
    return PostgresStore(await get_pool())


async def get_current_principal(
    authorization: str | None = Header(default=None),
    store: PostgresStore = Depends(get_store),
) -> Principal:
    """Bearer session token -> Principal. Role is None when the user has no profile yet."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise UnauthenticatedError("missing bearer token")
    user_id = await get_session_user(token)
    if user_id is None:
        raise UnauthenticatedError("session expired or unknown")
    profile = await store.fetch_profile(user_id)
    return Principal(id=user_id, role=profile.role if profile else None)


def require_role(role: Role, path: str | None = None):
    """Dependency factory: the current principal, if check_access allows it into role's pages."""

    async def _dependency(principal: Principal = Depends(get_current_principal)) -> Principal:
        decision = check_access(principal, role, path)
        if isinstance(decision, Denied):
            raise UnauthorizedError(f"{role.value} role required", redirect_to=decision.redirect_to)
        return principal

    return _dependency
