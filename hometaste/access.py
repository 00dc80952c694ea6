"""
Role-gated access: decide whether a principal may open a role's dashboard, and where to send it otherwise.
"""
import logging
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict

from hometaste.config import settings
from hometaste.domain import Principal, Role
from hometaste.metrics import access_denied_total

logger = logging.getLogger(__name__)

HOME_ROUTES: dict[Role, str] = {
    Role.COOK: "/cook/dashboard",
    Role.CUSTOMER: "/customer/feed",
    Role.DELIVERY: "/delivery/dashboard",
}


class Allowed(BaseModel):
    model_config = ConfigDict(frozen=True)
    allowed: bool = True


class Denied(BaseModel):
    model_config = ConfigDict(frozen=True)
    allowed: bool = False
    redirect_to: str


def home_route(role: Role | None) -> str:
    """Where a principal lands after sign-in."""
    if role is None:
        return "/"
    return HOME_ROUTES[role]


def sign_in_route(path: str | None = None) -> str:
    if not path:
        return "/auth"
    return f"/auth?redirect={quote(path, safe='/')}"


def check_access(
    principal: Principal | None,
    required_role: Role,
    path: str | None = None,
    allow_missing_profile: bool | None = None,
) -> Allowed | Denied:
    """
    Allowed when principal holds required_role. Unauthenticated callers and, unless
    allow_missing_profile, callers without a profile go to sign-in; other roles go home.
    """
    if allow_missing_profile is None:
        allow_missing_profile = settings.allow_missing_profile
    if path is None:
        path = HOME_ROUTES[required_role]

    if principal is None:
        decision: Allowed | Denied = Denied(redirect_to=sign_in_route(path))
    elif principal.role is None:
        if allow_missing_profile:
            logger.warning("Allowing user_id=%s without a profile into %s", principal.id, path)
            decision = Allowed()
        else:
            decision = Denied(redirect_to=sign_in_route(path))
    elif principal.role is not required_role:
        decision = Denied(redirect_to="/")
    else:
        decision = Allowed()

    if isinstance(decision, Denied):
        access_denied_total.labels(required_role=required_role.value).inc()
    return decision
