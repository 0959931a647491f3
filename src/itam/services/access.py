"""Route access gate.

Admins can reach every route. Everyone else needs an explicit
``RouteAccess`` grant for the route in their organisation; no entry
means no access.
"""

import enum
import logging
from dataclasses import dataclass
from functools import wraps

from django.db import DatabaseError
from django.http import JsonResponse

from accounts.models import RouteAccess

logger = logging.getLogger(__name__)

ADMIN_ROLE = "admin"
MANAGER_ROLES = ("admin", "manager")


@dataclass(frozen=True)
class ActorContext:
    """Who is asking: passed explicitly to every access check."""

    user_id: int | None
    role: str | None
    organisation_id: int | None

    @classmethod
    def from_user(cls, user) -> "ActorContext":
        if user is None or not user.is_authenticated:
            return cls(user_id=None, role=None, organisation_id=None)
        return cls(
            user_id=user.pk,
            role=user.effective_role,
            organisation_id=user.organisation_id,
        )

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


class AccessState(enum.Enum):
    LOADING = "loading"
    ALLOWED = "allowed"
    DENIED = "denied"


def has_access(route: str, actor: ActorContext) -> bool:
    """Whether ``actor`` may open ``route``."""
    if actor.is_admin:
        return True
    if actor.user_id is None or actor.organisation_id is None:
        return False
    return RouteAccess.objects.filter(
        organisation_id=actor.organisation_id,
        route=route,
        is_allowed=True,
    ).exists()


def can_manage_assets(actor: ActorContext) -> bool:
    """Whether ``actor`` may create, edit or transition assets."""
    return actor.role in MANAGER_ROLES


def has_access_batch(routes, actor: ActorContext) -> dict[str, bool]:
    """Resolve several routes at once.

    A lookup error for one route denies that route only.
    """
    access_map = {}
    for route in routes:
        try:
            access_map[route] = has_access(route, actor)
        except DatabaseError:
            logger.exception("Error checking access to %s", route)
            access_map[route] = False
    return access_map


def resolve_access(route: str, actor: ActorContext) -> AccessState:
    """Three-way access answer for page rendering.

    While the actor has no user or organisation context the answer is
    LOADING, so callers render neither the page nor a denial.
    """
    if actor.is_admin:
        return AccessState.ALLOWED
    if actor.user_id is None or actor.organisation_id is None:
        return AccessState.LOADING
    try:
        allowed = has_access(route, actor)
    except DatabaseError:
        logger.exception("Error checking access to %s", route)
        return AccessState.DENIED
    return AccessState.ALLOWED if allowed else AccessState.DENIED


def route_access_required(route: str):
    """View decorator gating a JSON view behind ``route``.

    Apply below ``login_required``.
    """

    def decorator(view_func):
        @wraps(view_func)
        def _wrapped(request, *args, **kwargs):
            actor = ActorContext.from_user(request.user)
            state = resolve_access(route, actor)
            if state is AccessState.LOADING:
                return JsonResponse(
                    {"state": state.value, "route": route}, status=202
                )
            if state is AccessState.DENIED:
                return JsonResponse(
                    {"error": "Access denied", "route": route}, status=403
                )
            return view_func(request, *args, **kwargs)

        return _wrapped

    return decorator
