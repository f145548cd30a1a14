"""Staff roles and the JSON view mixin that enforces them.

Roles are plain Django groups (see the ``setup_roles`` management command).
Superusers hold every staff role.
"""

import enum
from typing import TYPE_CHECKING, Any

from django.contrib.auth.models import Group

from boletera.api import error_response

if TYPE_CHECKING:
    from collections.abc import Iterable

    from django.http import HttpRequest, HttpResponse


class Role(enum.StrEnum):
    """Roles a user can hold."""

    ADMIN = "admin"
    GESTOR = "gestor"
    COMPROBADOR = "comprobador"
    USUARIO = "usuario"


ROLE_GROUPS: dict[Role, str] = {
    Role.ADMIN: "Boletera: Admin",
    Role.GESTOR: "Boletera: Gestor",
    Role.COMPROBADOR: "Boletera: Comprobador",
    Role.USUARIO: "Boletera: Usuario",
}
_GROUP_ROLES = {name: role for role, name in ROLE_GROUPS.items()}

SUPPORT_ROLES = (Role.ADMIN, Role.GESTOR)
SCANNER_ROLES = (Role.ADMIN, Role.GESTOR, Role.COMPROBADOR)


def user_roles(user: Any) -> set[Role]:
    """Return the roles held by ``user``.

    Anonymous users hold none; every authenticated user is at least a
    ``usuario``.
    """
    if user is None or not user.is_authenticated:
        return set()
    roles = {Role.USUARIO}
    if user.is_superuser:
        roles.add(Role.ADMIN)
    names = user.groups.filter(name__in=_GROUP_ROLES).values_list("name", flat=True)
    roles.update(_GROUP_ROLES[name] for name in names)
    return roles


def has_any_role(user: Any, roles: "Iterable[Role]") -> bool:
    """Whether ``user`` holds at least one of ``roles``."""
    return bool(user_roles(user) & set(roles))


def assign_role(user: Any, role: Role) -> None:
    """Add ``user`` to the group backing ``role``, creating it if needed."""
    group, _created = Group.objects.get_or_create(name=ROLE_GROUPS[role])
    user.groups.add(group)


class RoleRequiredMixin:
    """JSON view mixin that requires one of ``required_roles``.

    Unauthenticated requests get a 401 body and authenticated users without
    a matching role get a 403 body, instead of the login redirect that
    ``LoginRequiredMixin`` would produce.
    """

    required_roles: tuple[Role, ...] = ()

    def dispatch(self, request: "HttpRequest", *args: Any, **kwargs: Any) -> "HttpResponse":
        """Check authentication and roles before dispatching the view."""
        if not request.user.is_authenticated:
            return error_response("Authentication required", 401)
        if self.required_roles and not has_any_role(request.user, self.required_roles):
            return error_response("You do not have permission to perform this action", 403)
        return super().dispatch(request, *args, **kwargs)  # type: ignore[misc]
