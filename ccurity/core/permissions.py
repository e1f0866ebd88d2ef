"""
Role-based access for the four platform areas.

Each role has a home route and a list of route prefixes it may open. The
permission classes below apply the same matrix to the API.
"""
from rest_framework.permissions import BasePermission

from .models import User

HOME_ROUTES = {
    User.ROLE_ADMIN: '/admin',
    User.ROLE_SUPER: '/supervisor',
    User.ROLE_COLAB: '/colaborador',
    User.ROLE_CLIENT: '/portal',
}

ROLE_ACCESS = {
    User.ROLE_ADMIN: ['/admin', '/supervisor', '/colaborador', '/portal'],
    User.ROLE_SUPER: ['/supervisor', '/colaborador'],
    User.ROLE_COLAB: ['/colaborador'],
    User.ROLE_CLIENT: ['/portal'],
}

PUBLIC_ROUTES = ['/', '/login', '/signup', '/auth/callback', '/offline']
PUBLIC_PREFIXES = ['/auth/', '/contrato/', '/cotizacion/']


def get_role(user):
    """Role of a user, CLIENT when unknown"""
    role = getattr(user, 'role', None)
    return role if role in ROLE_ACCESS else User.ROLE_CLIENT


def home_route(user):
    return HOME_ROUTES[get_role(user)]


def allowed_prefixes(user):
    return ROLE_ACCESS[get_role(user)]


def is_public_route(path):
    return path in PUBLIC_ROUTES or any(path.startswith(p) for p in PUBLIC_PREFIXES)


def check_route_access(user, path):
    """
    Decide whether ``user`` may open ``path``.

    Returns a dict with ``allowed`` and, when refused, the ``redirect``
    target: the login page for anonymous users, the role home otherwise.
    """
    if is_public_route(path):
        return {'allowed': True, 'redirect': None}

    if user is None or not user.is_authenticated:
        return {'allowed': False, 'redirect': f'/login?redirect={path}'}

    if any(path.startswith(prefix) for prefix in allowed_prefixes(user)):
        return {'allowed': True, 'redirect': None}
    return {'allowed': False, 'redirect': home_route(user)}


def is_admin_user(user):
    return bool(user and user.is_authenticated and (get_role(user) == User.ROLE_ADMIN or user.is_superuser))


class HasRole(BasePermission):
    """Admit authenticated users whose role is in ``roles``"""
    roles = ()
    message = 'No tienes permiso para realizar esta acción.'

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if user.is_superuser:
            return True
        return get_role(user) in self.roles


class IsAdminRole(HasRole):
    roles = (User.ROLE_ADMIN,)


class IsSupervisorRole(HasRole):
    roles = (User.ROLE_ADMIN, User.ROLE_SUPER)


class IsCollaboratorRole(HasRole):
    roles = (User.ROLE_ADMIN, User.ROLE_SUPER, User.ROLE_COLAB)
