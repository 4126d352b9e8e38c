"""
Caller capability for the ward services.

Views turn the authenticated user into a :class:`WardAccess` once per
request; every service operation takes it as its first argument instead
of looking the caller up again.
"""
from dataclasses import dataclass

from wards.exceptions import AuthorizationError
from wards.permissions import WARD_ROLES


@dataclass(frozen=True)
class WardAccess:
    user: object
    role: str

    @property
    def user_id(self):
        return getattr(self.user, 'id', None)


def grant_ward_access(user) -> WardAccess:
    if not (user and getattr(user, 'is_authenticated', False)):
        raise AuthorizationError('Unauthorized')
    role = getattr(user, 'role', None)
    if role not in WARD_ROLES:
        raise AuthorizationError()
    return WardAccess(user=user, role=role)


def require_access(ctx) -> WardAccess:
    if not isinstance(ctx, WardAccess):
        raise AuthorizationError()
    return ctx
