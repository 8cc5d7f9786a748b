"""
Role-Based Access Control – the role → permission table and its checks.
"""

from types import MappingProxyType
from typing import FrozenSet, Iterable, Mapping, Optional, Union

from medbook.config import ACCESS_DENIED_MESSAGE
from medbook.models import Action, Permission, Resource, Role

RoleLike = Union[Role, str]
ResourceLike = Union[Resource, str]
ActionLike = Union[Action, str]


class AuthorizationError(Exception):
    """Raised when a role is not allowed to perform an operation."""

    def __init__(self, message: str = ACCESS_DENIED_MESSAGE):
        super().__init__(message)
        self.message = message


def _coerce(enum_cls, value):
    """Return the enum member for *value*, or None if it is not one."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except (ValueError, TypeError):
        return None


class PolicyTable:
    """Immutable mapping from Role to the set of Permissions it holds."""

    def __init__(self, grants: Mapping[Role, Iterable[Permission]]):
        table = {role: frozenset() for role in Role}
        for role, perms in grants.items():
            table[Role(role)] = frozenset(perms)
        self._table = MappingProxyType(table)

    def permissions_for(self, role: RoleLike) -> FrozenSet[Permission]:
        """Return the role's permissions; unknown roles get the empty set."""
        key = _coerce(Role, role)
        if key is None:
            return frozenset()
        return self._table.get(key, frozenset())

    def has_permission(self, role: RoleLike, resource: ResourceLike, action: ActionLike) -> bool:
        res = _coerce(Resource, resource)
        act = _coerce(Action, action)
        if res is None or act is None:
            return False
        return Permission(res, act) in self.permissions_for(role)

    def require_permission(self, role: RoleLike, resource: ResourceLike, action: ActionLike) -> None:
        """Raise AuthorizationError unless *role* may do *action* on *resource*."""
        if not self.has_permission(role, resource, action):
            raise AuthorizationError()


def _grant(resource: Resource, *actions: Action):
    return [Permission(resource, a) for a in actions]


def build_default_policy() -> PolicyTable:
    """Build the stock admin / doctor / patient policy."""
    C, R, U, D = Action.CREATE, Action.READ, Action.UPDATE, Action.DELETE

    return PolicyTable({
        # Admin manages accounts but never books appointments itself.
        Role.ADMIN: (
            _grant(Resource.USERS, C, R, U, D)
            + _grant(Resource.DOCTORS, C, R, U, D)
            + _grant(Resource.PATIENTS, R)
            + _grant(Resource.APPOINTMENTS, R, U, D)
        ),
        Role.DOCTOR: (
            _grant(Resource.APPOINTMENTS, R, U)
            + _grant(Resource.PATIENTS, R)
            + _grant(Resource.DOCUMENTS, C, R)
        ),
        # Row ownership is enforced by the store's query scoping, not here.
        Role.PATIENT: (
            _grant(Resource.APPOINTMENTS, C, R, U)
            + _grant(Resource.DOCTORS, R)
            + _grant(Resource.DOCUMENTS, R)
        ),
    })


DEFAULT_POLICY = build_default_policy()


def has_permission(role: RoleLike, resource: ResourceLike, action: ActionLike,
                   policy: Optional[PolicyTable] = None) -> bool:
    """Check a permission against *policy* (the default table if omitted)."""
    return (DEFAULT_POLICY if policy is None else policy).has_permission(role, resource, action)


def require_permission(role: RoleLike, resource: ResourceLike, action: ActionLike,
                       policy: Optional[PolicyTable] = None) -> None:
    """Enforcing variant of has_permission; fails closed."""
    (DEFAULT_POLICY if policy is None else policy).require_permission(role, resource, action)
