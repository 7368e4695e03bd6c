from typing import Iterable, Optional, Union

from okr_tracker.constants.constants import UserRole

MANAGER_ROLES = frozenset({UserRole.manager, UserRole.hr, UserRole.admin, UserRole.super_admin})
ADMIN_ROLES = frozenset({UserRole.admin, UserRole.super_admin})


def has_required_role(role: Optional[Union[UserRole, str]], required_roles: Iterable[UserRole]) -> bool:
    """Single capability check used by every route that gates on role."""
    if role is None:
        return False
    try:
        role = UserRole(role)
    except ValueError:
        return False
    return role in set(required_roles)
