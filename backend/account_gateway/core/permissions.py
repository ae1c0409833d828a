"""
Admin role policy.

The ``admin_roles`` setting is resolved once at startup into one of three
variants. A value of any other shape is a configuration error.
"""
from typing import Any, Iterable, Optional

from account_gateway.core.errors import ConfigurationError


class AdminPolicy:
    """Base policy: decides whether a user's roles grant admin permission."""

    #: Whether admin checks are active at all
    enabled = True

    def permits(self, roles: Optional[Iterable[str]]) -> bool:
        raise NotImplementedError

    def has_admin_permission(self, user: Optional[dict[str, Any]]) -> bool:
        """Check a user record (or session copy) against the policy."""
        if not self.enabled:
            return True
        if not user:
            return False
        return self.permits(user.get("roles"))


class Disabled(AdminPolicy):
    """No admin roles configured: everyone has admin permission."""

    enabled = False

    def permits(self, roles: Optional[Iterable[str]]) -> bool:
        return True

    def __repr__(self) -> str:
        return "Disabled()"


class SingleRole(AdminPolicy):
    """A single role name grants admin permission."""

    def __init__(self, role: str):
        self.role = role

    def permits(self, roles: Optional[Iterable[str]]) -> bool:
        return self.role in (roles or ())

    def __repr__(self) -> str:
        return f"SingleRole({self.role!r})"


class RoleList(AdminPolicy):
    """Any of several role names grants admin permission."""

    def __init__(self, roles: Iterable[str]):
        self.roles = frozenset(roles)

    def permits(self, roles: Optional[Iterable[str]]) -> bool:
        return not self.roles.isdisjoint(roles or ())

    def __repr__(self) -> str:
        return f"RoleList({sorted(self.roles)!r})"


def resolve_admin_policy(admin_roles: Any) -> AdminPolicy:
    """
    Resolve the configured ``admin_roles`` value into a policy.

    Args:
        admin_roles: None/empty string, a role name, or a list of role names

    Returns:
        The matching AdminPolicy variant

    Raises:
        ConfigurationError: If the value is not one of the accepted shapes
    """
    if admin_roles is None or admin_roles == "":
        return Disabled()
    if isinstance(admin_roles, str):
        return SingleRole(admin_roles)
    if isinstance(admin_roles, (list, tuple)):
        if not admin_roles:
            raise ConfigurationError("admin_roles must not be an empty list")
        if not all(isinstance(role, str) and role for role in admin_roles):
            raise ConfigurationError("admin_roles must contain only non-empty role names")
        return RoleList(admin_roles)
    raise ConfigurationError(
        f"admin_roles must be a string or a list of strings, got {type(admin_roles).__name__}"
    )
