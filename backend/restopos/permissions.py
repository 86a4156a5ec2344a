"""Roles, permission codes and the authenticated principal."""

from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List

PERMISSIONS = (
    "pos:use",
    "orders:view",
    "orders:manage",
    "orders:delete",
    "sales:view",
    "sales:manage",
    "sales:approve",
    "inventory:view",
    "inventory:manage",
    "products:view",
    "products:manage",
    "delivery:view",
    "delivery:manage",
    "reports:view",
    "dashboard:view",
    "finance:view",
    "finance:manage",
    "backup:manage",
    "users:manage",
)

ROLE_PERMISSIONS = {
    "admin": frozenset(PERMISSIONS),
    "manager": frozenset(p for p in PERMISSIONS if p != "users:manage"),
    "cashier": frozenset({
        "pos:use",
        "orders:view",
        "orders:manage",
        "sales:view",
        "sales:manage",
        "products:view",
        "delivery:view",
    }),
    "storekeeper": frozenset({
        "inventory:view",
        "inventory:manage",
        "products:view",
    }),
}


def permissions_for_roles(roles: Iterable[str]) -> FrozenSet[str]:
    granted = set()
    for role in roles or []:
        granted |= ROLE_PERMISSIONS.get(role, frozenset())
    return frozenset(granted)


@dataclass(frozen=True)
class AuthUser:
    """Detached view of the signed-in user, safe to use outside a session."""

    id: int
    username: str
    roles: List[str] = field(default_factory=list)
    permissions: FrozenSet[str] = frozenset()

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles

    def has_any(self, codes: Iterable[str]) -> bool:
        return self.is_admin or any(code in self.permissions for code in codes)

    def has_all(self, codes: Iterable[str]) -> bool:
        return self.is_admin or all(code in self.permissions for code in codes)
