"""
Capability definitions and role policies.

WHY: Routes never compare role names. Each role is a RolePolicy that answers
allows(capability); require_capability() in decorators.py is the only gate,
so the checkout and reporting services never see transport or session details.

Admin has every capability. Cashier can ring sales, browse the catalog and
see their own transaction history.
"""

from __future__ import annotations

from dataclasses import dataclass


class Capability:
    CHECKOUT = "CHECKOUT"
    VIEW_CATALOG = "VIEW_CATALOG"
    MANAGE_CATALOG = "MANAGE_CATALOG"
    MANAGE_INVENTORY = "MANAGE_INVENTORY"
    VIEW_OWN_TRANSACTIONS = "VIEW_OWN_TRANSACTIONS"
    VIEW_ALL_TRANSACTIONS = "VIEW_ALL_TRANSACTIONS"
    VIEW_REPORTS = "VIEW_REPORTS"
    MANAGE_USERS = "MANAGE_USERS"

    ALL = frozenset({
        CHECKOUT,
        VIEW_CATALOG,
        MANAGE_CATALOG,
        MANAGE_INVENTORY,
        VIEW_OWN_TRANSACTIONS,
        VIEW_ALL_TRANSACTIONS,
        VIEW_REPORTS,
        MANAGE_USERS,
    })


class RolePolicy:
    """Base policy: grants exactly the capabilities listed on the subclass."""
    name: str = ""
    capabilities: frozenset = frozenset()

    def allows(self, capability: str) -> bool:
        return capability in self.capabilities

    def __repr__(self) -> str:
        return f"<RolePolicy {self.name}>"


class AdminPolicy(RolePolicy):
    name = "admin"
    capabilities = Capability.ALL


class CashierPolicy(RolePolicy):
    name = "cashier"
    capabilities = frozenset({
        Capability.CHECKOUT,
        Capability.VIEW_CATALOG,
        Capability.VIEW_OWN_TRANSACTIONS,
    })


ROLE_POLICIES: dict[str, RolePolicy] = {
    AdminPolicy.name: AdminPolicy(),
    CashierPolicy.name: CashierPolicy(),
}


def policy_for(role: str) -> RolePolicy:
    try:
        return ROLE_POLICIES[role]
    except KeyError:
        raise ValueError(f"Unknown role: {role}")


@dataclass(frozen=True)
class Actor:
    """Opaque identity handed to the core services."""
    user_id: int
    policy: RolePolicy

    @property
    def role(self) -> str:
        return self.policy.name

    def can(self, capability: str) -> bool:
        return self.policy.allows(capability)

    def to_dict(self) -> dict:
        return {"user_id": self.user_id, "role": self.role}
