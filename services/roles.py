# services/roles.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from services.identity import Principal

ADMIN_ROLES = frozenset({"owner", "admin"})

# actions
SEND_PAYOUT = "payouts:send"
CONFIRM_PAYOUT = "payouts:confirm"
READ_PAYOUT = "payouts:read"
LIST_PAYOUTS = "payouts:list"

ADMIN_ACTIONS = frozenset({SEND_PAYOUT, CONFIRM_PAYOUT, LIST_PAYOUTS})


@dataclass(frozen=True)
class ResourceScope:
    company_id: str
    owner_user_id: Optional[str] = None


def _role(principal: Principal) -> str:
    role = getattr(principal, "role", None)
    return role.strip().lower() if isinstance(role, str) else ""


def _same_tenant(principal: Principal, scope: ResourceScope) -> bool:
    company_id = getattr(principal, "company_id", None)
    return bool(company_id) and company_id == scope.company_id


def admin_only(principal: Principal, scope: ResourceScope) -> bool:
    """
    owner/admin of the resource's own company. Cross-tenant admins never pass.
    """
    return _role(principal) in ADMIN_ROLES and _same_tenant(principal, scope)


def is_authorized(principal: Principal, action: str, scope: ResourceScope) -> bool:
    """
    Pure decision: no I/O, never raises. Unknown roles/actions => False.
    """
    if not _same_tenant(principal, scope):
        return False

    if action in ADMIN_ACTIONS:
        return admin_only(principal, scope)

    if action == READ_PAYOUT:
        if admin_only(principal, scope):
            return True
        if READ_PAYOUT in (getattr(principal, "permissions", None) or ()):
            return True
        return bool(scope.owner_user_id) and scope.owner_user_id == principal.user_id

    return False
