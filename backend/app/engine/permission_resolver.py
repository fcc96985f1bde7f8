"""Permission Resolver - single authorize() decision for every request"""
from typing import FrozenSet, NamedTuple, Optional, Tuple

from ..domain.models import Principal
from ..domain.enums import Role, Module, Action, Decision, ProductCode
from ..domain.errors import ForbiddenError
from ..utils.logger import get_logger

logger = get_logger(__name__)


# Modules an admin with the legacy CRM flag may use without matrix entries
ADMIN_LEGACY_MODULES: FrozenSet[Module] = frozenset({Module.PRODUCTS, Module.USERS, Module.LEADS})

# Baseline for a sub-user with an active CRM grant and an empty matrix
CRM_USER_DEFAULTS: FrozenSet[Tuple[Module, Action]] = frozenset({
    (Module.PRODUCTS, Action.VIEW),
    (Module.SERVICES, Action.VIEW),
    (Module.LEADS, Action.VIEW),
    (Module.LEADS, Action.ADD),
})


class Resolution(NamedTuple):
    decision: Decision
    rule: str

    @property
    def allowed(self) -> bool:
        return self.decision == Decision.ALLOW


class PermissionResolver:
    """
    Decides allow/deny for (principal, module, action).

    Rules, first match wins:
      1. superadmin
      2. admin + legacy CRM flag + module in products/users/leads
      3. user + active CRM grant + (module, action) in the CRM defaults
      4. custom_permissions[module][action]
      5. deny

    Legacy flags and the matrix are separate fields; a missing matrix row
    or action counts as False.
    """

    def explain(self, principal: Principal, module: Module, action: Action) -> Resolution:
        if principal.role == Role.SUPERADMIN:
            return Resolution(Decision.ALLOW, "superadmin")

        if (
            principal.role == Role.ADMIN
            and principal.permissions.crm_access
            and module in ADMIN_LEGACY_MODULES
        ):
            return Resolution(Decision.ALLOW, "admin_legacy_flag")

        if (
            principal.role == Role.USER
            and principal.has_active_grant(ProductCode.CRM.value)
            and (module, action) in CRM_USER_DEFAULTS
        ):
            return Resolution(Decision.ALLOW, "crm_user_defaults")

        row = principal.custom_permissions.get(module.value)
        if row is not None and row.allows(action):
            return Resolution(Decision.ALLOW, "permission_matrix")

        return Resolution(Decision.DENY, "default_deny")

    def authorize(self, principal: Principal, module: Module, action: Action) -> Decision:
        return self.explain(principal, module, action).decision

    def require(self, principal: Principal, module: Module, action: Action) -> None:
        """Raise ForbiddenError unless authorize() allows"""
        resolution = self.explain(principal, module, action)
        if resolution.allowed:
            return
        logger.info(
            f"Denied {module.value}:{action.value} for {principal.principal_id}",
            extra={
                "principal_id": principal.principal_id,
                "action": f"{module.value}:{action.value}",
                "rule": resolution.rule,
            }
        )
        raise ForbiddenError(
            f"You do not have permission to {action.value} {module.value}",
            details={"module": module.value, "action": action.value}
        )

    def has_product_access(self, principal: Principal, product_id: str) -> bool:
        """Product gate: superadmin, legacy flag, or an active grant"""
        if principal.role == Role.SUPERADMIN:
            return True
        if principal.permissions.flag_for(product_id):
            return True
        return principal.has_active_grant(product_id)


_resolver: Optional[PermissionResolver] = None


def get_permission_resolver() -> PermissionResolver:
    """Get global resolver instance (stateless)"""
    global _resolver
    if _resolver is None:
        _resolver = PermissionResolver()
    return _resolver
