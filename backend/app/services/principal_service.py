"""Principal Service - admin/sub-user administration of access-control fields"""
from typing import Dict, Optional, TYPE_CHECKING

from ..domain.models import (
    Principal, PrincipalProfile, EnterpriseProfile, LegacyPermissions, ModulePermissions
)
from ..domain.enums import Role, Module, Action, AuditAction, ProductCode
from ..domain.errors import ForbiddenError, ValidationError, ConflictError, EnterpriseNotConfiguredError
from ..engine.access_ledger import ProductAccessLedger
from ..engine.audit_writer import AuditWriter
from ..engine.permission_resolver import PermissionResolver, Resolution, get_permission_resolver
from ..utils.idgen import generate_principal_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..repositories.principal_repo import PrincipalRepository
    from ..repositories.ticket_repo import TicketRepository
    from ..repositories.role_repo import EnterpriseRoleRepository

logger = get_logger(__name__)


def validate_matrix(matrix: Dict[str, ModulePermissions]) -> Dict[str, ModulePermissions]:
    """Reject matrix rows for unknown modules"""
    unknown = [key for key in matrix if key not in {m.value for m in Module}]
    if unknown:
        raise ValidationError(
            f"Unknown permission modules: {', '.join(sorted(unknown))}",
            details={"allowed": [m.value for m in Module]}
        )
    return matrix


class PrincipalService:
    """Service for creating and administering principals"""

    def __init__(
        self,
        principal_repo: "PrincipalRepository" = None,
        ticket_repo: "TicketRepository" = None,
        ledger: ProductAccessLedger = None,
        audit: AuditWriter = None,
        resolver: PermissionResolver = None,
        role_repo: "EnterpriseRoleRepository" = None
    ):
        if principal_repo is None:
            from ..repositories.principal_repo import PrincipalRepository
            principal_repo = PrincipalRepository()
        if ticket_repo is None:
            from ..repositories.ticket_repo import TicketRepository
            ticket_repo = TicketRepository()
        if role_repo is None:
            from ..repositories.role_repo import EnterpriseRoleRepository
            role_repo = EnterpriseRoleRepository()
        self.principal_repo = principal_repo
        self.ticket_repo = ticket_repo
        self.role_repo = role_repo
        self.ledger = ledger or ProductAccessLedger(principal_repo)
        self.audit = audit or AuditWriter()
        self.resolver = resolver or get_permission_resolver()

    def check_permission(self, actor: Principal, module: Module, action: Action) -> Resolution:
        resolution = self.resolver.explain(actor, module, action)
        logger.debug(
            f"Permission check {module.value}:{action.value} -> {resolution.decision.value}",
            extra={"principal_id": actor.principal_id, "rule": resolution.rule}
        )
        return resolution

    # =========================================================================
    # Creation
    # =========================================================================

    def create_admin(
        self,
        actor: Principal,
        email: str,
        full_name: str,
        enterprise: EnterpriseProfile,
        permissions: Optional[LegacyPermissions] = None,
        phone: Optional[str] = None
    ) -> Principal:
        """Superadmin creates an enterprise admin; enterprise id must be unique"""
        if actor.role != Role.SUPERADMIN:
            raise ForbiddenError("Only superadmins can create admins")

        permissions = permissions or LegacyPermissions()
        now = utc_now()
        admin = Principal(
            principal_id=generate_principal_id(),
            email=email.lower(),
            role=Role.ADMIN,
            created_by=actor.principal_id,
            profile=PrincipalProfile(full_name=full_name, phone=phone),
            enterprise=enterprise,
            # crm_access is owned by the ledger and set through grant() below
            permissions=permissions.model_copy(update={"crm_access": False}),
            created_at=now,
            updated_at=now,
        )
        admin = self.principal_repo.create(admin)

        if permissions.crm_access:
            self.ledger.grant(admin.principal_id, ProductCode.CRM.value, granted_by=actor.principal_id)
            admin = self.principal_repo.get_or_raise(admin.principal_id)

        self.audit.record(
            AuditAction.ADMIN_CREATED, actor.principal_id, admin.principal_id,
            details={"email": admin.email}, target="principal", enterprise_id=admin.enterprise_id
        )
        return admin

    def create_sub_user(
        self,
        actor: Principal,
        email: str,
        full_name: str,
        custom_permissions: Optional[Dict[str, ModulePermissions]] = None,
        department: Optional[str] = None,
        phone: Optional[str] = None
    ) -> Principal:
        """
        Create a sub-user under the actor's enterprise.

        A sub-user creating a sibling files it under its own creator, so
        every user hangs directly off an admin.
        """
        self.resolver.require(actor, Module.USERS, Action.ADD)
        if actor.role == Role.SUPERADMIN:
            raise ForbiddenError("Superadmins create admins, not sub-users")

        owner = actor
        if actor.role == Role.USER:
            owner = self.principal_repo.get_or_raise(actor.created_by)
        if not owner.enterprise:
            raise EnterpriseNotConfiguredError(
                "Your account has no enterprise. Please contact your administrator.",
                details={"principal_id": owner.principal_id}
            )

        now = utc_now()
        user = Principal(
            principal_id=generate_principal_id(),
            email=email.lower(),
            role=Role.USER,
            created_by=owner.principal_id,
            profile=PrincipalProfile(full_name=full_name, department=department, phone=phone),
            enterprise=owner.enterprise.model_copy(),
            custom_permissions=validate_matrix(custom_permissions or {}),
            created_at=now,
            updated_at=now,
        )
        user = self.principal_repo.create(user)
        self.audit.record(
            AuditAction.USER_CREATED, actor.principal_id, user.principal_id,
            details={"email": user.email, "created_by": owner.principal_id},
            target="principal", enterprise_id=user.enterprise_id
        )
        return user

    # =========================================================================
    # Updates
    # =========================================================================

    def update_enterprise(self, actor: Principal, principal_id: str, enterprise: EnterpriseProfile) -> Principal:
        """Superadmin edits an admin's enterprise block"""
        if actor.role != Role.SUPERADMIN:
            raise ForbiddenError("Only superadmins can change enterprise details")
        target = self.principal_repo.get_or_raise(principal_id)
        if target.role != Role.ADMIN:
            raise ValidationError("Enterprise details belong to admin accounts")

        # Uniqueness is enforced by the unique index at write time
        updated = self.principal_repo.update_enterprise(principal_id, enterprise)
        self.audit.record(
            AuditAction.ENTERPRISE_UPDATED, actor.principal_id, principal_id,
            details={"from": target.enterprise_id, "to": enterprise.enterprise_id},
            target="principal", enterprise_id=enterprise.enterprise_id
        )
        return updated

    def update_permission_matrix(
        self,
        actor: Principal,
        principal_id: str,
        matrix: Dict[str, ModulePermissions]
    ) -> Principal:
        """Replace a principal's custom permission matrix"""
        target = self.principal_repo.get_or_raise(principal_id)
        self._ensure_can_administer(actor, target)

        updated = self.principal_repo.update_custom_permissions(principal_id, validate_matrix(matrix))
        self.audit.record(
            AuditAction.PERMISSIONS_UPDATED, actor.principal_id, principal_id,
            details={"modules": sorted(matrix)}, target="principal", enterprise_id=target.enterprise_id
        )
        return updated

    def assign_role(self, actor: Principal, principal_id: str, role_id: str) -> Principal:
        """Copy an enterprise role's matrix onto a sub-user and remember the role"""
        target = self.principal_repo.get_or_raise(principal_id)
        self._ensure_can_administer(actor, target)
        if target.role != Role.USER:
            raise ValidationError("Roles can only be assigned to sub-users")

        role = self.role_repo.get_or_raise(role_id)
        if role.enterprise_id != target.enterprise_id:
            raise ForbiddenError(
                "Role belongs to a different enterprise",
                details={"role_id": role_id, "principal_id": principal_id}
            )

        updated = self.principal_repo.update_custom_permissions(
            principal_id, validate_matrix(role.permissions), role_id=role.role_id
        )
        self.audit.record(
            AuditAction.ROLE_ASSIGNED, actor.principal_id, principal_id,
            details={"role_id": role_id, "name": role.name},
            target="principal", enterprise_id=target.enterprise_id
        )
        return updated

    def delete_principal(self, actor: Principal, principal_id: str) -> None:
        """Delete a principal not referenced by any ticket that is still open"""
        target = self.principal_repo.get_or_raise(principal_id)
        self._ensure_can_administer(actor, target)

        open_tickets = self.ticket_repo.count_open_for_principal(principal_id)
        if open_tickets:
            raise ConflictError(
                f"Principal is referenced by {open_tickets} open ticket(s); close them first",
                details={"principal_id": principal_id, "open_tickets": open_tickets}
            )

        self.principal_repo.delete(principal_id)
        self.audit.record(
            AuditAction.PRINCIPAL_DELETED, actor.principal_id, principal_id,
            details={"email": target.email, "role": target.role.value},
            target="principal", enterprise_id=target.enterprise_id
        )

    def _ensure_can_administer(self, actor: Principal, target: Principal) -> None:
        if target.role == Role.SUPERADMIN or actor.principal_id == target.principal_id:
            raise ForbiddenError("You cannot administer this account")
        if actor.role == Role.SUPERADMIN:
            return
        if actor.role == Role.ADMIN and target.role == Role.USER and target.created_by == actor.principal_id:
            return
        raise ForbiddenError(
            "You can only manage users you created",
            details={"principal_id": target.principal_id}
        )
