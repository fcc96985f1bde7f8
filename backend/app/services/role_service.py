"""Role Service - enterprise permission templates"""
from typing import Dict, List, Optional, TYPE_CHECKING

from ..domain.models import Principal, EnterpriseRole, ModulePermissions
from ..domain.enums import Role, Module, Action, AuditAction
from ..domain.errors import ForbiddenError, ValidationError, EnterpriseNotConfiguredError
from ..engine.audit_writer import AuditWriter
from ..engine.permission_resolver import PermissionResolver, get_permission_resolver
from .principal_service import validate_matrix
from ..utils.idgen import generate_role_id
from ..utils.time import utc_now
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..repositories.principal_repo import PrincipalRepository
    from ..repositories.role_repo import EnterpriseRoleRepository

logger = get_logger(__name__)


class RoleService:
    """
    Named permission matrices scoped to one enterprise.

    Admins manage the roles of their own enterprise; sub-users need the
    matching `roles` permission; a superadmin names the enterprise
    explicitly. Users assigned to a role hold a copy of its matrix, which
    is refreshed when the role changes.
    """

    def __init__(
        self,
        role_repo: "EnterpriseRoleRepository" = None,
        principal_repo: "PrincipalRepository" = None,
        audit: AuditWriter = None,
        resolver: PermissionResolver = None
    ):
        if role_repo is None:
            from ..repositories.role_repo import EnterpriseRoleRepository
            role_repo = EnterpriseRoleRepository()
        if principal_repo is None:
            from ..repositories.principal_repo import PrincipalRepository
            principal_repo = PrincipalRepository()
        self.role_repo = role_repo
        self.principal_repo = principal_repo
        self.audit = audit or AuditWriter()
        self.resolver = resolver or get_permission_resolver()

    def _scope(self, actor: Principal, action: Action, enterprise_id: Optional[str] = None) -> str:
        """Enterprise the actor may manage roles in, for `action`"""
        if actor.role == Role.SUPERADMIN:
            if not enterprise_id:
                raise ValidationError("enterprise_id is required")
            return enterprise_id

        if actor.role == Role.USER:
            self.resolver.require(actor, Module.ROLES, action)
        own = actor.enterprise_id
        if not own:
            raise EnterpriseNotConfiguredError(
                "Your account has no enterprise. Please contact your administrator.",
                details={"principal_id": actor.principal_id}
            )
        if enterprise_id and enterprise_id != own:
            raise ForbiddenError(
                "You can only manage roles of your own enterprise",
                details={"enterprise_id": enterprise_id}
            )
        return own

    def create_role(
        self,
        actor: Principal,
        name: str,
        permissions: Dict[str, ModulePermissions],
        description: str = "",
        enterprise_id: Optional[str] = None
    ) -> EnterpriseRole:
        scope = self._scope(actor, Action.ADD, enterprise_id)
        now = utc_now()
        role = self.role_repo.create(EnterpriseRole(
            role_id=generate_role_id(),
            enterprise_id=scope,
            name=name.strip(),
            description=description,
            permissions=validate_matrix(permissions),
            created_by=actor.principal_id,
            created_at=now,
            updated_at=now,
        ))
        self.audit.record(
            AuditAction.ROLE_CREATED, actor.principal_id, role.role_id,
            details={"name": role.name}, target="role", enterprise_id=scope
        )
        return role

    def list_roles(self, actor: Principal, enterprise_id: Optional[str] = None) -> List[EnterpriseRole]:
        return self.role_repo.list_for_enterprise(self._scope(actor, Action.VIEW, enterprise_id))

    def update_role(
        self,
        actor: Principal,
        role_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        permissions: Optional[Dict[str, ModulePermissions]] = None
    ) -> EnterpriseRole:
        role = self.role_repo.get_or_raise(role_id)
        self._scope(actor, Action.EDIT, role.enterprise_id)

        updated = self.role_repo.update(
            role_id,
            name=name.strip() if name is not None else None,
            description=description,
            permissions=validate_matrix(permissions) if permissions is not None else None,
        )
        refreshed = 0
        if permissions is not None:
            refreshed = self.principal_repo.apply_role_matrix(role_id, updated.permissions)
            logger.info(
                f"Re-applied role {role_id} to {refreshed} principal(s)",
                extra={"enterprise_id": role.enterprise_id}
            )

        self.audit.record(
            AuditAction.ROLE_UPDATED, actor.principal_id, role_id,
            details={"name": updated.name, "principals_refreshed": refreshed},
            target="role", enterprise_id=role.enterprise_id
        )
        return updated

    def delete_role(self, actor: Principal, role_id: str) -> None:
        """Assigned users keep their copy of the matrix but lose the role link"""
        role = self.role_repo.get_or_raise(role_id)
        self._scope(actor, Action.DELETE, role.enterprise_id)

        self.role_repo.delete(role_id)
        detached = self.principal_repo.detach_role(role_id)
        self.audit.record(
            AuditAction.ROLE_DELETED, actor.principal_id, role_id,
            details={"name": role.name, "principals_detached": detached},
            target="role", enterprise_id=role.enterprise_id
        )
