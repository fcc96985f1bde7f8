"""Access Service - who may manage product grants, plus link resolution"""
from typing import Tuple, TYPE_CHECKING

from ..domain.models import Principal, ProductAccessGrant
from ..domain.enums import Role, AuditAction
from ..domain.errors import ForbiddenError
from ..engine.access_ledger import ProductAccessLedger
from ..engine.audit_writer import AuditWriter
from ..engine.permission_resolver import PermissionResolver, get_permission_resolver
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..repositories.principal_repo import PrincipalRepository

logger = get_logger(__name__)


class AccessService:
    """Service for product access grants"""

    def __init__(
        self,
        principal_repo: "PrincipalRepository" = None,
        ledger: ProductAccessLedger = None,
        audit: AuditWriter = None,
        resolver: PermissionResolver = None
    ):
        if principal_repo is None:
            from ..repositories.principal_repo import PrincipalRepository
            principal_repo = PrincipalRepository()
        self.principal_repo = principal_repo
        self.ledger = ledger or ProductAccessLedger(principal_repo)
        self.audit = audit or AuditWriter()
        self.resolver = resolver or get_permission_resolver()

    def _ensure_can_manage(self, actor: Principal, target: Principal, product_id: str) -> None:
        """
        Superadmin manages any admin or user. An admin manages only the
        sub-users it created, and only for products it holds itself.
        """
        if target.role == Role.SUPERADMIN:
            raise ForbiddenError("Superadmin access cannot be managed")
        if actor.role == Role.SUPERADMIN:
            return
        if actor.role == Role.ADMIN and target.role == Role.USER and target.created_by == actor.principal_id:
            if self.resolver.has_product_access(actor, product_id):
                return
            raise ForbiddenError(
                f"You do not have access to {product_id} yourself",
                details={"product_id": product_id}
            )
        raise ForbiddenError(
            "You cannot manage product access for this account",
            details={"principal_id": target.principal_id}
        )

    def grant(self, actor: Principal, principal_id: str, product_id: str) -> ProductAccessGrant:
        target = self.principal_repo.get_or_raise(principal_id)
        self._ensure_can_manage(actor, target, product_id)

        grant = self.ledger.grant(principal_id, product_id, granted_by=actor.principal_id)
        self.audit.record(
            AuditAction.PRODUCT_GRANTED, actor.principal_id, principal_id,
            details={"product_id": product_id}, target="principal", enterprise_id=target.enterprise_id
        )
        return grant

    def revoke(self, actor: Principal, principal_id: str, product_id: str) -> ProductAccessGrant:
        target = self.principal_repo.get_or_raise(principal_id)
        self._ensure_can_manage(actor, target, product_id)

        grant = self.ledger.revoke(principal_id, product_id, revoked_by=actor.principal_id)
        self.audit.record(
            AuditAction.PRODUCT_REVOKED, actor.principal_id, principal_id,
            details={"product_id": product_id}, target="principal", enterprise_id=target.enterprise_id
        )
        return grant

    def regenerate_link(self, actor: Principal, principal_id: str, product_id: str) -> ProductAccessGrant:
        target = self.principal_repo.get_or_raise(principal_id)
        # A principal may rotate its own link
        if actor.principal_id != principal_id:
            self._ensure_can_manage(actor, target, product_id)

        grant = self.ledger.regenerate_link(principal_id, product_id)
        self.audit.record(
            AuditAction.ACCESS_LINK_REGENERATED, actor.principal_id, principal_id,
            details={"product_id": product_id}, target="principal", enterprise_id=target.enterprise_id
        )
        return grant

    def resolve_by_link(self, access_link: str) -> Tuple[Principal, ProductAccessGrant]:
        """Unauthenticated entry point for tenant access links"""
        return self.ledger.resolve_by_link(access_link)
