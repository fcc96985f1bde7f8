"""Product Access Ledger - grant, revoke and rotate per-product access"""
from datetime import datetime, timedelta
from typing import Optional, Tuple, TYPE_CHECKING

from ..config.settings import settings
from ..domain.models import Principal, ProductAccessGrant
from ..domain.enums import ProductCode
from ..domain.errors import (
    ConflictError, NotFoundError, NotGrantedError, AccessRevokedError
)
from ..utils.idgen import generate_access_token, generate_access_link
from ..utils.time import utc_now, ensure_utc
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..repositories.principal_repo import PrincipalRepository

logger = get_logger(__name__)

# Products whose ledger state is mirrored into the legacy permission flags
MIRRORED_LEGACY_FLAGS = {ProductCode.CRM.value: "crm_access"}


def build_access_url(access_link: str) -> str:
    """Public URL for an access link (per-link subdomain in production)"""
    if settings.is_production:
        return f"https://{access_link}.{settings.frontend_host}"
    return f"{settings.frontend_url.rstrip('/')}/products/access/{access_link}"


def _link_name(principal: Principal) -> Optional[str]:
    if principal.enterprise and principal.enterprise.company_name:
        return principal.enterprise.company_name
    return principal.profile.full_name


def _next_grant_time(previous: Optional[ProductAccessGrant]) -> datetime:
    """Grant timestamps strictly increase per record (storage keeps milliseconds)"""
    now = utc_now()
    if previous is not None and previous.granted_at is not None:
        floor = ensure_utc(previous.granted_at) + timedelta(milliseconds=1)
        if now < floor:
            return floor
    return now


def _require_grant(principal: Principal, product_id: str) -> ProductAccessGrant:
    grant = principal.grant_for(product_id)
    if grant is None:
        raise ConflictError(
            f"Grant for {product_id} missing after write",
            details={"principal_id": principal.principal_id, "product_id": product_id}
        )
    return grant


class ProductAccessLedger:
    """
    Per-principal product grants.

    Each operation is one conditional update of the principal document;
    business-rule failures are raised before anything is written.
    """

    def __init__(self, principal_repo: "PrincipalRepository" = None):
        if principal_repo is None:
            from ..repositories.principal_repo import PrincipalRepository
            principal_repo = PrincipalRepository()
        self.repo = principal_repo

    def grant(self, principal_id: str, product_id: str, granted_by: str) -> ProductAccessGrant:
        """
        Activate access, creating the record on first grant.

        An existing record (active or not) is reactivated in place with a
        fresh token and link; revoke history on it is kept.
        """
        principal = self.repo.get_or_raise(principal_id)
        legacy_flag = MIRRORED_LEGACY_FLAGS.get(product_id)

        # Two attempts cover a concurrent first grant winning the push
        for _ in range(2):
            now = _next_grant_time(principal.grant_for(product_id))
            access_link = generate_access_link(_link_name(principal))
            fields = {
                "has_access": True,
                "granted_at": now,
                "granted_by": granted_by,
                "access_token": generate_access_token(),
                "access_link": access_link,
                "access_url": build_access_url(access_link),
                "updated_at": now,
            }

            updated = self.repo.reactivate_grant(principal_id, product_id, fields, legacy_flag)
            if updated is None:
                updated = self.repo.push_grant(
                    principal_id,
                    ProductAccessGrant(product_id=product_id, **fields),
                    legacy_flag
                )
            if updated is not None:
                logger.info(
                    f"Granted {product_id} to {principal_id}",
                    extra={"principal_id": principal_id, "product_id": product_id, "actor_id": granted_by}
                )
                return _require_grant(updated, product_id)

        # Neither update matched: principal deleted mid-flight or a racing write
        self.repo.get_or_raise(principal_id)
        raise ConflictError(
            f"Concurrent update while granting {product_id}; retry the grant",
            details={"principal_id": principal_id, "product_id": product_id}
        )

    def revoke(self, principal_id: str, product_id: str, revoked_by: str) -> ProductAccessGrant:
        """Deactivate a grant; revoking an inactive grant returns it unchanged"""
        legacy_flag = MIRRORED_LEGACY_FLAGS.get(product_id)
        updated = self.repo.deactivate_grant(principal_id, product_id, revoked_by, utc_now(), legacy_flag)
        if updated is not None:
            logger.info(
                f"Revoked {product_id} from {principal_id}",
                extra={"principal_id": principal_id, "product_id": product_id, "actor_id": revoked_by}
            )
            return _require_grant(updated, product_id)

        principal = self.repo.get_or_raise(principal_id)
        grant = principal.grant_for(product_id)
        if grant is None:
            raise NotGrantedError(
                f"{product_id} was never granted to {principal_id}",
                details={"principal_id": principal_id, "product_id": product_id}
            )
        return grant

    def regenerate_link(self, principal_id: str, product_id: str) -> ProductAccessGrant:
        """Rotate token and link of an active grant"""
        principal = self.repo.get_or_raise(principal_id)
        if not principal.has_active_grant(product_id):
            raise NotGrantedError(
                f"No active {product_id} grant for {principal_id}",
                details={"principal_id": principal_id, "product_id": product_id}
            )

        access_link = generate_access_link(_link_name(principal))
        updated = self.repo.rotate_grant_link(
            principal_id,
            product_id,
            access_token=generate_access_token(),
            access_link=access_link,
            access_url=build_access_url(access_link),
            rotated_at=utc_now()
        )
        if updated is None:
            # Revoked between the read and the write
            raise NotGrantedError(
                f"No active {product_id} grant for {principal_id}",
                details={"principal_id": principal_id, "product_id": product_id}
            )

        logger.info(
            f"Regenerated {product_id} access link for {principal_id}",
            extra={"principal_id": principal_id, "product_id": product_id}
        )
        return _require_grant(updated, product_id)

    def resolve_by_link(self, access_link: str) -> Tuple[Principal, ProductAccessGrant]:
        """Look up an access link; only active grants resolve"""
        principal = self.repo.record_link_access(access_link, utc_now())
        if principal is None:
            if self.repo.find_by_access_link(access_link) is not None:
                raise AccessRevokedError(
                    "Access to this product has been revoked",
                    details={"access_link": access_link}
                )
            raise NotFoundError("Access link not found", details={"access_link": access_link})

        for grant in principal.product_access:
            if grant.access_link == access_link:
                return principal, grant
        raise NotFoundError("Access link not found", details={"access_link": access_link})
