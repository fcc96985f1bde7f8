"""Principal Repository - Accounts, enterprise lookup and product access grants"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection, PRINCIPALS
from ..domain.models import Principal, ProductAccessGrant, EnterpriseProfile, ModulePermissions
from ..domain.enums import Role
from ..domain.errors import AlreadyExistsError, PrincipalNotFoundError
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


def _to_principal(doc: Optional[Dict[str, Any]]) -> Optional[Principal]:
    if not doc:
        return None
    doc.pop("_id", None)
    return Principal.model_validate(doc)


def _duplicate_message(error: DuplicateKeyError) -> str:
    key = (error.details or {}).get("keyPattern", {})
    if "enterprise.enterprise_id" in key:
        return "Enterprise ID is already assigned to another admin"
    if "email" in key:
        return "Email is already registered"
    return "Principal already exists"


class PrincipalRepository:
    """
    Repository for principal documents.

    Every product-access mutation is a single conditional update on the
    principal document, so concurrent grant/revoke calls on the same
    principal are serialized by MongoDB and the legacy CRM flag is written
    in the same update as the ledger entry.
    """

    def __init__(self, collection: Optional[Collection] = None):
        self._principals: Collection = collection if collection is not None else get_collection(PRINCIPALS)

    # =========================================================================
    # Principal CRUD
    # =========================================================================

    def create(self, principal: Principal) -> Principal:
        """Insert a principal; email and admin enterprise id are unique"""
        doc = principal.model_dump()
        doc["_id"] = principal.principal_id
        try:
            self._principals.insert_one(doc)
        except DuplicateKeyError as e:
            raise AlreadyExistsError(
                _duplicate_message(e),
                details={"email": principal.email, "enterprise_id": principal.enterprise_id}
            )

        logger.info(
            f"Created principal: {principal.principal_id} ({principal.role.value})",
            extra={"principal_id": principal.principal_id, "enterprise_id": principal.enterprise_id}
        )
        return principal

    def get(self, principal_id: str) -> Optional[Principal]:
        return _to_principal(self._principals.find_one({"principal_id": principal_id}))

    def get_or_raise(self, principal_id: str) -> Principal:
        principal = self.get(principal_id)
        if not principal:
            raise PrincipalNotFoundError(
                f"Principal {principal_id} not found",
                details={"principal_id": principal_id}
            )
        return principal

    def get_by_email(self, email: str) -> Optional[Principal]:
        return _to_principal(self._principals.find_one({"email": email.lower()}))

    def delete(self, principal_id: str) -> bool:
        result = self._principals.delete_one({"principal_id": principal_id})
        return result.deleted_count == 1

    # =========================================================================
    # Enterprise lookup
    # =========================================================================

    def find_enterprise_admin(self, enterprise_id: str) -> Optional[Principal]:
        """Owning admin of an enterprise (served by the unique partial index)"""
        return _to_principal(self._principals.find_one({
            "role": Role.ADMIN.value,
            "enterprise.enterprise_id": enterprise_id,
        }))

    def list_superadmin_ids(self) -> List[str]:
        cursor = self._principals.find({"role": Role.SUPERADMIN.value}, {"principal_id": 1})
        return [doc["principal_id"] for doc in cursor]

    def update_enterprise(self, principal_id: str, enterprise: EnterpriseProfile) -> Principal:
        """
        Replace an admin's enterprise block and copy it onto the sub-users
        the admin created. The unique index rejects collisions before any
        sub-user is touched.
        """
        now = utc_now()
        block = enterprise.model_dump()
        try:
            doc = self._principals.find_one_and_update(
                {"principal_id": principal_id},
                {"$set": {"enterprise": block, "updated_at": now}},
                return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError as e:
            raise AlreadyExistsError(
                _duplicate_message(e),
                details={"enterprise_id": enterprise.enterprise_id}
            )
        if doc is None:
            raise PrincipalNotFoundError(f"Principal {principal_id} not found")

        result = self._principals.update_many(
            {"role": Role.USER.value, "created_by": principal_id},
            {"$set": {"enterprise": block, "updated_at": now}}
        )
        if result.modified_count:
            logger.info(
                f"Copied enterprise {enterprise.enterprise_id} to {result.modified_count} sub-user(s)",
                extra={"principal_id": principal_id, "enterprise_id": enterprise.enterprise_id}
            )
        return _to_principal(doc)

    def update_custom_permissions(
        self,
        principal_id: str,
        matrix: Dict[str, ModulePermissions],
        role_id: Optional[str] = None
    ) -> Principal:
        """Replace the matrix; `role_id` records the role it was copied from (None for a hand-edited matrix)"""
        doc = self._principals.find_one_and_update(
            {"principal_id": principal_id},
            {"$set": {
                "custom_permissions": {k: v.model_dump() for k, v in matrix.items()},
                "profile.role_id": role_id,
                "updated_at": utc_now(),
            }},
            return_document=ReturnDocument.AFTER
        )
        if doc is None:
            raise PrincipalNotFoundError(f"Principal {principal_id} not found")
        return _to_principal(doc)

    def apply_role_matrix(self, role_id: str, matrix: Dict[str, ModulePermissions]) -> int:
        """Re-copy a role's matrix onto every principal assigned to it"""
        result = self._principals.update_many(
            {"profile.role_id": role_id},
            {"$set": {
                "custom_permissions": {k: v.model_dump() for k, v in matrix.items()},
                "updated_at": utc_now(),
            }}
        )
        return result.modified_count

    def detach_role(self, role_id: str) -> int:
        """Forget a deleted role; the copied matrix stays"""
        result = self._principals.update_many(
            {"profile.role_id": role_id},
            {"$set": {"profile.role_id": None, "updated_at": utc_now()}}
        )
        return result.modified_count

    # =========================================================================
    # Product access grants
    # =========================================================================

    def reactivate_grant(
        self,
        principal_id: str,
        product_id: str,
        fields: Dict[str, Any],
        legacy_flag: Optional[str] = None
    ) -> Optional[Principal]:
        """
        Overwrite fields of an existing grant record in place.

        Returns None when the principal has no record for the product.
        """
        updates = {f"product_access.$.{key}": value for key, value in fields.items()}
        if legacy_flag:
            updates[f"permissions.{legacy_flag}"] = True
        updates["updated_at"] = fields.get("updated_at") or utc_now()

        return _to_principal(self._principals.find_one_and_update(
            {"principal_id": principal_id, "product_access.product_id": product_id},
            {"$set": updates},
            return_document=ReturnDocument.AFTER
        ))

    def push_grant(
        self,
        principal_id: str,
        grant: ProductAccessGrant,
        legacy_flag: Optional[str] = None
    ) -> Optional[Principal]:
        """
        Append a first grant record.

        The filter refuses the write if a record for the product already
        exists, so two concurrent first grants cannot create duplicates.
        """
        update: Dict[str, Any] = {
            "$push": {"product_access": grant.model_dump()},
            "$set": {"updated_at": grant.updated_at or utc_now()},
        }
        if legacy_flag:
            update["$set"][f"permissions.{legacy_flag}"] = True

        return _to_principal(self._principals.find_one_and_update(
            {"principal_id": principal_id, "product_access.product_id": {"$ne": grant.product_id}},
            update,
            return_document=ReturnDocument.AFTER
        ))

    def deactivate_grant(
        self,
        principal_id: str,
        product_id: str,
        revoked_by: str,
        revoked_at: datetime,
        legacy_flag: Optional[str] = None
    ) -> Optional[Principal]:
        """Flip an active grant to inactive. None if no active grant matched."""
        updates: Dict[str, Any] = {
            "product_access.$.has_access": False,
            "product_access.$.revoked_at": revoked_at,
            "product_access.$.revoked_by": revoked_by,
            "product_access.$.updated_at": revoked_at,
            "updated_at": revoked_at,
        }
        if legacy_flag:
            updates[f"permissions.{legacy_flag}"] = False

        return _to_principal(self._principals.find_one_and_update(
            {
                "principal_id": principal_id,
                "product_access": {"$elemMatch": {"product_id": product_id, "has_access": True}},
            },
            {"$set": updates},
            return_document=ReturnDocument.AFTER
        ))

    def rotate_grant_link(
        self,
        principal_id: str,
        product_id: str,
        access_token: str,
        access_link: str,
        access_url: str,
        rotated_at: datetime
    ) -> Optional[Principal]:
        """Replace token and link of an active grant. None if not active."""
        return _to_principal(self._principals.find_one_and_update(
            {
                "principal_id": principal_id,
                "product_access": {"$elemMatch": {"product_id": product_id, "has_access": True}},
            },
            {"$set": {
                "product_access.$.access_token": access_token,
                "product_access.$.access_link": access_link,
                "product_access.$.access_url": access_url,
                "product_access.$.updated_at": rotated_at,
                "updated_at": rotated_at,
            }},
            return_document=ReturnDocument.AFTER
        ))

    def record_link_access(self, access_link: str, accessed_at: datetime) -> Optional[Principal]:
        """Bump usage counters of the active grant owning the link"""
        return _to_principal(self._principals.find_one_and_update(
            {"product_access": {"$elemMatch": {"access_link": access_link, "has_access": True}}},
            {
                "$set": {"product_access.$.last_accessed": accessed_at},
                "$inc": {
                    "product_access.$.access_count": 1,
                    "product_access.$.usage_summary.total_actions": 1,
                },
            },
            return_document=ReturnDocument.AFTER
        ))

    def find_by_access_link(self, access_link: str) -> Optional[Principal]:
        return _to_principal(self._principals.find_one({"product_access.access_link": access_link}))
