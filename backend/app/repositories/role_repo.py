"""Enterprise Role Repository - Named permission matrices per enterprise"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection, ENTERPRISE_ROLES
from ..domain.models import EnterpriseRole, ModulePermissions
from ..domain.errors import AlreadyExistsError, RoleNotFoundError
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


def _to_role(doc: Optional[Dict[str, Any]]) -> Optional[EnterpriseRole]:
    if not doc:
        return None
    doc.pop("_id", None)
    return EnterpriseRole.model_validate(doc)


class EnterpriseRoleRepository:
    """Repository for enterprise roles; names are unique within an enterprise"""

    def __init__(self, collection: Optional[Collection] = None):
        self._roles: Collection = collection if collection is not None else get_collection(ENTERPRISE_ROLES)

    def create(self, role: EnterpriseRole) -> EnterpriseRole:
        doc = role.model_dump()
        doc["_id"] = role.role_id
        try:
            self._roles.insert_one(doc)
        except DuplicateKeyError:
            raise AlreadyExistsError(
                f"Role '{role.name}' already exists",
                details={"enterprise_id": role.enterprise_id, "name": role.name}
            )
        logger.info(
            f"Created role {role.role_id} ({role.name})",
            extra={"enterprise_id": role.enterprise_id}
        )
        return role

    def get(self, role_id: str) -> Optional[EnterpriseRole]:
        return _to_role(self._roles.find_one({"role_id": role_id}))

    def get_or_raise(self, role_id: str) -> EnterpriseRole:
        role = self.get(role_id)
        if role is None:
            raise RoleNotFoundError(f"Role {role_id} not found", details={"role_id": role_id})
        return role

    def list_for_enterprise(self, enterprise_id: str) -> List[EnterpriseRole]:
        cursor = self._roles.find({"enterprise_id": enterprise_id}).sort("name", ASCENDING)
        return [_to_role(doc) for doc in cursor]

    def update(
        self,
        role_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        permissions: Optional[Dict[str, ModulePermissions]] = None
    ) -> EnterpriseRole:
        """Partial update; only the given fields change"""
        updates: Dict[str, Any] = {"updated_at": utc_now()}
        if name is not None:
            updates["name"] = name
        if description is not None:
            updates["description"] = description
        if permissions is not None:
            updates["permissions"] = {k: v.model_dump() for k, v in permissions.items()}

        try:
            doc = self._roles.find_one_and_update(
                {"role_id": role_id},
                {"$set": updates},
                return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError:
            raise AlreadyExistsError(f"Role '{name}' already exists", details={"name": name})
        if doc is None:
            raise RoleNotFoundError(f"Role {role_id} not found", details={"role_id": role_id})
        return _to_role(doc)

    def delete(self, role_id: str) -> bool:
        result = self._roles.delete_one({"role_id": role_id})
        return result.deleted_count == 1
