"""Repository query shapes against a mocked pymongo collection"""
from unittest.mock import MagicMock

import pytest
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.domain.enums import Role, TicketStatus, InAppNotificationCategory
from app.domain.errors import (
    AlreadyExistsError, ConcurrencyError, TicketNotFoundError, ResponseNotFoundError, RoleNotFoundError,
    NotificationNotFoundError
)
from app.domain.models import EnterpriseProfile, EnterpriseRole, ModulePermissions, ProductAccessGrant, TicketResponse
from app.repositories.inapp_notification_repo import InAppNotificationRepository
from app.repositories.principal_repo import PrincipalRepository
from app.repositories.role_repo import EnterpriseRoleRepository
from app.repositories.ticket_repo import TicketRepository
from app.utils.time import utc_now

from tests.fakes import build_principal


@pytest.fixture
def collection():
    col = MagicMock()
    col.find_one_and_update.return_value = None
    col.find_one.return_value = None
    return col


class TestPrincipalRepository:

    def test_create_maps_duplicate_enterprise(self, collection):
        collection.insert_one.side_effect = DuplicateKeyError(
            "dup", 11000, {"keyPattern": {"enterprise.enterprise_id": 1}}
        )
        repo = PrincipalRepository(collection)
        with pytest.raises(AlreadyExistsError) as exc:
            repo.create(build_principal("A1", Role.ADMIN, enterprise_id="E1"))
        assert "Enterprise ID" in exc.value.message

    def test_create_uses_principal_id_as_key(self, collection):
        PrincipalRepository(collection).create(build_principal("A1", Role.ADMIN, enterprise_id="E1"))
        doc = collection.insert_one.call_args[0][0]
        assert doc["_id"] == "A1"
        assert doc["enterprise"]["enterprise_id"] == "E1"

    def test_get_strips_object_id(self, collection):
        doc = build_principal("U1", Role.USER, created_by="A1").model_dump()
        doc["_id"] = "U1"
        collection.find_one.return_value = doc
        principal = PrincipalRepository(collection).get("U1")
        assert principal.principal_id == "U1"

    def test_find_enterprise_admin_filter(self, collection):
        PrincipalRepository(collection).find_enterprise_admin("E1")
        collection.find_one.assert_called_once_with({"role": "admin", "enterprise.enterprise_id": "E1"})

    def test_update_enterprise_duplicate(self, collection):
        collection.find_one_and_update.side_effect = DuplicateKeyError(
            "dup", 11000, {"keyPattern": {"enterprise.enterprise_id": 1}}
        )
        with pytest.raises(AlreadyExistsError):
            PrincipalRepository(collection).update_enterprise("A2", EnterpriseProfile(enterprise_id="E1"))

    def test_update_enterprise_copies_block_to_sub_users(self, collection):
        collection.find_one_and_update.return_value = build_principal("A1", Role.ADMIN, enterprise_id="E9").model_dump()
        collection.update_many.return_value = MagicMock(modified_count=3)

        PrincipalRepository(collection).update_enterprise("A1", EnterpriseProfile(enterprise_id="E9"))

        filter_query, update = collection.update_many.call_args[0]
        assert filter_query == {"role": "user", "created_by": "A1"}
        assert update["$set"]["enterprise"]["enterprise_id"] == "E9"

    def test_enterprise_collision_leaves_sub_users_alone(self, collection):
        collection.find_one_and_update.side_effect = DuplicateKeyError(
            "dup", 11000, {"keyPattern": {"enterprise.enterprise_id": 1}}
        )
        with pytest.raises(AlreadyExistsError):
            PrincipalRepository(collection).update_enterprise("A2", EnterpriseProfile(enterprise_id="E1"))
        collection.update_many.assert_not_called()

    def test_role_matrix_reapplied_by_role_id(self, collection):
        collection.update_many.return_value = MagicMock(modified_count=2)
        matrix = {"customers": ModulePermissions(view=True)}
        assert PrincipalRepository(collection).apply_role_matrix("ROL-1", matrix) == 2

        filter_query, update = collection.update_many.call_args[0]
        assert filter_query == {"profile.role_id": "ROL-1"}
        assert update["$set"]["custom_permissions"]["customers"]["view"] is True

    def test_hand_edited_matrix_clears_role(self, collection):
        collection.find_one_and_update.return_value = build_principal("U1", Role.USER, created_by="A1").model_dump()
        PrincipalRepository(collection).update_custom_permissions("U1", {})
        update = collection.find_one_and_update.call_args[0][1]
        assert update["$set"]["profile.role_id"] is None

    def test_push_grant_refuses_existing_product(self, collection):
        grant = ProductAccessGrant(product_id="crm", has_access=True, granted_at=utc_now())
        assert PrincipalRepository(collection).push_grant("U1", grant, legacy_flag="crm_access") is None

        filter_query, update = collection.find_one_and_update.call_args[0]
        assert filter_query == {"principal_id": "U1", "product_access.product_id": {"$ne": "crm"}}
        assert update["$push"]["product_access"]["product_id"] == "crm"
        assert update["$set"]["permissions.crm_access"] is True
        assert collection.find_one_and_update.call_args[1]["return_document"] == ReturnDocument.AFTER

    def test_deactivate_matches_active_grant_only(self, collection):
        now = utc_now()
        PrincipalRepository(collection).deactivate_grant("U1", "crm", "A1", now, legacy_flag="crm_access")

        filter_query, update = collection.find_one_and_update.call_args[0]
        assert filter_query["product_access"] == {"$elemMatch": {"product_id": "crm", "has_access": True}}
        assert update["$set"]["product_access.$.has_access"] is False
        assert update["$set"]["product_access.$.revoked_by"] == "A1"
        assert update["$set"]["permissions.crm_access"] is False

    def test_reactivate_sets_positional_fields(self, collection):
        now = utc_now()
        PrincipalRepository(collection).reactivate_grant("U1", "hrm", {"has_access": True, "updated_at": now})

        filter_query, update = collection.find_one_and_update.call_args[0]
        assert filter_query == {"principal_id": "U1", "product_access.product_id": "hrm"}
        assert update["$set"]["product_access.$.has_access"] is True
        assert not any(key.startswith("permissions.") for key in update["$set"])

    def test_record_link_access_increments_counters(self, collection):
        PrincipalRepository(collection).record_link_access("acme-1", utc_now())

        filter_query, update = collection.find_one_and_update.call_args[0]
        assert filter_query == {"product_access": {"$elemMatch": {"access_link": "acme-1", "has_access": True}}}
        assert update["$inc"] == {
            "product_access.$.access_count": 1,
            "product_access.$.usage_summary.total_actions": 1,
        }


class TestTicketRepository:

    def test_apply_update_with_version(self, collection):
        collection.find_one.return_value = {"_id": "TKT-1"}
        with pytest.raises(ConcurrencyError):
            TicketRepository(collection).apply_update("TKT-1", status=TicketStatus.CLOSED, expected_version=3)

        filter_query, update = collection.find_one_and_update.call_args[0]
        assert filter_query == {"ticket_id": "TKT-1", "version": 3}
        assert update["$set"]["status"] == "Closed"
        assert update["$inc"] == {"version": 1}
        assert "$push" not in update

    def test_apply_update_missing_ticket(self, collection):
        with pytest.raises(TicketNotFoundError):
            TicketRepository(collection).apply_update("TKT-404", status=TicketStatus.OPEN)

    def test_backfill_and_append_are_one_versioned_write(self, collection):
        collection.find_one.return_value = {"_id": "TKT-1"}
        now = utc_now()
        response = TicketResponse(
            response_id="RSP-2", message="$status", author_role=Role.ADMIN, author_id="A1",
            created_at=now, updated_at=now
        )
        with pytest.raises(ConcurrencyError):
            TicketRepository(collection).apply_update(
                "TKT-1", response=response, expected_version=4, backfill_role=Role.ADMIN
            )

        collection.find_one_and_update.assert_called_once()
        collection.update_one.assert_not_called()
        filter_query, update = collection.find_one_and_update.call_args[0]
        assert filter_query == {"ticket_id": "TKT-1", "version": 4}
        assert isinstance(update, list)
        fields = update[0]["$set"]
        assert fields["version"] == {"$add": ["$version", 1]}
        stamped, appended = fields["responses"]["$concatArrays"]
        assert stamped["$map"]["in"]["$cond"][1] == {"$mergeObjects": ["$$r", {"author_role": "admin"}]}
        assert appended[0]["$literal"]["message"] == "$status"

    def test_append_without_backfill_uses_push(self, collection):
        collection.find_one_and_update.return_value = None
        now = utc_now()
        response = TicketResponse(response_id="RSP-2", message="hi", created_at=now, updated_at=now)
        with pytest.raises(TicketNotFoundError):
            TicketRepository(collection).apply_update("TKT-1", response=response)

        update = collection.find_one_and_update.call_args[0][1]
        assert update["$push"]["responses"]["response_id"] == "RSP-2"

    def test_mark_forwarded_only_once(self, collection):
        assert TicketRepository(collection).mark_forwarded("TKT-1", "A1", utc_now()) is None
        filter_query = collection.find_one_and_update.call_args[0][0]
        assert filter_query == {"ticket_id": "TKT-1", "forwarded_to_superadmin": {"$ne": True}}

    def test_remove_missing_response(self, collection):
        with pytest.raises(ResponseNotFoundError):
            TicketRepository(collection).remove_response("TKT-1", "RSP-1")

    def test_list_combines_scope_and_filters(self, collection):
        cursor = collection.find.return_value.sort.return_value.skip.return_value.limit.return_value
        cursor.__iter__.return_value = iter([])
        since = utc_now()

        TicketRepository(collection).list_tickets(
            scope={"submitted_by": "U1"}, status=TicketStatus.OPEN, created_after=since, skip=20, limit=10
        )

        collection.find.assert_called_once_with({"$and": [
            {"submitted_by": "U1"},
            {"status": "Open"},
            {"created_at": {"$gte": since}},
        ]})
        collection.find.return_value.sort.return_value.skip.assert_called_once_with(20)

    def test_count_open_for_principal(self, collection):
        collection.count_documents.return_value = 0
        assert TicketRepository(collection).count_open_for_principal("U1") == 0
        collection.count_documents.assert_called_once_with({
            "$or": [{"submitted_by": "U1"}, {"assigned_admin_id": "U1"}],
            "status": {"$ne": "Closed"},
        })


class TestEnterpriseRoleRepository:

    def _role(self):
        now = utc_now()
        return EnterpriseRole(
            role_id="ROL-1", enterprise_id="E1", name="Support", created_by="A1", created_at=now, updated_at=now
        )

    def test_duplicate_name_maps_to_conflict(self, collection):
        collection.insert_one.side_effect = DuplicateKeyError("dup", 11000, {})
        with pytest.raises(AlreadyExistsError):
            EnterpriseRoleRepository(collection).create(self._role())

    def test_list_is_scoped_and_sorted(self, collection):
        collection.find.return_value.sort.return_value = iter([])
        EnterpriseRoleRepository(collection).list_for_enterprise("E1")
        collection.find.assert_called_once_with({"enterprise_id": "E1"})
        collection.find.return_value.sort.assert_called_once_with("name", 1)

    def test_update_only_sets_given_fields(self, collection):
        collection.find_one_and_update.return_value = self._role().model_dump()
        EnterpriseRoleRepository(collection).update("ROL-1", description="Front line")

        update = collection.find_one_and_update.call_args[0][1]
        assert set(update["$set"]) == {"description", "updated_at"}

    def test_update_missing_role(self, collection):
        with pytest.raises(RoleNotFoundError):
            EnterpriseRoleRepository(collection).update("ROL-404", name="x")


class TestInAppNotificationRepository:

    def test_create_sets_expiry(self, collection):
        notification = InAppNotificationRepository(collection).create_notification(
            "U1", InAppNotificationCategory.TICKET_RESPONSE, "Ticket Response", "New response", ticket_id="TKT-1"
        )
        doc = collection.insert_one.call_args[0][0]
        assert doc["_id"] == notification.notification_id
        assert doc["recipient_id"] == "U1"
        assert (notification.expires_at - notification.created_at).days == 90

    def test_mark_as_read_is_scoped_to_recipient(self, collection):
        with pytest.raises(NotificationNotFoundError):
            InAppNotificationRepository(collection).mark_as_read("NTF-1", "U2")

        filter_query, update = collection.find_one_and_update.call_args[0]
        assert filter_query == {"notification_id": "NTF-1", "recipient_id": "U2"}
        assert update["$set"]["is_read"] is True

    def test_unread_count_filter(self, collection):
        collection.count_documents.return_value = 4
        assert InAppNotificationRepository(collection).count_for_recipient("U1", unread_only=True) == 4
        collection.count_documents.assert_called_once_with({"recipient_id": "U1", "is_read": False})
