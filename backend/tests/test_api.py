"""HTTP surface: routing, auth and error mapping through FastAPI's TestClient"""
import time
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from app.api.deps import (
    get_access_service, get_notification_repo, get_principal_service, get_role_service, get_ticket_service
)
from app.api.middleware import CorrelationIdMiddleware, register_error_handlers
from app.api.routes import api_router
from app.domain.enums import Role, InAppNotificationCategory
from app.services.channel_registry import ChannelRegistry, get_channel_registry
from app.utils.jwt import CredentialVerifier, get_credential_verifier

from tests.fakes import build_principal

SECRET = "test-secret"


def token_for(principal_id: str, expires_in: timedelta = timedelta(hours=1)) -> dict:
    token = jwt.encode(
        {"sub": principal_id, "exp": datetime.now(timezone.utc) + expires_in},
        SECRET,
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(principal_repo, ticket_service, access_service, principal_service, role_service, notification_repo):
    app = FastAPI()
    app.add_middleware(CorrelationIdMiddleware)
    register_error_handlers(app)
    app.include_router(api_router, prefix="/api/v1")

    app.dependency_overrides[get_credential_verifier] = lambda: CredentialVerifier(principal_repo, secret=SECRET)
    app.dependency_overrides[get_ticket_service] = lambda: ticket_service
    app.dependency_overrides[get_access_service] = lambda: access_service
    app.dependency_overrides[get_principal_service] = lambda: principal_service
    app.dependency_overrides[get_role_service] = lambda: role_service
    app.dependency_overrides[get_notification_repo] = lambda: notification_repo
    return TestClient(app)


TICKET_BODY = {
    "name": "Uma User",
    "email": "u1@acme.io",
    "subject": "Export broken",
    "department": "Finance",
    "related_to": "crm",
    "message": "CSV export returns a 500",
}


class TestAuth:

    def test_missing_header(self, client):
        response = client.get("/api/v1/principals/me")
        assert response.status_code == 401

    def test_expired_token(self, client, user):
        response = client.get("/api/v1/principals/me", headers=token_for("U1", timedelta(hours=-1)))
        assert response.status_code == 401
        assert response.json()["detail"]["error"]["code"] == "INVALID_CREDENTIAL"

    def test_unknown_principal(self, client):
        response = client.get("/api/v1/principals/me", headers=token_for("USR-ghost"))
        assert response.status_code == 401

    def test_me(self, client, user):
        response = client.get("/api/v1/principals/me", headers=token_for("U1"))
        assert response.status_code == 200
        body = response.json()
        assert body["role"] == "user"
        assert body["enterprise"]["enterprise_id"] == "E1"


class TestTickets:

    def test_create_and_fetch(self, client, user, admin):
        created = client.post("/api/v1/tickets/", json=TICKET_BODY, headers=token_for("U1"))
        assert created.status_code == 201
        ticket = created.json()
        assert ticket["assigned_admin_id"] == "A1"
        assert ticket["status"] == "Open"

        fetched = client.get(f"/api/v1/tickets/{ticket['ticket_id']}", headers=token_for("A1"))
        assert fetched.status_code == 200

    def test_missing_required_field(self, client, user, admin):
        body = {k: v for k, v in TICKET_BODY.items() if k != "related_to"}
        response = client.post("/api/v1/tickets/", json=body, headers=token_for("U1"))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_enterprise_not_configured(self, client, principal_repo):
        principal_repo.create(build_principal("U9", Role.USER, enterprise_id="NOPE", created_by="A0"))
        response = client.post("/api/v1/tickets/", json=TICKET_BODY, headers=token_for("U9"))
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "ENTERPRISE_NOT_CONFIGURED"

    def test_admin_raise_header(self, client, admin):
        response = client.post(
            "/api/v1/tickets/",
            json=TICKET_BODY,
            headers={**token_for("A1"), "X-Force-Admin-Ticket": "true"},
        )
        assert response.status_code == 201
        assert response.json()["is_admin_ticket"] is True
        assert response.json()["forwarded_to_superadmin"] is True

    def test_invalid_status(self, client, user, admin):
        ticket = client.post("/api/v1/tickets/", json=TICKET_BODY, headers=token_for("U1")).json()
        response = client.put(
            f"/api/v1/tickets/{ticket['ticket_id']}/status",
            json={"status": "Escalated"},
            headers=token_for("A1"),
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_STATUS"

    def test_forbidden_carries_correlation_id(self, client, user, admin):
        ticket = client.post("/api/v1/tickets/", json=TICKET_BODY, headers=token_for("U1")).json()
        response = client.delete(
            f"/api/v1/tickets/{ticket['ticket_id']}",
            headers={**token_for("U1"), "X-Correlation-Id": "COR-test-1"},
        )
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"
        assert response.headers["X-Correlation-Id"] == "COR-test-1"

    def test_forward_twice(self, client, user, admin):
        ticket = client.post("/api/v1/tickets/", json=TICKET_BODY, headers=token_for("U1")).json()
        first = client.post(f"/api/v1/tickets/{ticket['ticket_id']}/forward", headers=token_for("A1")).json()
        second = client.post(f"/api/v1/tickets/{ticket['ticket_id']}/forward", headers=token_for("A1")).json()
        assert first["forwarded_at"] == second["forwarded_at"]

    def test_list_rejects_bad_since(self, client, admin):
        response = client.get("/api/v1/tickets/?since=yesterday", headers=token_for("A1"))
        assert response.status_code == 400

    def test_not_found(self, client, admin):
        response = client.get("/api/v1/tickets/TKT-missing", headers=token_for("A1"))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "TICKET_NOT_FOUND"


class TestProductAccess:

    def test_grant_resolve_revoke(self, client, superadmin, user):
        granted = client.post("/api/v1/access/U1/products/crm/grant", headers=token_for("SA1"))
        assert granted.status_code == 200
        link = granted.json()["access_link"]
        assert "access_token" not in granted.json()

        resolved = client.get(f"/api/v1/products/access/{link}")
        assert resolved.status_code == 200
        assert resolved.json()["principal_id"] == "U1"
        assert resolved.json()["access_count"] == 1

        client.post("/api/v1/access/U1/products/crm/revoke", headers=token_for("SA1"))
        revoked = client.get(f"/api/v1/products/access/{link}")
        assert revoked.status_code == 403
        assert revoked.json()["error"]["code"] == "ACCESS_REVOKED"

    def test_regenerate_without_grant(self, client, superadmin, user):
        response = client.post("/api/v1/access/U1/products/hrm/regenerate", headers=token_for("SA1"))
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "NOT_GRANTED"

    def test_unknown_link(self, client):
        assert client.get("/api/v1/products/access/nope").status_code == 404


class TestPrincipals:

    def test_create_user_requires_users_add(self, client, admin):
        body = {"email": "new@acme.io", "full_name": "New Hire"}
        response = client.post("/api/v1/principals/users", json=body, headers=token_for("A1"))
        assert response.status_code == 403

    def test_create_admin(self, client, superadmin):
        body = {
            "email": "boss@globex.io",
            "full_name": "Globex Boss",
            "enterprise": {"enterprise_id": "GLOBEX", "company_name": "Globex"},
            "permissions": {"crm_access": True},
        }
        response = client.post("/api/v1/principals/admins", json=body, headers=token_for("SA1"))
        assert response.status_code == 201
        assert response.json()["products"] == {"crm": True}

    def test_permission_check(self, client, user):
        response = client.get(
            "/api/v1/permissions/check", params={"module": "leads", "action": "add"}, headers=token_for("U1")
        )
        assert response.status_code == 200
        assert response.json() == {"module": "leads", "action": "add", "decision": "deny", "rule": "default_deny"}


class TestRoles:

    def test_crud_and_assignment(self, client, admin, user):
        body = {"name": "Support", "permissions": {"customers": {"view": True, "edit": True}}}
        created = client.post("/api/v1/roles", json=body, headers=token_for("A1"))
        assert created.status_code == 201
        role_id = created.json()["role_id"]
        assert created.json()["enterprise_id"] == "E1"

        listed = client.get("/api/v1/roles", headers=token_for("A1"))
        assert [r["name"] for r in listed.json()] == ["Support"]

        assigned = client.put(
            f"/api/v1/principals/{user.principal_id}/role", json={"role_id": role_id}, headers=token_for("A1")
        )
        assert assigned.status_code == 200
        assert assigned.json()["role_id"] == role_id
        assert assigned.json()["custom_permissions"]["customers"]["edit"] is True

        renamed = client.put(f"/api/v1/roles/{role_id}", json={"name": "Helpdesk"}, headers=token_for("A1"))
        assert renamed.json()["name"] == "Helpdesk"

        assert client.delete(f"/api/v1/roles/{role_id}", headers=token_for("A1")).status_code == 204
        assert client.get("/api/v1/roles", headers=token_for("A1")).json() == []

    def test_superadmin_without_enterprise_id(self, client, superadmin):
        response = client.get("/api/v1/roles", headers=token_for("SA1"))
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    def test_unknown_role(self, client, admin):
        response = client.put("/api/v1/roles/ROL-404", json={"name": "x"}, headers=token_for("A1"))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "ROLE_NOT_FOUND"


class TestNotifications:

    def test_response_shows_up_for_submitter(self, client, user, admin):
        ticket = client.post("/api/v1/tickets/", json=TICKET_BODY, headers=token_for("U1")).json()
        client.put(
            f"/api/v1/tickets/{ticket['ticket_id']}", json={"message": "On it"}, headers=token_for("A1")
        )

        listed = client.get("/api/v1/notifications", headers=token_for("U1")).json()
        assert listed["unread_count"] == 1
        assert listed["total"] == 1
        [item] = listed["notifications"]
        assert item["category"] == "TICKET_RESPONSE"
        assert item["ticket_id"] == ticket["ticket_id"]

        read = client.post(f"/api/v1/notifications/{item['notification_id']}/read", headers=token_for("U1"))
        assert read.json()["is_read"] is True
        assert client.get("/api/v1/notifications/unread-count", headers=token_for("U1")).json() == {
            "unread_count": 0
        }

    def test_cannot_read_someone_elses(self, client, notification_repo, user, admin):
        mine = notification_repo.create_notification(
            "U1", InAppNotificationCategory.TICKET_RESPONSE, "Ticket Response", "hi"
        )
        response = client.post(f"/api/v1/notifications/{mine.notification_id}/read", headers=token_for("A1"))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOTIFICATION_NOT_FOUND"
        assert client.delete(
            f"/api/v1/notifications/{mine.notification_id}", headers=token_for("A1")
        ).status_code == 404

    def test_read_all(self, client, notification_repo, user):
        for _ in range(3):
            notification_repo.create_notification(
                "U1", InAppNotificationCategory.TICKET_RESPONSE, "Ticket Response", "hi"
            )
        assert client.post("/api/v1/notifications/read-all", headers=token_for("U1")).json() == {"marked": 3}
        assert client.get("/api/v1/notifications", headers=token_for("U1")).json()["unread_count"] == 0


class TestRealtime:

    def test_bad_token_is_rejected(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/api/v1/realtime/ws?token=not-a-jwt"):
                pass

    def test_pushes_reach_connected_principal(self, client, user):
        registry = ChannelRegistry()
        client.app.dependency_overrides[get_channel_registry] = lambda: registry
        raw = token_for("U1")["Authorization"].split(" ", 1)[1]

        with client.websocket_connect(f"/api/v1/realtime/ws?token={raw}") as ws:
            deadline = time.monotonic() + 2
            while not registry.is_connected("U1") and time.monotonic() < deadline:
                time.sleep(0.01)

            assert registry.send("U1", "ticket_updated_for_user", {"ticket_id": "TKT-1"})
            assert ws.receive_json() == {"event": "ticket_updated_for_user", "data": {"ticket_id": "TKT-1"}}
